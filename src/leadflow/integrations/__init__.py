"""External capability clients used by the lead sources and the scorer.

Each client imports its provider SDK, so the package resolves them on first
attribute access: a missing SDK only breaks the capability that needs it.
"""

import importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .apify import ApifyClient
    from .firecrawl import FirecrawlSearchClient
    from .google_maps import GoogleMapsClient
    from .openai_scoring import ScoringLLMClient

_CLIENT_MODULES = {
    "ApifyClient": ".apify",
    "GoogleMapsClient": ".google_maps",
    "FirecrawlSearchClient": ".firecrawl",
    "ScoringLLMClient": ".openai_scoring",
}


def __getattr__(name: str):
    module_name = _CLIENT_MODULES.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = importlib.import_module(module_name, __name__)
    return getattr(module, name)


__all__ = list(_CLIENT_MODULES)
