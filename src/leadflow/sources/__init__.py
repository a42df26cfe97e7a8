"""Lead source capabilities and the per-run registry that dispatches to them.

The registry maps normalized platform names (``"Google Maps"`` becomes
``google_maps``) to a :class:`BaseLeadSource`. Unknown platforms resolve to
None; the acquisition stage logs and skips them.

:func:`build_source_registry` applies the fallback chain:

1. Apify token: an Apify actor source for every known platform.
2. Otherwise Google Maps Places for ``google_maps`` and Firecrawl web search
   for the remaining platforms, each when its key is configured.
3. Otherwise, if mock leads are allowed, one synthetic source for all
   platforms.
4. Otherwise acquisition is unavailable, which is fatal to the run.
"""

import logging
import re
from typing import Dict, Iterable, Optional

from .base import BaseLeadSource
from .apify_source import APIFY_ACTOR_IDS, ApifyActorSource
from .mock_source import MockLeadSource
from ..config import Config, config as default_config

logger = logging.getLogger(__name__)

KNOWN_PLATFORMS = tuple(APIFY_ACTOR_IDS.keys())


class AcquisitionUnavailableError(Exception):
    """Raised when no lead source capability can be initialized."""

    pass


def normalize_platform(platform: str) -> str:
    """Lower-case a platform name and replace whitespace runs with ``_``."""
    return re.sub(r"\s+", "_", (platform or "").strip().lower())


class LeadSourceRegistry:
    """Explicit platform -> lead source mapping, built once per run."""

    def __init__(self) -> None:
        self._sources: Dict[str, BaseLeadSource] = {}

    def register(self, platform: str, source: BaseLeadSource) -> None:
        self._sources[normalize_platform(platform)] = source

    def resolve(self, platform: str) -> Optional[BaseLeadSource]:
        """Return the source for a platform, or None if it is unknown."""
        return self._sources.get(normalize_platform(platform))

    def platforms(self) -> list[str]:
        return list(self._sources.keys())

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, platform: str) -> bool:
        return normalize_platform(platform) in self._sources


def build_source_registry(
    cfg: Optional[Config] = None,
    platforms: Iterable[str] = KNOWN_PLATFORMS,
) -> LeadSourceRegistry:
    """Build the registry for one run from the configured credentials.

    Args:
        cfg: Configuration to read credentials from. Defaults to the global config.
        platforms: Platforms to register sources for.

    Returns:
        A non-empty registry.

    Raises:
        AcquisitionUnavailableError: If no capability is configured and mock
            leads are disabled, or a configured client cannot be created.
    """
    cfg = cfg or default_config
    platforms = [normalize_platform(p) for p in platforms]
    registry = LeadSourceRegistry()

    try:
        if cfg.APIFY_API_TOKEN:
            from ..integrations.apify import ApifyClient

            client = ApifyClient(
                api_token=cfg.APIFY_API_TOKEN,
                timeout=cfg.ACQUISITION_TIMEOUT_SECONDS,
            )
            for platform in platforms:
                if platform in APIFY_ACTOR_IDS:
                    registry.register(
                        platform,
                        ApifyActorSource(platform, client, max_results=cfg.APIFY_MAX_RESULTS),
                    )
            logger.info("Using Apify actors for %d platforms", len(registry))
            return registry

        if cfg.GOOGLE_MAPS_API_KEY and "google_maps" in platforms:
            from ..integrations.google_maps import GoogleMapsClient
            from .google_maps_source import GoogleMapsPlacesSource

            maps_client = GoogleMapsClient(
                api_key=cfg.GOOGLE_MAPS_API_KEY,
                max_results=cfg.APIFY_MAX_RESULTS,
            )
            registry.register("google_maps", GoogleMapsPlacesSource("google_maps", maps_client))

        if cfg.FIRECRAWL_API_KEY:
            from ..integrations.firecrawl import FirecrawlSearchClient
            from .firecrawl_source import FirecrawlSearchSource

            search_client = FirecrawlSearchClient(
                api_key=cfg.FIRECRAWL_API_KEY,
                limit=cfg.FIRECRAWL_SEARCH_LIMIT,
            )
            for platform in platforms:
                if platform in KNOWN_PLATFORMS and platform not in registry:
                    registry.register(platform, FirecrawlSearchSource(platform, search_client))
    except ValueError as e:
        raise AcquisitionUnavailableError(f"Lead source could not be initialized: {e}") from e

    if len(registry):
        logger.info("Using alternate lead sources for: %s", ", ".join(registry.platforms()))
        return registry

    if cfg.ALLOW_MOCK_LEADS:
        if cfg.has_lead_source():
            logger.warning(
                "No configured lead source serves %s; generating mock leads", ", ".join(platforms)
            )
        else:
            logger.warning("No lead source configured; generating mock leads")
        mock = MockLeadSource()
        for platform in platforms:
            if platform in KNOWN_PLATFORMS:
                registry.register(platform, mock)
        return registry

    raise AcquisitionUnavailableError(
        "No lead source configured: set APIFY_API_TOKEN, GOOGLE_MAPS_API_KEY "
        "or FIRECRAWL_API_KEY, or enable ALLOW_MOCK_LEADS"
    )


__all__ = [
    "AcquisitionUnavailableError",
    "BaseLeadSource",
    "KNOWN_PLATFORMS",
    "LeadSourceRegistry",
    "build_source_registry",
    "normalize_platform",
]
