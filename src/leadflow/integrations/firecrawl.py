"""Firecrawl web search, the fallback acquisition capability.

Each hit of a platform-scoped search (``site:linkedin.com/in`` and the like)
becomes one raw lead record in :mod:`leadflow.sources.firecrawl_source`.
"""

import asyncio
import logging
from typing import Any, Optional

from firecrawl import Firecrawl

from ..config import config

logger = logging.getLogger(__name__)


class FirecrawlError(Exception):
    """A search call to Firecrawl did not produce results."""


class FirecrawlAuthError(FirecrawlError):
    pass


class FirecrawlRateLimitError(FirecrawlError):
    pass


def _classify(exc: Exception, query: str) -> FirecrawlError:
    text = str(exc)
    lowered = text.lower()
    if "401" in text or "unauthorized" in lowered:
        return FirecrawlAuthError(f"Firecrawl rejected the API key: {text}")
    if "429" in text or "rate limit" in lowered:
        return FirecrawlRateLimitError(f"Firecrawl rate limit hit: {text}")
    return FirecrawlError(f"Firecrawl search {query!r} failed: {text}")


def _plain(item: Any) -> dict[str, Any]:
    if isinstance(item, dict):
        return item
    dump = getattr(item, "model_dump", None)
    return dump() if callable(dump) else dict(vars(item))


def web_hits(response: Any) -> list[dict[str, Any]]:
    """Web results of a search response as plain dicts.

    Current SDK releases return a document with a ``web`` list, older ones a
    dict keyed by ``data``; both are accepted.
    """
    if not response:
        return []
    get = response.get if isinstance(response, dict) else lambda key: getattr(response, key, None)
    return [_plain(item) for item in (get("web") or get("data") or [])]


class FirecrawlSearchClient:
    """Async wrapper around the blocking ``Firecrawl.search`` call."""

    def __init__(self, api_key: Optional[str] = None, limit: Optional[int] = None) -> None:
        self.api_key = api_key or config.FIRECRAWL_API_KEY
        if not self.api_key:
            raise ValueError("FIRECRAWL_API_KEY is not set and no api_key was given")
        self.limit = limit or config.FIRECRAWL_SEARCH_LIMIT
        self._client = Firecrawl(api_key=self.api_key)

    async def search(self, query: str) -> list[dict[str, Any]]:
        """Search the web and return up to ``limit`` hits (``url``, ``title``, ...).

        Raises:
            FirecrawlError: or one of its subclasses for auth and rate limits.
        """
        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(
                None, lambda: self._client.search(query, limit=self.limit)
            )
        except Exception as exc:
            error = _classify(exc, query)
            logger.error("%s", error)
            raise error from exc

        hits = web_hits(response)
        logger.info("Firecrawl: %d hits for %r", len(hits), query)
        return hits
