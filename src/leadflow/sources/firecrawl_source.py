"""Firecrawl web search lead source.

Scopes the search expression to the platform's domain and turns each search
hit into a raw record. Result titles such as ``"Jane Doe - CEO - Acme |
LinkedIn"`` are split into name and headline.
"""

import re
from typing import Any, Optional, Sequence

from .base import BaseLeadSource
from ..integrations.firecrawl import FirecrawlSearchClient

PLATFORM_SITE_FILTERS = {
    "linkedin": "linkedin.com/in",
    "instagram": "instagram.com",
    "facebook_pages": "facebook.com",
    "twitter": "x.com",
}

_TITLE_SUFFIX = re.compile(r"\s*[|]\s*[^|]+$")


def split_result_title(title: Optional[str]) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Split a search result title into (name, headline, company)."""
    if not title:
        return None, None, None
    title = _TITLE_SUFFIX.sub("", title).strip()
    parts = [p.strip() for p in re.split(r"\s+[-–]\s+", title) if p.strip()]
    if not parts:
        return None, None, None
    name = parts[0]
    headline = parts[1] if len(parts) > 1 else None
    company = parts[2] if len(parts) > 2 else None
    return name, headline, company


class FirecrawlSearchSource(BaseLeadSource):
    """Platform-scoped web search through Firecrawl."""

    name = "firecrawl_search"

    def __init__(self, platform: str, client: FirecrawlSearchClient):
        super().__init__(platform)
        self.client = client

    def build_query(self, search_expression: str) -> str:
        site = PLATFORM_SITE_FILTERS.get(self.platform)
        if site:
            return f"{search_expression} site:{site}"
        return search_expression

    async def fetch(
        self,
        search_expression: str,
        job_titles: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        hits = await self.client.search(self.build_query(search_expression))
        records = []
        for hit in hits:
            metadata = hit.get("metadata") or {}
            title = hit.get("title") or metadata.get("title")
            name, headline, company = split_result_title(title)
            records.append(
                {
                    "name": name,
                    "headline": headline,
                    "company": company,
                    "url": hit.get("url") or metadata.get("sourceURL"),
                    "description": hit.get("description") or metadata.get("description"),
                }
            )
        return records
