"""Apify actor lead source, one actor per platform."""

from typing import Any, Optional, Sequence
from urllib.parse import quote_plus

from .base import BaseLeadSource
from ..integrations.apify import ApifyClient

APIFY_ACTOR_IDS = {
    "linkedin": "anchor/linkedin-search-scraper",
    "google_maps": "compass/crawler-google-places",
    "website": "apify/website-content-crawler",
    "google_search": "apify/google-search-scraper",
    "instagram": "apify/instagram-scraper",
    "facebook_pages": "apify/facebook-pages-scraper",
    "twitter": "apify/twitter-scraper",
}


def build_run_input(platform: str, search_expression: str, max_results: int = 25) -> dict[str, Any]:
    """Build the actor run input for a platform.

    Each actor takes its query in a different field. Unlisted platforms use
    the Google Places shape.
    """
    if platform == "linkedin":
        run_input: dict[str, Any] = {
            "searchTerms": [search_expression],
            "maxResults": max_results,
        }
    elif platform == "google_search":
        run_input = {"queries": [search_expression], "maxPagesPerQuery": 1}
    elif platform == "instagram":
        run_input = {"search": search_expression, "resultsLimit": max_results}
    elif platform == "facebook_pages":
        run_input = {
            "startUrls": [
                {"url": f"https://www.facebook.com/search/pages?q={quote_plus(search_expression)}"}
            ],
            "maxPages": 1,
        }
    elif platform == "twitter":
        run_input = {"searchTerms": [search_expression], "maxItems": max_results}
    else:
        run_input = {
            "searchStringsArray": [search_expression],
            "maxCrawledPlaces": max_results,
        }

    run_input["proxyConfiguration"] = {"useApifyProxy": True}
    return run_input


class ApifyActorSource(BaseLeadSource):
    """Runs the platform's Apify actor and returns its dataset items."""

    name = "apify"

    def __init__(
        self,
        platform: str,
        client: ApifyClient,
        max_results: int = 25,
        actor_id: Optional[str] = None,
    ):
        super().__init__(platform)
        self.client = client
        self.max_results = max_results
        self.actor_id = actor_id or APIFY_ACTOR_IDS[platform]

    async def fetch(
        self,
        search_expression: str,
        job_titles: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        run_input = build_run_input(self.platform, search_expression, self.max_results)
        return await self.client.run_actor(self.actor_id, run_input)
