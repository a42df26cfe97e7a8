"""Google Maps Places lead source (alternate capability for ``google_maps``)."""

from typing import Any, Sequence

from .base import BaseLeadSource
from ..integrations.google_maps import GoogleMapsClient


class GoogleMapsPlacesSource(BaseLeadSource):
    """Text search over Google Places; each business becomes one raw record."""

    name = "google_maps_places"

    def __init__(self, platform: str, client: GoogleMapsClient):
        super().__init__(platform)
        self.client = client

    async def fetch(
        self,
        search_expression: str,
        job_titles: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        places = await self.client.text_search(search_expression)
        records = []
        for place in places:
            records.append(
                {
                    "name": place.get("name"),
                    "formatted_phone_number": place.get("formatted_phone_number"),
                    "website": place.get("website"),
                    "address": place.get("formatted_address") or place.get("vicinity"),
                    "place_id": place.get("place_id"),
                    "types": place.get("types", []),
                }
            )
        return records
