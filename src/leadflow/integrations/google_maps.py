"""Google Places lookups for the ``google_maps`` platform.

A text search finds businesses; a Place Details call per hit adds the phone
number and website, which the text search does not return.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Optional

import googlemaps
from googlemaps.exceptions import ApiError, Timeout, TransportError

from ..config import config

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ["formatted_phone_number", "website"]


class GoogleMapsClient:
    """Async facade over the synchronous ``googlemaps.Client``.

        >>> places = await GoogleMapsClient().text_search("marketing agency Boston")
    """

    def __init__(self, api_key: Optional[str] = None, max_results: int = 20) -> None:
        self.api_key = api_key or config.GOOGLE_MAPS_API_KEY
        if not self.api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY is not set and no api_key was given")
        self.max_results = max_results
        self._client = googlemaps.Client(key=self.api_key)

    async def _call(self, fn, *args, **kwargs) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    async def contact_details(self, place_id: str) -> dict[str, Any]:
        """Phone and website for one place; empty when the lookup fails."""
        if not place_id:
            return {}
        try:
            reply = await self._call(self._client.place, place_id, fields=CONTACT_FIELDS)
        except (ApiError, TransportError, Timeout) as exc:
            logger.warning("Place details unavailable for %s: %s", place_id, exc)
            return {}
        return reply.get("result") or {}

    async def text_search(self, query: str, with_contacts: bool = True) -> list[dict[str, Any]]:
        """Places matching ``query``, capped at ``max_results``.

        A failing search raises the ``googlemaps`` exception; failing detail
        lookups only leave the affected place without contact fields.
        """
        reply = await self._call(self._client.places, query=query)
        places = (reply.get("results") or [])[: self.max_results]
        if with_contacts and places:
            contacts = await asyncio.gather(
                *(self.contact_details(place.get("place_id", "")) for place in places)
            )
            places = [{**place, **extra} for place, extra in zip(places, contacts)]
        logger.info("Places: %d results for %r", len(places), query)
        return places
