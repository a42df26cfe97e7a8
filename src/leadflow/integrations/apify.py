"""Apify actor client.

Runs an Apify actor synchronously and returns its dataset items through the
``run-sync-get-dataset-items`` endpoint. The HTTP call is blocking, so the
async wrapper hands it to the default executor.
"""

import asyncio
import logging
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import config

logger = logging.getLogger(__name__)

APIFY_BASE_URL = "https://api.apify.com/v2"

# Seconds allowed for one synchronous actor run
DEFAULT_TIMEOUT_SECONDS = 120
MAX_RETRIES = 2
BASE_RETRY_DELAY = 1.0
RETRY_STATUSES = (429, 500, 502, 503, 504)


class ApifyError(Exception):
    """An actor run could not be started or its dataset read."""


class ApifyAuthError(ApifyError):
    """401 or 403 from the Apify API."""


class ApifyClient:
    """Runs Apify actors through the synchronous dataset endpoint.

    One pooled ``requests`` session per client; 429 and 5xx replies are
    retried with backoff before surfacing as :class:`ApifyError`.

        >>> client = ApifyClient()
        >>> items = await client.run_actor(
        ...     "compass/crawler-google-places",
        ...     {"searchStringsArray": ["marketing agency Boston"]},
        ... )
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.api_token = api_token or config.APIFY_API_TOKEN
        if not self.api_token:
            raise ValueError("APIFY_API_TOKEN is not set and no api_token was given")
        self.timeout = timeout
        self._session: Optional[requests.Session] = None

    def _get_session(self) -> requests.Session:
        if self._session is None:
            session = requests.Session()
            retries = Retry(
                total=MAX_RETRIES,
                backoff_factor=BASE_RETRY_DELAY,
                status_forcelist=RETRY_STATUSES,
                allowed_methods=frozenset({"GET", "POST"}),
                raise_on_status=False,
            )
            session.mount("https://", HTTPAdapter(max_retries=retries))
            self._session = session
        return self._session

    @staticmethod
    def build_run_url(actor_id: str) -> str:
        """Return the run-sync URL for an actor id such as ``owner/name``."""
        return f"{APIFY_BASE_URL}/acts/{actor_id.replace('/', '~')}/run-sync-get-dataset-items"

    def run_actor_sync(self, actor_id: str, run_input: dict[str, Any]) -> list[dict[str, Any]]:
        """Run an actor and return its dataset items (blocking).

        Raises:
            ApifyAuthError: If the token is rejected.
            ApifyError: On any other HTTP or decoding failure.
        """
        url = self.build_run_url(actor_id)
        logger.debug("Running Apify actor %s", actor_id)

        try:
            response = self._get_session().post(
                url,
                params={"token": self.api_token},
                json=run_input,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ApifyError(f"Actor {actor_id} request failed: {e}") from e

        if response.status_code in (401, 403):
            raise ApifyAuthError(f"Apify rejected the API token for actor {actor_id}")
        if response.status_code >= 400:
            raise ApifyError(
                f"Actor {actor_id} failed with HTTP {response.status_code}: "
                f"{response.text[:300]}"
            )

        try:
            items = response.json()
        except ValueError as e:
            raise ApifyError(f"Actor {actor_id} returned invalid JSON") from e

        if not isinstance(items, list):
            raise ApifyError(f"Actor {actor_id} returned {type(items).__name__}, expected list")

        logger.info("Apify actor %s returned %d items", actor_id, len(items))
        return items

    async def run_actor(self, actor_id: str, run_input: dict[str, Any]) -> list[dict[str, Any]]:
        """Run an actor without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.run_actor_sync, actor_id, run_input)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None
