"""
Wikipedia REST Connector.

Fetches the plain-text summary ("extract") of a page by title. A 404 or a
response without an extract is a normal "not found" and returns None;
every other failure is raised as httpx's own exception so the caller can
stop probing.
"""

import logging
import os
from typing import Optional
from urllib.parse import quote

import httpx
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

WIKIPEDIA_API_BASE_URL = os.environ.get("WIKIPEDIA_API_BASE_URL", "https://en.wikipedia.org/api/rest_v1")
REQUEST_TIMEOUT = float(os.environ.get("WIKIPEDIA_REQUEST_TIMEOUT", "10"))  # seconds
USER_AGENT = os.environ.get("USER_AGENT", "CityAir/1.0.0")


class WikipediaConnector:
    """Async client for the page-summary endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or WIKIPEDIA_API_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )

    async def fetch_summary(self, title: str) -> Optional[str]:
        """
        Fetch the summary extract for a page title.

        Args:
            title: Page title or search term, e.g. "Berlin" or "Berlin, Germany".

        Returns:
            The stripped extract, or None if the page does not exist or has no extract.

        Raises:
            httpx.TimeoutException, httpx.HTTPStatusError, httpx.RequestError
        """
        resp = await self._client.get(f"/page/summary/{quote(title, safe='')}")
        if resp.status_code == 404:
            logger.debug("Wikipedia page not found: %s", title)
            return None
        resp.raise_for_status()

        try:
            payload = resp.json()
        except ValueError:
            logger.warning("Wikipedia returned malformed JSON for %s", title)
            return None

        extract = payload.get("extract") if isinstance(payload, dict) else None
        if not isinstance(extract, str) or not extract.strip():
            return None
        return extract.strip()

    async def __call__(self, title: str) -> Optional[str]:
        return await self.fetch_summary(title)

    async def aclose(self) -> None:
        await self._client.aclose()
