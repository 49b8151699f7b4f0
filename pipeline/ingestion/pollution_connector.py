"""
Pollution API Connector.

Authenticates against the upstream pollution service and fetches raw
city records. Any timeout, HTTP error, network error or malformed payload
is raised as UpstreamFetchError: without source data there is no page to serve.
"""

import logging
import os
from typing import Optional

import httpx
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

POLLUTION_API_BASE_URL = os.environ.get("POLLUTION_API_BASE_URL", "https://be-recruitment-task.onrender.com")
POLLUTION_API_USERNAME = os.environ.get("POLLUTION_API_USERNAME", "testuser")
POLLUTION_API_PASSWORD = os.environ.get("POLLUTION_API_PASSWORD", "testpass")
REQUEST_TIMEOUT = float(os.environ.get("POLLUTION_REQUEST_TIMEOUT", "30"))  # seconds
USER_AGENT = os.environ.get("USER_AGENT", "CityAir/1.0.0")


class UpstreamFetchError(Exception):
    """The pollution source was unreachable or answered with an unusable payload."""


class PollutionConnector:
    """
    Async client for the upstream pollution API.

    Logs in lazily on the first fetch and reuses the bearer token. A 401 on
    fetch drops the token and retries once with a fresh login.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or POLLUTION_API_BASE_URL).rstrip("/")
        self._username = username or POLLUTION_API_USERNAME
        self._password = password or POLLUTION_API_PASSWORD
        self._token: Optional[str] = None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )

    @property
    def token(self) -> Optional[str]:
        return self._token

    async def authenticate(self) -> str:
        """Log in and store the bearer token."""
        logger.info("Authenticating with pollution API at %s", self.base_url)
        try:
            resp = await self._client.post(
                "/auth/login",
                json={"username": self._username, "password": self._password},
            )
            resp.raise_for_status()
            payload = resp.json()
        except httpx.TimeoutException as e:
            logger.error("Pollution API login timed out")
            raise UpstreamFetchError("Login timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error("Pollution API login HTTP error %s", e.response.status_code)
            raise UpstreamFetchError(f"Login failed with HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("Pollution API login network error: %s", e)
            raise UpstreamFetchError(f"Login network error: {e}") from e
        except ValueError as e:
            logger.error("Pollution API login returned malformed JSON")
            raise UpstreamFetchError("Login returned malformed JSON") from e

        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            logger.error("Pollution API login response missing 'token'")
            raise UpstreamFetchError("Login response missing token")

        self._token = token
        logger.info("Authenticated with pollution API")
        return token

    async def _get_pollution(self, params: dict) -> httpx.Response:
        if not self._token:
            await self.authenticate()
        return await self._client.get(
            "/pollution",
            params=params,
            headers={"Authorization": f"Bearer {self._token}"},
        )

    async def fetch_pollution_data(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        country: Optional[str] = None,
    ) -> dict:
        """
        Fetch raw pollution records.

        Args:
            page: Upstream page number (omitted when None).
            limit: Upstream page size (omitted when None).
            country: Optional country filter passed through to the source.

        Returns:
            The decoded payload; payload["results"] is a list of raw records.

        Raises:
            UpstreamFetchError: On timeout, HTTP/network error or malformed payload.
        """
        params = {k: v for k, v in (("country", country), ("page", page), ("limit", limit)) if v is not None}
        logger.info("Fetching pollution data from %s/pollution", self.base_url)

        try:
            resp = await self._get_pollution(params)
            if resp.status_code == 401:
                logger.warning("Pollution API token rejected, re-authenticating")
                self._token = None
                resp = await self._get_pollution(params)
            resp.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error("Pollution API request timed out")
            raise UpstreamFetchError("Pollution request timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error("Pollution API HTTP error %s", e.response.status_code)
            raise UpstreamFetchError(f"Pollution request failed with HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("Pollution API network error: %s", e)
            raise UpstreamFetchError(f"Pollution request network error: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            logger.error("Pollution API returned malformed JSON")
            raise UpstreamFetchError("Pollution API returned malformed JSON") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
            logger.error("Pollution API response missing 'results' list")
            raise UpstreamFetchError("Invalid response format: expected results array")

        logger.info("Fetched %d pollution entries", len(payload["results"]))
        return payload

    async def aclose(self) -> None:
        await self._client.aclose()
