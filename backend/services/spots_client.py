"""HTTP client for the upstream spots API.

Every call issues exactly one request. Failures are classified into
``ErrorClass`` values and raised as ``SpotFetchError``; retrying is left to
the sync controllers, which own all timing policy.
"""

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import ValidationError

from config import settings
from models.spot import Spot
from models.types import ErrorClass
from utils.logger import client_logger as logger



class SpotFetchError(Exception):
    """A spot fetch failed; ``error_class`` says how the caller should react."""

    def __init__(
        self,
        error_class: ErrorClass,
        message: str = "",
        *,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message or error_class.value)
        self.error_class = error_class
        self.status_code = status_code
        self.url = url

    @property
    def is_not_found(self) -> bool:
        return self.error_class == ErrorClass.NOT_FOUND


class SpotNotFoundError(SpotFetchError):
    def __init__(self, message: str = "", *, url: Optional[str] = None):
        super().__init__(ErrorClass.NOT_FOUND, message, status_code=404, url=url)


def classify_status(status_code: int) -> Optional[ErrorClass]:
    """Map an HTTP status to an error class (``None`` for 2xx)."""
    if 200 <= status_code < 300:
        return None
    if status_code == 404:
        return ErrorClass.NOT_FOUND
    return ErrorClass.TRANSIENT


class SpotsClient:
    """Client for the spots API"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or settings.SPOTS_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.SPOTS_REQUEST_TIMEOUT_SECONDS
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def spot_url(self, spot_id: str, model: Optional[str] = None) -> str:
        url = f"{self.base_url}/{spot_id}"
        if model:
            url = f"{url}/{model}"
        return url

    async def _get_json(self, url: str, **kwargs) -> object:
        client = await self._get_client()
        try:
            response = await client.get(url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Spots API request failed", url=url, error=str(exc))
            raise SpotFetchError(
                ErrorClass.TRANSIENT, f"Request failed: {exc}", url=url
            ) from exc

        error_class = classify_status(response.status_code)
        if error_class == ErrorClass.NOT_FOUND:
            logger.warning("Spot not found", url=url, status=response.status_code)
            raise SpotNotFoundError(f"HTTP error! status: {response.status_code}", url=url)
        if error_class is not None:
            logger.warning("Spots API returned error status", url=url, status=response.status_code)
            raise SpotFetchError(
                error_class,
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Spots API returned malformed JSON", url=url, error=str(exc))
            raise SpotFetchError(
                ErrorClass.TRANSIENT,
                "Malformed response body",
                status_code=response.status_code,
                url=url,
            ) from exc

    async def fetch_spot(self, spot_id: str, model: Optional[str] = None) -> Spot:
        """Fetch a single spot, optionally for one forecast model"""
        url = self.spot_url(spot_id, model)
        data = await self._get_json(url)
        if not isinstance(data, dict):
            logger.warning("Invalid spot payload", url=url, payload_type=type(data).__name__)
            raise SpotFetchError(ErrorClass.TRANSIENT, "Invalid data format: expected spot object", url=url)
        try:
            return Spot.from_api_response(data)
        except ValidationError as exc:
            logger.warning("Spot payload failed validation", url=url, error=str(exc))
            raise SpotFetchError(ErrorClass.TRANSIENT, "Invalid spot payload", url=url) from exc

    async def fetch_all_spots(self) -> list[Spot]:
        """Fetch all spots with forecasts and current conditions"""
        url = self.base_url
        data = await self._get_json(url, headers={"Cache-Control": "no-store"})
        if not isinstance(data, list):
            logger.warning("Invalid spots payload", url=url, payload_type=type(data).__name__)
            raise SpotFetchError(
                ErrorClass.TRANSIENT, "Invalid data format: Expected array of spots", url=url
            )
        try:
            return [Spot.from_api_response(item) for item in data]
        except ValidationError as exc:
            logger.warning("Spots payload failed validation", url=url, error=str(exc))
            raise SpotFetchError(ErrorClass.TRANSIENT, "Invalid spots payload", url=url) from exc
