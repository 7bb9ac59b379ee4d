"""Remote time-series store client."""

from __future__ import annotations

import logging
import math
from typing import Any, Protocol

import httpx

from .exceptions import RemoteError
from .models import UploadBatch

logger = logging.getLogger(__name__)

MAX_TIME_FIELD = "maxTimeSecs"


class RemoteStore(Protocol):
    """The two calls an upload cycle needs from the remote store."""

    async def get_max_timestamp(self) -> float | None:
        """Latest stored timestamp, or None if the store is empty."""
        ...

    async def put_batch(self, batch: UploadBatch) -> None:
        """Push a batch of rows."""
        ...


class EsdrFeedStore:
    """Feed client for an ESDR-style time-series API.

    Authenticates every request with the feed's read-write API key.

    Example:
        >>> async with EsdrFeedStore(root_url, api_key) as store:
        ...     latest = await store.get_max_timestamp()
    """

    def __init__(
        self,
        api_root_url: str,
        feed_api_key: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Create a feed client.

        Args:
            api_root_url: API root, e.g. https://esdr.cmucreatelab.org/api/v1
            feed_api_key: Read-write feed API key
            client: Existing client to use; if None one is created and owned
            timeout: Request timeout in seconds for an owned client
        """
        self._feed_url = api_root_url.rstrip("/") + "/feed"
        self._headers = {"FeedApiKey": feed_api_key}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def get_max_timestamp(self) -> float | None:
        """Fetch the feed's latest timestamp.

        Returns:
            The timestamp in seconds, or None if the feed has no data

        Raises:
            RemoteError: On transport failure, non-200 status, or a
                response without the expected field
        """
        try:
            response = await self._client.get(
                self._feed_url,
                params={"fields": MAX_TIME_FIELD},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise RemoteError(f"Request for latest timestamp failed: {e}") from e

        if response.status_code != 200:
            raise RemoteError(
                f"Unexpected response status [{response.status_code}]",
                response.status_code,
            )

        body = _json_body(response)
        data = body.get("data")
        if not isinstance(data, dict):
            raise RemoteError("Missing response data", response.status_code)
        if MAX_TIME_FIELD not in data:
            raise RemoteError(f"Missing {MAX_TIME_FIELD} in response data", response.status_code)

        value = data[MAX_TIME_FIELD]
        if value is None:
            return None
        try:
            timestamp = float(value)
        except (TypeError, ValueError) as e:
            raise RemoteError(f"Invalid {MAX_TIME_FIELD} value {value!r}") from e
        if not math.isfinite(timestamp):
            raise RemoteError(f"Invalid {MAX_TIME_FIELD} value {value!r}")
        return timestamp

    async def put_batch(self, batch: UploadBatch) -> None:
        """Upload a batch of rows to the feed.

        Raises:
            RemoteError: On transport failure or a non-2xx status
        """
        try:
            response = await self._client.put(
                self._feed_url,
                json=batch.to_json(),
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise RemoteError(f"Upload of {len(batch)} rows failed: {e}") from e

        if not response.is_success:
            raise RemoteError(
                f"Upload rejected with status [{response.status_code}]: {response.text[:200]}",
                response.status_code,
            )
        logger.debug("Feed accepted %d rows (status %d)", len(batch), response.status_code)

    async def aclose(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "EsdrFeedStore":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.aclose()


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as e:
        raise RemoteError("Missing response body", response.status_code) from e
    if not isinstance(body, dict):
        raise RemoteError("Missing response body", response.status_code)
    return body
