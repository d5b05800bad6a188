"""
ARM Transport - Authenticated HTTP calls against Azure Resource Manager.

One ArmTransport is created per run and passed explicitly to every accessor
call; there is no shared module-level client.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import aiohttp

from errors import RemoteNotFound, TransportError
from operations import HandleStyle, OperationHandle, OperationState, OperationStatus

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://management.azure.com"


@dataclass
class TransportResponse:
    """Status, decoded JSON body and headers of one call."""

    status: int
    body: Dict[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class ArmTransport:
    """
    Thin aiohttp wrapper for ARM requests.

    Raises RemoteNotFound for 404 and TransportError for any other non-2xx
    status or connection failure.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        access_token: Optional[str] = None,
        endpoint: str = DEFAULT_ENDPOINT,
    ):
        self.session = session
        self.access_token = access_token
        self.endpoint = endpoint.rstrip("/")

        if not self.access_token:
            logger.warning(
                "ARM access token not configured. Set ARM_ACCESS_TOKEN environment variable."
            )

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.endpoint}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        api_version: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> TransportResponse:
        """
        Issue one request.

        Args:
            method: HTTP method.
            path: Resource path (an identifier) or an absolute URL.
            api_version: Value for the api-version query parameter.
            json: Optional request body.

        Returns:
            TransportResponse for any 2xx status.
        """
        url = self._url(path)
        params = {"api-version": api_version} if api_version else None

        try:
            async with self.session.request(
                method, url, headers=self._get_headers(), params=params, json=json
            ) as response:
                body: Dict[str, Any] = {}
                if response.status != 204:
                    text = await response.text()
                    if text:
                        try:
                            body = await response.json(content_type=None)
                        except ValueError:
                            body = {"raw": text}
                result = TransportResponse(
                    status=response.status, body=body, headers=dict(response.headers)
                )
        except aiohttp.ClientError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TransportError(f"{method} {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error(f"{method} {url} timed out")
            raise TransportError(f"{method} {url} timed out") from e

        if result.status == 404:
            raise RemoteNotFound(url, result.body)
        if result.status >= 400:
            error = result.body.get("error", result.body)
            logger.error(f"{method} {url} returned {result.status}: {error}")
            raise TransportError(
                f"{method} {url} returned {result.status}: {error}",
                status=result.status,
                body=result.body,
            )

        logger.debug(f"{method} {url} -> {result.status}")
        return result

    async def get(self, path: str, api_version: str) -> TransportResponse:
        return await self.request("GET", path, api_version)

    async def put(
        self, path: str, api_version: str, body: Dict[str, Any]
    ) -> TransportResponse:
        return await self.request("PUT", path, api_version, json=body)

    async def post(
        self, path: str, api_version: str, body: Optional[Dict[str, Any]] = None
    ) -> TransportResponse:
        return await self.request("POST", path, api_version, json=body)

    async def delete(self, path: str, api_version: str) -> TransportResponse:
        return await self.request("DELETE", path, api_version)

    @staticmethod
    def operation_handle(response: TransportResponse) -> Optional[OperationHandle]:
        """
        Extract a long-running operation handle from a mutation response.

        Only 201/202 responses carrying Azure-AsyncOperation or Location
        headers are long-running; everything else is final.
        """
        if response.status not in (201, 202):
            return None

        retry_after = _parse_retry_after(response.header("Retry-After"))
        async_url = response.header("Azure-AsyncOperation")
        if async_url:
            return OperationHandle(
                status_url=async_url,
                style=HandleStyle.ASYNC_OPERATION,
                retry_after=retry_after,
            )

        location = response.header("Location")
        if location:
            return OperationHandle(
                status_url=location, style=HandleStyle.LOCATION, retry_after=retry_after
            )
        return None

    async def poll(self, handle: OperationHandle) -> OperationStatus:
        """Check the status of a long-running operation once."""
        try:
            response = await self.request("GET", handle.status_url)
        except TransportError as e:
            # A Location URL reports a failed operation through its status code
            if handle.style is HandleStyle.LOCATION and e.status is not None:
                return OperationStatus(
                    state=OperationState.FAILED,
                    error=e.body.get("error", {"status": e.status}),
                    body=e.body,
                )
            raise
        retry_after = _parse_retry_after(response.header("Retry-After"))

        if handle.style is HandleStyle.LOCATION:
            # The Location URL answers 202 until the operation finishes
            if response.status == 202:
                return OperationStatus(
                    state=OperationState.IN_PROGRESS,
                    retry_after=retry_after,
                    body=response.body,
                )
            return OperationStatus(
                state=OperationState.SUCCEEDED,
                retry_after=retry_after,
                body=response.body,
            )

        return OperationStatus(
            state=OperationState.from_remote(response.body.get("status")),
            error=response.body.get("error"),
            retry_after=retry_after,
            body=response.body,
        )
