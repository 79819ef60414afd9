"""Asynchronous API client over httpx.

The client performs exactly one HTTP call per method invocation.
Retry and backoff belong to the cache policy of the resource being
fetched, not to the transport.

Non-2xx responses raise :class:`HttpStatusError`; connection failures and
timeouts raise :class:`TransportFailure`.  Both derive from
:class:`FetchError` so callers can catch any fetch failure at once.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from querystate.infrastructure.session import SessionContext

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class FetchError(Exception):
    """Base exception for failed API calls.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code if applicable, None otherwise.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return True


class TransportFailure(FetchError):
    """The request never produced a response (connect error, timeout)."""


class HttpStatusError(FetchError):
    """The API answered with a non-2xx status.

    Server errors (500, 502, 503, 504) plus 408 and 429 are retryable.
    Other statuses are the caller's fault and are not.
    """

    _RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

    @property
    def retryable(self) -> bool:
        return self.status_code in self._RETRYABLE_STATUS_CODES


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return f"HTTP {response.status_code} from {response.request.url}"


class ApiClient:
    """Thin async wrapper around :class:`httpx.AsyncClient`.

    Usage::

        async with ApiClient("http://localhost:5000", session=session) as api:
            body = await api.get("/test", params={"page": "2"})

    Attributes:
        base_url: API origin; ``/api/v1`` is appended.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: SessionContext | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + API_PREFIX
        self.timeout = timeout
        self._session = session
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ApiClient:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={"Content-Type": "application/json"},
        )
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Issue one request and return the decoded JSON body."""
        if self._client is None:
            msg = "ApiClient not opened. Use 'async with ApiClient(...) as api:'"
            raise RuntimeError(msg)

        headers = self._session.auth_headers() if self._session is not None else {}
        logger.debug("api.request %s %s params=%s", method, path, params)
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise TransportFailure(
                f"Request timed out after {self.timeout}s",
                details={"path": path, "method": method},
            ) from exc
        except httpx.TransportError as exc:
            raise TransportFailure(
                f"Could not reach API at {self.base_url}",
                details={"path": path, "method": method, "error": str(exc)},
            ) from exc

        if not response.is_success:
            raise HttpStatusError(
                _error_message(response),
                status_code=response.status_code,
                details={"path": path, "method": method},
            )
        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("DELETE", path, params=params)
