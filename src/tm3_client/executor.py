"""
Request executor.

Issues exactly one HTTP call per request and interprets the response
envelope. There is no retry here: a failed call surfaces to the caller,
who decides whether to re-invoke.
"""

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from tm3_client.exceptions import (
    NetworkError,
    RemoteError,
    TransportError,
    UnauthorizedError,
)

logger = structlog.get_logger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown error in TM3 API"
UNAUTHORIZED_MESSAGE = "TM3 API responds with status 'Unauthorized'"
USER_AGENT = "tm3-api-client/1.0"


@dataclass
class RequestOptions:
    """Everything needed for a single HTTP call. Built fresh per request."""
    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    json: Any = None
    content: bytes | None = None


class RequestExecutor:
    """
    Owns the pooled HTTP client and turns responses into values or errors.

    The pool is bounded; requests beyond ``max_connections`` wait inside
    httpx for a free connection.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_connections: int = 5,
        debug: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.max_connections = max_connections
        self.debug = debug
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        self._request_count = 0
        self._error_count = 0

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client, creating if needed."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=self.max_connections,
                    max_connections=self.max_connections,
                ),
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def execute(self, options: RequestOptions) -> Any:
        """
        Issue one request.

        Returns:
            Parsed JSON body of a 200 response (None when the body is empty)

        Raises:
            RemoteError: non-200 status
            NetworkError: no response received
            TransportError: request could not be built or sent
        """
        self._request_count += 1
        request_id = self._request_count
        log = logger.bind(method=options.method, url=options.url, request_id=request_id)
        log.debug("API request")

        start_time = time.monotonic()
        try:
            response = await self.client.request(
                options.method,
                options.url,
                params=options.params or None,
                headers=options.headers,
                json=options.json,
                content=options.content,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self._error_count += 1
            raise self._map_transport_error(e) from e
        elapsed = time.monotonic() - start_time

        log.debug(
            "API response",
            status_code=response.status_code,
            elapsed_ms=round(elapsed * 1000),
        )

        if response.status_code != 200:
            self._error_count += 1
            raise self._remote_error(options, response.status_code, _parse_body(response))

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(
                f"Invalid JSON response: {e}",
                status_code=response.status_code,
                response_body=response.text[:500],
            )

    @asynccontextmanager
    async def stream(self, options: RequestOptions) -> AsyncIterator[httpx.Response]:
        """
        Open a streaming request and yield the response once its status is OK.

        Transport failures while the body is being consumed are mapped the
        same way as failures before the response arrives.
        """
        self._request_count += 1
        log = logger.bind(method=options.method, url=options.url, request_id=self._request_count)
        log.debug("API stream request")

        try:
            async with self.client.stream(
                options.method,
                options.url,
                params=options.params or None,
                headers=options.headers,
                json=options.json,
                content=options.content,
            ) as response:
                log.debug("API stream response", status_code=response.status_code)

                if response.status_code != 200:
                    await response.aread()
                    self._error_count += 1
                    message = None
                    if response.status_code == 401:
                        message = UNAUTHORIZED_MESSAGE
                    raise self._remote_error(
                        options, response.status_code, _parse_body(response), message=message
                    )

                yield response
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self._error_count += 1
            raise self._map_transport_error(e) from e

    def _map_transport_error(self, exc: Exception) -> NetworkError | TransportError:
        if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
            return NetworkError(f"Request was made but no response was received: {exc}")
        return TransportError(f"Request could not be sent: {exc}")

    def _remote_error(
        self,
        options: RequestOptions,
        status_code: int,
        body: Any,
        message: str | None = None,
    ) -> RemoteError:
        if message is None and isinstance(body, dict):
            message = body.get("message")
        message = message or UNKNOWN_ERROR_MESSAGE

        context = None
        if self.debug:
            context = {
                "method": options.method,
                "url": options.url,
                "params": options.params,
                "response_code": status_code,
                "response": body,
            }
            logger.error("API request failed", **context)

        error_cls = UnauthorizedError if status_code == 401 else RemoteError
        return error_cls(
            message,
            status_code=status_code,
            response_body=body,
            context=context,
        )

    def get_stats(self) -> dict[str, Any]:
        """Get transport statistics for monitoring."""
        return {
            "request_count": self._request_count,
            "error_count": self._error_count,
            "error_rate": round(self._error_count / max(1, self._request_count), 4),
        }


def _parse_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500]
