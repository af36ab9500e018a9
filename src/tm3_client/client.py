"""
TM3 API Client

Asynchronous client for the generic TM3 surface:
- Signed requests (HMAC per call)
- Declarative endpoint table
- Transparent offset pagination for listings and queries
- Fetch-once cache for lookup lists
- Streaming export
- Per-client call statistics

Nothing is retried here. Failures surface when the coroutine is awaited.
"""

import asyncio
from pathlib import Path
from typing import Any

import httpx
import structlog

from tm3_client.cache import ReferenceCache
from tm3_client.config import ClientSettings
from tm3_client.endpoints import EndpointResolver, Identifier, filter_params
from tm3_client.exceptions import EmptyPayloadError, TransportError
from tm3_client.executor import RequestExecutor, RequestOptions
from tm3_client.export import StreamExporter
from tm3_client.pagination import Paginator, ResultCountPolicy, ShortPagePolicy
from tm3_client.signer import sign
from tm3_client.stats import StatsCounters

logger = structlog.get_logger(__name__)


class TM3Client:
    """
    Client for one TM3 account.

    Example:
        settings = ClientSettings(
            credentials=ClientCredentials(shortname="acme", key="...", secret="...")
        )

        async with TM3Client(settings) as api:
            contacts = await api.list_all("contacts", {"lastupdatesince": "2024-01-01"})
            print(api.get_stats())
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Credentials, endpoint table and tuning (defaults to an
                unauthenticated client on the bundled endpoint table)
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
        """
        # Runtime setters only touch this client's copy
        self.settings = settings.model_copy(deep=True) if settings else ClientSettings()

        credentials = self.settings.credentials
        self.resolver = EndpointResolver(
            self.settings.endpoints,
            shortname=credentials.shortname if credentials else None,
        )
        self.executor = RequestExecutor(
            timeout=self.settings.timeout,
            max_connections=self.settings.max_connections,
            debug=self.settings.debug,
            transport=transport,
        )
        self.exporter = StreamExporter(self.executor)
        self.cache = ReferenceCache(self.settings.cached_types)
        self.stats = StatsCounters()

        self._log = logger.bind(
            shortname=credentials.shortname if credentials else None,
            host=self.settings.endpoints.host,
        )

    async def __aenter__(self) -> "TM3Client":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close pooled connections."""
        await self.executor.aclose()

    # -------------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        if self.settings.credentials is None:
            return {}
        return sign(self.settings.credentials)

    def _options(
        self,
        operation: str,
        endpoint: str,
        id: Identifier | None = None,
        **kwargs: Any,
    ) -> RequestOptions:
        url = self.resolver.resolve_url(operation, endpoint, id)
        method = "GET" if operation in ("list", "get") else operation.upper()
        return RequestOptions(url=url, method=method, headers=self._headers(), **kwargs)

    def _params(self, payload: dict[str, Any] | None) -> dict[str, Any]:
        return filter_params(payload, self.settings.endpoints.params_optional)

    async def _list_page(self, endpoint: str, payload: dict[str, Any] | None) -> Any:
        options = self._options("list", endpoint, params=self._params(payload))
        return await self.executor.execute(options)

    async def _query_page(self, payload: dict[str, Any]) -> Any:
        options = self._options("post", "queries", json=payload)
        return await self.executor.execute(options)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_one(
        self,
        endpoint: str,
        id: Identifier,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Get a single record by ID (or composite ID pair)."""
        options = self._options("get", endpoint, id, params=self._params(payload))
        self.stats.increment("get")
        return await self.executor.execute(options)

    async def list_page(self, endpoint: str, payload: dict[str, Any] | None = None) -> Any:
        """Get one page of a listing, as returned by the API."""
        self.stats.increment("get")
        return await self._list_page(endpoint, payload)

    async def get_list(self, endpoint: str, payload: dict[str, Any] | None = None) -> Any:
        """
        Get one page of a listing, served from the reference cache for
        lookup types.

        The cache is keyed by endpoint name only; the payload of the first
        call decides what gets cached.
        """
        async def load() -> Any:
            self.stats.increment("get")
            return await self._list_page(endpoint, payload)

        return await self.cache.get_or_load(endpoint, load)

    async def list_all(self, endpoint: str, payload: dict[str, Any] | None = None) -> list[Any]:
        """
        Get every record of a listing by walking all pages.

        Returns:
            The records of all pages, in order
        """
        # Fail before counting when the endpoint is unknown
        self.resolver.resolve_url("list", endpoint)
        self.stats.increment("get")

        paginator = Paginator(
            lambda page_payload: self._list_page(endpoint, page_payload),
            page_size=self.settings.page_size,
            policy=ShortPagePolicy("data"),
        )
        records = await paginator.fetch_all(payload)
        self._log.info("Fetched listing", endpoint=endpoint, count=len(records))
        return records

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(
        self,
        endpoint: str,
        payload: dict[str, Any] | None,
        id: Identifier | None = None,
    ) -> Any:
        """POST a new record. ``id`` fills templates with a parent identifier."""
        if payload is None:
            raise EmptyPayloadError(f"No payload for POST {endpoint}")

        options = self._options("post", endpoint, id, json=payload)
        self.stats.increment("post")
        return await self.executor.execute(options)

    async def update(
        self,
        endpoint: str,
        id: Identifier,
        payload: dict[str, Any] | None,
    ) -> Any:
        """
        PUT changes to a record.

        An empty payload means nothing to change: no request is sent and
        None is returned.
        """
        options = self._options("put", endpoint, id, json=payload)

        if payload is None:
            raise EmptyPayloadError(f"No payload for PUT {endpoint}")
        if not payload:
            return None

        self.stats.increment("put")
        return await self.executor.execute(options)

    async def delete(
        self,
        endpoint: str,
        id: Identifier,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """DELETE a record, optionally sending a body."""
        options = self._options("delete", endpoint, id, json=payload)
        self.stats.increment("delete")
        return await self.executor.execute(options)

    async def save_image(self, id: Identifier, file_path: str | Path) -> Any:
        """Upload a local image file to a record. The file is read in a worker thread."""
        options = self._options("post", "saveimage", id)
        try:
            options.content = await asyncio.to_thread(Path(file_path).read_bytes)
        except OSError as e:
            raise TransportError(f"Could not read image {file_path}: {e}") from e

        self.stats.increment("post")
        return await self.executor.execute(options)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def run_query(self, sql: str, limit: int | None = None) -> list[Any] | None:
        """Run one SQL query and return its ``results``."""
        payload: dict[str, Any] = {"query": sql}
        if limit is not None:
            payload["limit"] = limit

        self.resolver.resolve_url("post", "queries")
        self.stats.increment("query")
        result = await self._query_page(payload)
        return result.get("results") if result else None

    async def run_query_all(self, sql: str) -> list[Any]:
        """Run a SQL query and page through every result."""
        self.resolver.resolve_url("post", "queries")
        self.stats.increment("query")

        page_size = self.settings.query_page_size
        paginator = Paginator(self._query_page, page_size=page_size, policy=ResultCountPolicy())
        return await paginator.fetch_all({"query": sql, "limit": page_size})

    async def export_query(self, sql: str) -> list[Any]:
        """Run a SQL query through the streaming export endpoint."""
        options = self._options("post", "export", json={"query": sql})
        self.stats.increment("export")
        return await self.exporter.export(options)

    # -------------------------------------------------------------------------
    # Settings & observability
    # -------------------------------------------------------------------------

    def set_debug(self, debug: bool) -> None:
        self.settings.debug = bool(debug)
        self.executor.debug = self.settings.debug

    def set_host(self, host: str) -> bool:
        changed = self.settings.endpoints.set_host(host)
        if changed:
            self._log = self._log.bind(host=self.settings.endpoints.host)
        return changed

    def set_schema(self, schema: str) -> bool:
        return self.settings.endpoints.set_schema(schema)

    def get_stats(self) -> dict[str, int]:
        """Snapshot of call counters."""
        return self.stats.snapshot()

    def reset_stats(self) -> None:
        self.stats.reset()

    def get_diagnostics(self) -> dict[str, Any]:
        """Counters plus transport and cache statistics."""
        return {
            "calls": self.stats.snapshot(),
            "transport": self.executor.get_stats(),
            "cache": self.cache.get_stats(),
        }
