"""
Offset pagination.

Walks an offset/limit API to completion and accumulates every page into
one ordered list. Pages are requested strictly one after another; page
N+1 is never sent before page N has arrived.

When a listing stops is decided by a policy object, so the same loop
serves both entity listings (short page means last page) and queries
(which also report a total result count).
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

logger = structlog.get_logger(__name__)

FetchPage = Callable[[dict[str, Any]], Awaitable[dict[str, Any] | None]]


@dataclass
class PageCursor:
    """Position of the next page. Offset only ever moves forward by ``limit``."""
    offset: int
    limit: int

    def advance(self) -> None:
        self.offset += self.limit


class LastPagePolicy(Protocol):
    records_key: str

    def is_last_page(
        self,
        records: list[Any],
        page: dict[str, Any],
        fetched: int,
        page_size: int,
    ) -> bool: ...


class ShortPagePolicy:
    """
    A page shorter than the limit is the last one.

    A page exactly at the limit is treated as non-terminal, so a listing
    whose total is a multiple of the page size costs one extra request
    that comes back empty.
    """

    def __init__(self, records_key: str = "data"):
        self.records_key = records_key

    def is_last_page(
        self,
        records: list[Any],
        page: dict[str, Any],
        fetched: int,
        page_size: int,
    ) -> bool:
        return len(records) < page_size


class ResultCountPolicy(ShortPagePolicy):
    """Short page, or the server-reported total has been reached."""

    def __init__(self, records_key: str = "results", count_key: str = "nbrofresults"):
        super().__init__(records_key)
        self.count_key = count_key

    def is_last_page(
        self,
        records: list[Any],
        page: dict[str, Any],
        fetched: int,
        page_size: int,
    ) -> bool:
        if super().is_last_page(records, page, fetched, page_size):
            return True
        total = page.get(self.count_key)
        return isinstance(total, int) and fetched >= total


class Paginator:
    """
    Drives a page fetcher until the result set is exhausted.

    Example:
        paginator = Paginator(fetch_page, page_size=100, policy=ShortPagePolicy())
        contacts = await paginator.fetch_all({"lastupdatesince": "2024-01-01"})
    """

    def __init__(
        self,
        fetch_page: FetchPage,
        page_size: int,
        policy: LastPagePolicy | None = None,
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        self.fetch_page = fetch_page
        self.page_size = page_size
        self.policy = policy or ShortPagePolicy()

    async def fetch_all(self, payload: dict[str, Any] | None = None) -> list[Any]:
        # Never mutate the caller's payload
        payload = dict(payload or {})

        cursor: PageCursor | None = None
        offset = payload.get("offset")
        if isinstance(offset, int) and not isinstance(offset, bool):
            cursor = PageCursor(offset=offset, limit=self.page_size)
        else:
            payload.pop("offset", None)

        records: list[Any] = []
        pages = 0

        while True:
            page = await self.fetch_page(payload)
            pages += 1

            if page is None:
                break

            batch = page.get(self.policy.records_key)
            if batch is None:
                break

            records.extend(batch)

            if self.policy.is_last_page(batch, page, len(records), self.page_size):
                break

            if cursor is None:
                cursor = PageCursor(offset=self.page_size, limit=self.page_size)
            else:
                cursor.advance()

            payload["offset"] = cursor.offset
            payload["limit"] = cursor.limit

        logger.info("Fetched all pages", pages=pages, count=len(records))
        return records
