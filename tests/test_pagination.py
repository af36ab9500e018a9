"""
Tests for the offset pagination engine.
"""

import pytest

from tm3_client.pagination import PageCursor, Paginator, ResultCountPolicy, ShortPagePolicy


class FakePages:
    """Page fetcher over an in-memory list that records each payload it gets."""

    def __init__(self, records, page_size, key="data", total=None):
        self.records = records
        self.page_size = page_size
        self.key = key
        self.total = total
        self.payloads: list[dict] = []

    async def __call__(self, payload):
        self.payloads.append(dict(payload))
        offset = payload.get("offset", 0)
        limit = payload.get("limit", self.page_size)
        page = {self.key: self.records[offset:offset + limit]}
        if self.total is not None:
            page["nbrofresults"] = self.total
        return page


class TestPageCursor:

    def test_advance(self):
        cursor = PageCursor(offset=100, limit=100)
        cursor.advance()
        cursor.advance()
        assert cursor.offset == 300
        assert cursor.limit == 100


class TestShortPagePagination:
    """Tests for entity listings terminated by a short page."""

    @pytest.mark.asyncio
    async def test_collects_all_records_in_order(self):
        records = list(range(250))
        pages = FakePages(records, page_size=100)

        result = await Paginator(pages, page_size=100).fetch_all()

        assert result == records
        assert len(pages.payloads) == 3

    @pytest.mark.asyncio
    async def test_offsets_advance_by_page_size(self):
        pages = FakePages(list(range(250)), page_size=100)

        await Paginator(pages, page_size=100).fetch_all({"lastupdatesince": "2024-01-01"})

        assert "offset" not in pages.payloads[0]
        assert pages.payloads[1]["offset"] == 100
        assert pages.payloads[1]["limit"] == 100
        assert pages.payloads[2]["offset"] == 200
        assert all(p["lastupdatesince"] == "2024-01-01" for p in pages.payloads)

    @pytest.mark.asyncio
    async def test_exact_multiple_costs_one_extra_request(self):
        pages = FakePages(list(range(300)), page_size=100)

        result = await Paginator(pages, page_size=100).fetch_all()

        assert len(result) == 300
        # Three full pages, then one empty page to confirm the end
        assert len(pages.payloads) == 4
        assert pages.payloads[-1]["offset"] == 300

    @pytest.mark.asyncio
    async def test_empty_listing(self):
        pages = FakePages([], page_size=100)

        assert await Paginator(pages, page_size=100).fetch_all() == []
        assert len(pages.payloads) == 1

    @pytest.mark.asyncio
    async def test_absent_page_stops(self):
        calls = []

        async def fetch(payload):
            calls.append(payload)
            if len(calls) == 1:
                return {"data": list(range(10))}
            return None

        result = await Paginator(fetch, page_size=10).fetch_all()

        assert result == list(range(10))
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_missing_records_field_stops(self):
        async def fetch(payload):
            return {"nbrofresults": 0}

        assert await Paginator(fetch, page_size=10).fetch_all() == []

    @pytest.mark.asyncio
    async def test_caller_payload_not_mutated(self):
        payload = {"lastupdatesince": "2024-01-01"}
        pages = FakePages(list(range(150)), page_size=100)

        await Paginator(pages, page_size=100).fetch_all(payload)

        assert payload == {"lastupdatesince": "2024-01-01"}

    @pytest.mark.asyncio
    async def test_starts_from_caller_offset(self):
        pages = FakePages(list(range(250)), page_size=100)

        result = await Paginator(pages, page_size=100).fetch_all({"offset": 100, "limit": 100})

        assert result == list(range(100, 250))
        assert [p["offset"] for p in pages.payloads] == [100, 200]

    @pytest.mark.asyncio
    async def test_null_offset_starts_from_beginning(self):
        pages = FakePages(list(range(150)), page_size=100)

        result = await Paginator(pages, page_size=100).fetch_all({"offset": None})

        assert result == list(range(150))
        assert "offset" not in pages.payloads[0]
        assert pages.payloads[1]["offset"] == 100

    def test_rejects_non_positive_page_size(self):
        async def fetch(payload):
            return None

        with pytest.raises(ValueError):
            Paginator(fetch, page_size=0)


class TestResultCountPagination:
    """Tests for query results terminated by the reported total."""

    @pytest.mark.asyncio
    async def test_stops_at_reported_total(self):
        records = list(range(2000))
        pages = FakePages(records, page_size=1000, key="results", total=2000)

        result = await Paginator(pages, page_size=1000, policy=ResultCountPolicy()).fetch_all(
            {"query": "select id from tm.contact", "limit": 1000}
        )

        assert result == records
        # No extra empty page: the total says we are done
        assert len(pages.payloads) == 2

    @pytest.mark.asyncio
    async def test_short_page_stops_without_total(self):
        pages = FakePages(list(range(1500)), page_size=1000, key="results")

        result = await Paginator(pages, page_size=1000, policy=ResultCountPolicy()).fetch_all()

        assert len(result) == 1500
        assert len(pages.payloads) == 2

    def test_policy_records_keys(self):
        assert ShortPagePolicy().records_key == "data"
        assert ResultCountPolicy().records_key == "results"
