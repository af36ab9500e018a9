"""
Pytest configuration and fixtures for TM3 client tests.
"""

import json

import httpx
import pytest

from tm3_client import ClientCredentials, ClientSettings, TM3Client


@pytest.fixture
def credentials():
    """Test account credentials."""
    return ClientCredentials(
        shortname="acme",
        key="4f1a8c2e9b7d",
        secret="s3cr3t-0123456789abcdef",
    )


@pytest.fixture
def settings(credentials):
    """Settings for a signed client on the bundled endpoint table."""
    return ClientSettings(credentials=credentials)


@pytest.fixture
def sample_contacts():
    """250 contacts, enough for two full pages and a short one."""
    return [
        {"id": 1000 + i, "firstname": f"Contact {i}", "lastupdatets": "2024-01-15 10:30:00"}
        for i in range(250)
    ]


@pytest.fixture
def sample_address_types():
    """Sample lookup list response."""
    return {
        "data": [
            {"id": 1, "name": "Home"},
            {"id": 2, "name": "Work"},
        ],
        "nbrofresults": 2,
    }


class RecordingHandler:
    """
    MockTransport handler that records every request it sees.

    Wraps a function of (request) -> httpx.Response.
    """

    def __init__(self, respond):
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def count(self) -> int:
        return len(self.requests)


def paged_listing(records, key="data", default_limit=100):
    """Serve ``records`` with offset/limit taken from query params or JSON body."""
    def respond(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            body = json.loads(request.content)
        else:
            body = dict(request.url.params)
        offset = int(body.get("offset", 0))
        limit = int(body.get("limit", default_limit))
        return httpx.Response(
            200,
            json={key: records[offset:offset + limit], "nbrofresults": len(records)},
        )
    return respond


@pytest.fixture
def make_client(settings):
    """Factory for clients wired to a recording mock transport."""
    def factory(respond, **overrides):
        handler = RecordingHandler(respond)
        client_settings = settings.model_copy(update=overrides) if overrides else settings
        client = TM3Client(client_settings, transport=httpx.MockTransport(handler))
        return client, handler
    return factory


@pytest.fixture
def listing():
    """The paged_listing responder factory."""
    return paged_listing
