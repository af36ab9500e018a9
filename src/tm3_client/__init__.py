"""
TM3 API Client

Async client for the TM3 ticketing REST API.

Features:
- HMAC-signed requests
- Declarative endpoint table (get, list, post, put, delete)
- Transparent offset pagination for listings and SQL queries
- Fetch-once cache for lookup lists, with concurrent request de-duplication
- Streaming query export
- Per-client call statistics

Quick Start:
    settings = ClientSettings.from_env()
    async with TM3Client(settings) as api:
        contacts = await api.list_all("contacts")
"""

from tm3_client.client import TM3Client
from tm3_client.config import (
    ClientCredentials,
    ClientSettings,
    EndpointTable,
    load_endpoint_table,
)
from tm3_client.exceptions import (
    EmptyPayloadError,
    ExportError,
    NetworkError,
    RemoteError,
    TM3Error,
    TransportError,
    UnauthorizedError,
    UnknownEndpointError,
)
from tm3_client.cache import ReferenceCache, SlotState
from tm3_client.pagination import (
    PageCursor,
    Paginator,
    ResultCountPolicy,
    ShortPagePolicy,
)
from tm3_client.signer import sign
from tm3_client.stats import StatsCounters

__version__ = "1.0.0"
__all__ = [
    # Client
    "TM3Client",

    # Configuration
    "ClientCredentials",
    "ClientSettings",
    "EndpointTable",
    "load_endpoint_table",

    # Errors
    "TM3Error",
    "UnknownEndpointError",
    "EmptyPayloadError",
    "RemoteError",
    "UnauthorizedError",
    "NetworkError",
    "TransportError",
    "ExportError",

    # Pagination
    "PageCursor",
    "Paginator",
    "ResultCountPolicy",
    "ShortPagePolicy",

    # Cache
    "ReferenceCache",
    "SlotState",

    # Signing & stats
    "sign",
    "StatsCounters",
]
