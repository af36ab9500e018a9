"""
Client configuration.

Credentials, the declarative endpoint table and per-client settings.
Nothing here is process-global: every TM3Client holds its own settings.
"""

import json
import os
from importlib import resources
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger(__name__)

SCHEMAS = ("http", "https")

KNOWN_HOSTS = (
    "apps.ticketmatic.com",
    "test.ticketmatic.com",
    "qa.ticketmatic.com",
    "localhost",
)

# Local development server
LOCALHOST_PORT = 9002

# API offset limits
LIST_PAGE_SIZE = 100
QUERY_PAGE_SIZE = 1000

# Lookup lists that rarely change and are cached for the life of a client
DEFAULT_CACHED_TYPES = frozenset({
    "addresstypes",
    "contacttitles",
    "phonenumbertypes",
    "customfields",
    "relationtypes",
    "saleschannels",
    "paymentmethods",
    "pricetypes",
})


class ClientCredentials(BaseModel):
    """Account shortname plus API key pair."""

    model_config = ConfigDict(frozen=True)

    shortname: str
    key: str
    secret: str = Field(repr=False)


class EndpointTable(BaseModel):
    """
    Declarative mapping of endpoint names to URL templates.

    Templates use positional ``{}`` placeholders: the account shortname
    first, then one or two identifiers.
    """

    model_config = ConfigDict(populate_by_name=True)

    scheme: str = Field("https", alias="schema")
    host: str = "apps.ticketmatic.com"
    path: str = "/api/1"
    endpoints: dict[str, str] = Field(default_factory=dict)
    no_extra_param: set[str] = Field(default_factory=set)
    params_optional: set[str] = Field(default_factory=set)

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}{self.path}"

    def set_schema(self, schema: str) -> bool:
        """Switch between http and https. Unknown values are logged and ignored."""
        if schema not in SCHEMAS:
            logger.warning("Could not set schema", schema=schema)
            return False
        self.scheme = schema
        return True

    def set_host(self, host: str) -> bool:
        """
        Point the table at one of the known API hosts.

        ``localhost`` implies the local development port and plain http.
        Unknown hosts are logged and ignored.
        """
        if host not in KNOWN_HOSTS:
            logger.warning("Could not set host", host=host)
            return False

        if host == "localhost":
            self.host = f"{host}:{LOCALHOST_PORT}"
            self.scheme = "http"
        else:
            self.host = host
        return True


def load_endpoint_table(path: str | Path | None = None) -> EndpointTable:
    """
    Load an endpoint table from JSON.

    Without a path, the table bundled with the package is used.
    """
    if path is None:
        raw = resources.files("tm3_client").joinpath("endpoints.json").read_text()
    else:
        raw = Path(path).read_text()

    table = EndpointTable.model_validate(json.loads(raw))
    logger.debug("Loaded endpoint table", endpoints=len(table.endpoints), host=table.host)
    return table


class ClientSettings(BaseModel):
    """Everything one client instance needs to talk to the API."""

    credentials: ClientCredentials | None = None
    endpoints: EndpointTable = Field(default_factory=load_endpoint_table)
    debug: bool = False
    timeout: float = 30.0
    max_connections: int = 5
    page_size: int = LIST_PAGE_SIZE
    query_page_size: int = QUERY_PAGE_SIZE
    cached_types: frozenset[str] = DEFAULT_CACHED_TYPES

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientSettings":
        """
        Build settings from environment variables.

        Reads TM3_SHORTNAME, TM3_API_KEY, TM3_API_SECRET, TM3_HOST,
        TM3_SCHEMA and TM3_DEBUG. Keyword overrides win over the environment.
        """
        shortname = os.environ.get("TM3_SHORTNAME")
        key = os.environ.get("TM3_API_KEY")
        secret = os.environ.get("TM3_API_SECRET")

        values: dict[str, Any] = {}
        if shortname and key and secret:
            values["credentials"] = ClientCredentials(
                shortname=shortname, key=key, secret=secret
            )

        debug = os.environ.get("TM3_DEBUG")
        if debug is not None:
            values["debug"] = debug.lower() in ("true", "1", "yes")

        values.update(overrides)
        settings = cls(**values)

        host = os.environ.get("TM3_HOST")
        if host:
            settings.endpoints.set_host(host)
        schema = os.environ.get("TM3_SCHEMA")
        if schema:
            settings.endpoints.set_schema(schema)

        return settings
