"""
Endpoint resolution and query parameter whitelisting.
"""

from typing import Any

import structlog

from tm3_client.config import EndpointTable
from tm3_client.exceptions import TransportError, UnknownEndpointError

logger = structlog.get_logger(__name__)

OPERATIONS = frozenset({"list", "get", "post", "put", "delete"})

# Operations that address a single record
ID_OPERATIONS = frozenset({"get", "put", "delete"})

# Placeholder used when no account shortname is configured
NO_SHORTNAME = "_"

Identifier = int | str | tuple[Any, Any] | list[Any]


class EndpointResolver:
    """
    Turns (operation, endpoint, id) into a fully qualified URL.

    Example:
        resolver = EndpointResolver(table, shortname="acme")
        resolver.resolve_url("get", "contacts", 42)
        # https://apps.ticketmatic.com/api/1/acme/contacts/42
    """

    def __init__(self, table: EndpointTable, shortname: str | None = None):
        self.table = table
        self.shortname = shortname

    def resolve_url(
        self,
        operation: str,
        endpoint: str,
        id: Identifier | None = None,
    ) -> str:
        if operation not in OPERATIONS:
            raise UnknownEndpointError(f"Unknown operation {operation!r} for {endpoint}")

        path = self.table.endpoints.get(endpoint)
        if path is None:
            raise UnknownEndpointError(f"Unknown {operation} {endpoint}")

        template = self.table.base_url + path
        if operation in ID_OPERATIONS and endpoint not in self.table.no_extra_param:
            template += "/{}"

        args: list[Any] = [self.shortname or NO_SHORTNAME]
        if id is not None:
            # Composite keys fill two positions, e.g. (contact_id, address_id)
            if isinstance(id, (tuple, list)) and len(id) == 2:
                args.extend(id)
            else:
                args.append(id)

        try:
            return template.format(*args)
        except IndexError:
            raise TransportError(
                f"Missing identifier for {operation} {endpoint}"
            ) from None


def filter_params(payload: dict[str, Any] | None, allowed: set[str]) -> dict[str, Any]:
    """Keep only whitelisted payload fields as query parameters."""
    if payload is None:
        return {}

    params: dict[str, Any] = {}
    for key, value in payload.items():
        if key not in allowed:
            logger.warning("Attribute skipped", attribute=key)
            continue
        params[key] = value

    return params
