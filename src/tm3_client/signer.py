"""
Request signing.

TM3 expects a time-stamped HMAC in the Authorization header of every
request. The timestamp has second precision, so the header is rebuilt
for each call rather than cached.
"""

import hashlib
import hmac
from datetime import datetime, timezone

from tm3_client.config import ClientCredentials

AUTH_SCHEME = "TM-HMAC-SHA256"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def utc_timestamp(now: datetime | None = None) -> str:
    """Format a moment as UTC, second precision, no offset."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime(TIMESTAMP_FORMAT)


def compute_signature(credentials: ClientCredentials, timestamp: str) -> str:
    payload = credentials.key + credentials.shortname + timestamp
    return hmac.new(
        credentials.secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def sign(credentials: ClientCredentials, timestamp: str | None = None) -> dict[str, str]:
    """
    Build the Authorization header for one request.

    Args:
        credentials: Account shortname, key and secret
        timestamp: Pre-formatted timestamp (defaults to now)

    Returns:
        Header map with a single Authorization entry
    """
    ts = timestamp or utc_timestamp()
    signature = compute_signature(credentials, ts)
    return {
        "Authorization": f"{AUTH_SCHEME} key={credentials.key} ts={ts} sign={signature}"
    }
