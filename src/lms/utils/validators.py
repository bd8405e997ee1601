"""Data validation and identifier helpers.

ID conventions:
- Entity ids: UUID4 hex (32 lowercase hex chars)
- Slugs: lowercase words joined by hyphens ("getting-started")
- Certificate numbers: "CERT-<epoch-ms>-<9 uppercase alphanumerics>"

Functions:
- new_id() -> str: Fresh entity id
- utc_now_iso() -> str: Current UTC timestamp in ISO-8601
- round_half_up(value) -> int: Percent rounding used for scores and progress
- validate_email(email) -> bool
- slugify(text) -> str
"""

import math
import re
import uuid
from datetime import datetime, timezone

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")
SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def new_id() -> str:
    """Generate a new entity id."""
    return uuid.uuid4().hex


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string."""
    return utc_now().isoformat()


def from_unix(ts: int | float | None) -> str | None:
    """Convert a unix timestamp (seconds) to an ISO-8601 UTC string."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 string, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up.

    Python's round() uses banker's rounding (round(62.5) == 62); percentages
    shown to students must match the usual 62.5 -> 63 convention.
    """
    return int(math.floor(value + 0.5))


def validate_email(email: str) -> bool:
    """Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if the address looks valid, False otherwise
    """
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def slugify(text: str) -> str:
    """Turn a title into a URL slug."""
    return SLUG_PATTERN.sub("-", text.lower()).strip("-")
