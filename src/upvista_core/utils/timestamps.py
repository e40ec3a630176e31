"""Timestamp parsing for rows returned by the store.

The store emits timestamps with a timezone (``Z`` or ``+hh:mm``), without a
timezone but with fractional seconds of any precision, or without either.
All of them go through :func:`parse_timestamp`; timezone-less values are UTC.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

_TIMESTAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[T ](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<tz>Z|z|[+-]\d{2}(?::?\d{2})?)?$"
)

MICROSECOND_DIGITS = 6


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def parse_timestamp(value: str) -> datetime:
    """Parse a store timestamp into an aware UTC datetime.

    Fractional seconds longer than microseconds are truncated; shorter ones
    are zero-padded.

    Args:
        value: Timestamp text as emitted by the store

    Returns:
        Timezone-aware datetime normalised to UTC

    Raises:
        ValueError: If ``value`` is not a recognised timestamp
    """
    match = _TIMESTAMP_RE.match(value.strip())
    if match is None:
        raise ValueError(f"unrecognised timestamp: {value!r}")

    fraction = (match.group("fraction") or "")[:MICROSECOND_DIGITS]
    fraction = fraction.ljust(MICROSECOND_DIGITS, "0")

    tz = match.group("tz")
    if tz is None or tz in ("Z", "z"):
        tz = "+00:00"
    elif len(tz) == 3:
        tz = f"{tz}:00"
    elif ":" not in tz:
        tz = f"{tz[:3]}:{tz[3:]}"

    parsed = datetime.fromisoformat(
        f"{match.group('date')}T{match.group('time')}.{fraction}{tz}"
    )
    return parsed.astimezone(UTC)


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way the store expects it in filters and bodies."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_row_timestamps(payload: Any) -> Any:
    """Recursively convert every ``*_at`` string field into a datetime.

    Embedded resources (nested mappings and lists) are walked as well, so an
    author projection or embedded poll options come back parsed too.
    """
    if isinstance(payload, list):
        return [parse_row_timestamps(item) for item in payload]
    if isinstance(payload, Mapping):
        converted: dict[str, Any] = {}
        for key, item in payload.items():
            if key.endswith("_at") and isinstance(item, str) and item:
                converted[key] = parse_timestamp(item)
            else:
                converted[key] = parse_row_timestamps(item)
        return converted
    return payload
