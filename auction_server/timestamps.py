"""Timestamp helpers enforcing canonical ISO-8601 formatting for stored records."""

from __future__ import annotations

from datetime import datetime, timezone

_CANONICAL_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class TimestampError(ValueError):
    """Raised when timestamps are malformed or missing timezone information."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise TimestampError("timestamp must include timezone information")
        return value.astimezone(timezone.utc)
    if not value:
        raise TimestampError("timestamp missing")
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
    except ValueError as exc:
        raise TimestampError("timestamp is not ISO-8601 compatible") from exc
    if dt.tzinfo is None:
        raise TimestampError("timestamp must include timezone information")
    return dt.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC rendering; lexical order matches chronological order."""
    return value.astimezone(timezone.utc).strftime(_CANONICAL_FORMAT)


def format_optional(value: datetime | None) -> str | None:
    return format_timestamp(value) if value is not None else None


def parse_optional(value: str | datetime | None) -> datetime | None:
    return parse_timestamp(value) if value else None
