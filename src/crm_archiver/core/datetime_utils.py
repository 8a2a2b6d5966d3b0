"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime

__all__ = [
    "CRM_DATETIME_FORMAT",
    "RESTRICTION_DATETIME_FORMAT",
    "ensure_utc",
    "format_crm_datetime",
    "format_restriction_datetime",
    "truncate_to_minute",
]

# ISO 8601 without the 'T'; what the CRM stores for email dates.
CRM_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Mail store received-time filters are minute precision.
RESTRICTION_DATETIME_FORMAT = "%Y-%m-%d %H:%M"


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def truncate_to_minute(value: datetime) -> datetime:
    """Drop seconds and microseconds from ``value``."""
    return value.replace(second=0, microsecond=0)


def format_restriction_datetime(value: datetime) -> str:
    """Render ``value`` in the ``yyyy-MM-dd HH:mm`` received-time filter format."""
    return value.strftime(RESTRICTION_DATETIME_FORMAT)


def format_crm_datetime(value: datetime | None) -> str | None:
    """Render ``value`` in UTC using the CRM ``yyyy-MM-dd HH:mm:ss`` format."""
    normalized = ensure_utc(value)
    if normalized is None:
        return None
    return normalized.strftime(CRM_DATETIME_FORMAT)
