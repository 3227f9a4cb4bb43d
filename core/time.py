"""Time-related helpers.

This module centralizes helpers for obtaining timestamps in UTC.  Returning
timestamps through a single function guarantees that the format stays
consistent across the entire application.  Components that make decisions
based on the current time (certificate expiry, renewal windows) receive a
:class:`Clock` so tests can substitute a controllable implementation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


def utc_now() -> datetime:
    """Return the current UTC time as an aware ``datetime`` instance."""

    return datetime.now(timezone.utc)


def utc_now_isoformat() -> str:
    """Return the current UTC time in ISO 8601 format ending with ``Z``."""

    return utc_now().isoformat().replace("+00:00", "Z")


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Clock backed by the wall clock."""

    def now(self) -> datetime:
        return utc_now()


def ensure_aware(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are assumed UTC)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = ["Clock", "SystemClock", "ensure_aware", "utc_now", "utc_now_isoformat"]
