"""Centralised wall-clock helpers — single source of truth for 'now'.

Cache envelopes, events and records all take their timestamps from here,
so tests patch one function instead of chasing datetime.now() calls.
"""

from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def epoch_ms() -> int:
    """Milliseconds since the epoch, as stored in cache envelopes."""
    return int(now_utc().timestamp() * 1000)
