"""Preference events — the "value changed" notification channel.

Every user-visible preference transition produces a PreferenceEvent.
The bus keeps them in memory and fans them out to subscribers (view
recomputation hooks, the client-side PreferenceState, tests).

Event types:
    preference_changed     Tier 1 now holds a newly written value
    preference_cleared     all tiers reverted to the default
    preference_backfilled  a slower tier's value was copied into faster tiers
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field

from pressograph.utils.clock import now_utc

logger = structlog.get_logger().bind(component="events")

Subscriber = Callable[["PreferenceEvent"], Any]


class PreferenceEvent(BaseModel):
    """A single preference transition."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str = Field(description="Request id of the RequestContext that caused it")
    event_type: str = Field(
        description="preference_changed | preference_cleared | preference_backfilled"
    )
    kind: str = Field(description="Preference kind name, e.g. 'theme'")
    value: str = Field(description="Value now in effect for the session")
    user_id: str | None = Field(default=None)
    source: str = Field(default="", description="Tier that supplied the value, for backfills")
    timestamp: datetime = Field(default_factory=now_utc)


class PreferenceEventBus:
    """In-memory event bus with synchronous subscribers.

    Subscribers run inline inside emit(). A failing subscriber is logged
    and skipped; it never breaks the write that emitted the event.
    """

    def __init__(self, keep: int = 1000) -> None:
        self._events: list[PreferenceEvent] = []
        self._subscribers: list[Subscriber] = []
        self._keep = keep

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def emit(self, event: PreferenceEvent) -> None:
        self._events.append(event)
        if len(self._events) > self._keep:
            del self._events[: len(self._events) - self._keep]

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as exc:
                logger.warning(
                    "event_subscriber_error",
                    event_type=event.event_type,
                    kind=event.kind,
                    error=str(exc),
                )

    def events_for(self, correlation_id: str) -> list[PreferenceEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    def recent(self, limit: int = 20) -> list[PreferenceEvent]:
        return self._events[-limit:]

    def clear(self) -> None:
        """Clear stored events (subscribers stay registered)."""
        self._events.clear()

    @property
    def event_count(self) -> int:
        return len(self._events)
