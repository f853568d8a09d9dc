"""PreferenceState — injectable client-side preference store.

Holds the value currently in effect for each kind. It is seeded with the
defaults and kept current by subscribing to a PreferenceEventBus, so a view
layer can read it without touching any tier.
"""

from __future__ import annotations

from collections.abc import Callable

from pressograph.models.events import PreferenceEvent, PreferenceEventBus
from pressograph.preferences.kinds import KINDS, THEME, get_kind, next_theme
from pressograph.utils import get_logger

logger = get_logger("preferences.state")


class PreferenceState:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values = {name: kind.default for name, kind in KINDS.items()}
        for name, value in (initial or {}).items():
            self._values[name] = get_kind(name).validate(value)
        self._unsubscribe: Callable[[], None] | None = None

    def bind(self, bus: PreferenceEventBus, user_id: str | None = None) -> None:
        """Follow events from `bus`, optionally only those for one user."""
        self.unbind()

        def _on_event(event: PreferenceEvent) -> None:
            if user_id is not None and event.user_id != user_id:
                return
            self.apply(event)

        self._unsubscribe = bus.subscribe(_on_event)

    def unbind(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def apply(self, event: PreferenceEvent) -> None:
        kind = KINDS.get(event.kind)
        if kind is None or not kind.is_valid(event.value):
            logger.debug("state_event_ignored", kind=event.kind, value=event.value)
            return
        self._values[kind.name] = event.value

    def get(self, kind: str) -> str:
        return self._values[get_kind(kind).name]

    def snapshot(self) -> dict[str, str]:
        return dict(self._values)

    def toggle_theme(self) -> str:
        """Flip light/dark locally. Persisting the result is the caller's job."""
        value = next_theme(self._values[THEME.name])
        self._values[THEME.name] = value
        return value
