"""Exception taxonomy.

Validation errors propagate to the caller. Tier errors are raised by the
cache and database clients and downgraded to "tier absent" (reads) or a
failed WriteResult (writes) by the sync layer.
"""

from __future__ import annotations


class PressographError(Exception):
    """Base class for all Pressograph errors."""


class InvalidPreferenceError(PressographError, ValueError):
    """A value is not a member of the preference kind's allowed set."""

    def __init__(self, kind: str, value: object, allowed: tuple[str, ...]) -> None:
        self.kind = kind
        self.value = value
        self.allowed = allowed
        super().__init__(
            f"Invalid {kind} value {value!r}; expected one of {', '.join(allowed)}"
        )


class UnknownPreferenceKindError(PressographError, KeyError):
    """No preference kind is registered under the given name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown preference kind: {self.name!r}"


class TierUnavailableError(PressographError, RuntimeError):
    """The cache or the database could not serve a request."""

    def __init__(self, tier: str, message: str) -> None:
        self.tier = tier
        super().__init__(f"{tier} unavailable: {message}")
