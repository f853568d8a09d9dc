"""Pressograph Preferences — three-tier preference synchronization.

Architecture:
    PreferenceKind     — closed value set, default, and per-tier names (kinds.py)
    RequestContext     — request-scoped signed cookies, Tier 1 (context.py)
    PreferenceCache    — Redis JSON envelope with TTL, Tier 2 (cache.py)
    PreferenceRepository — Postgres user_preferences row, Tier 3 (repository.py)
    PreferenceSync     — read cascade + best-effort write fan-out (sync.py)
    PreferenceManager  — one PreferenceSync per kind, batch reads/writes (sync.py)
    PreferenceState    — client-side store fed by preference events (state.py)
"""

from .kinds import (
    DATE_FORMAT,
    GRAPH_FORMAT,
    KINDS,
    LOCALE,
    THEME,
    TIME_FORMAT,
    PreferenceKind,
    get_kind,
)
from .state import PreferenceState
from .sync import PreferenceManager, PreferenceSync

__all__ = [
    "DATE_FORMAT",
    "GRAPH_FORMAT",
    "KINDS",
    "LOCALE",
    "THEME",
    "TIME_FORMAT",
    "PreferenceKind",
    "PreferenceManager",
    "PreferenceState",
    "PreferenceSync",
    "get_kind",
]
