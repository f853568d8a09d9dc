"""Preference kinds — closed value sets, defaults, and per-tier names.

Each kind carries everything the three tiers need to address it:

    kind          cookie        cache key               db column
    theme         theme         theme:{user_id}         theme_preference
    locale        locale        locale:{user_id}        language_preference
    date_format   date_format   date_format:{user_id}   date_format
    time_format   time_format   time_format:{user_id}   time_format
    graph_format  graph_format  graph_format:{user_id}  graph_default_format

is_valid() is the single validation predicate. The read path uses it to
reject corrupted tier data (treated as "tier absent"); the write path uses
it to reject bad input before any tier is touched.
"""

from __future__ import annotations

from dataclasses import dataclass

from pressograph.errors import InvalidPreferenceError, UnknownPreferenceKindError


@dataclass(frozen=True)
class PreferenceKind:
    name: str
    allowed: tuple[str, ...]
    default: str
    column: str

    @property
    def cookie_name(self) -> str:
        return self.name

    def cache_key(self, user_id: str) -> str:
        return f"{self.name}:{user_id}"

    def is_valid(self, value: object) -> bool:
        return isinstance(value, str) and value in self.allowed

    def validate(self, value: object) -> str:
        if not self.is_valid(value):
            raise InvalidPreferenceError(self.name, value, self.allowed)
        return value  # type: ignore[return-value]


THEME = PreferenceKind(
    name="theme",
    allowed=("light", "dark", "system"),
    default="system",
    column="theme_preference",
)

LOCALE = PreferenceKind(
    name="locale",
    allowed=("en", "ru"),
    default="en",
    column="language_preference",
)

DATE_FORMAT = PreferenceKind(
    name="date_format",
    allowed=("MM/DD/YYYY", "DD.MM.YYYY", "YYYY-MM-DD"),
    default="YYYY-MM-DD",
    column="date_format",
)

TIME_FORMAT = PreferenceKind(
    name="time_format",
    allowed=("12h", "24h"),
    default="24h",
    column="time_format",
)

GRAPH_FORMAT = PreferenceKind(
    name="graph_format",
    allowed=("PNG", "JPEG", "SVG", "PDF"),
    default="PNG",
    column="graph_default_format",
)

KINDS: dict[str, PreferenceKind] = {
    k.name: k for k in (THEME, LOCALE, DATE_FORMAT, TIME_FORMAT, GRAPH_FORMAT)
}


def get_kind(name: str) -> PreferenceKind:
    try:
        return KINDS[name]
    except KeyError:
        raise UnknownPreferenceKindError(name) from None


def effective_theme(theme: str, prefers_dark: bool = False) -> str:
    """Resolve 'system' to a concrete theme using the client's colour-scheme hint."""
    if theme == "system":
        return "dark" if prefers_dark else "light"
    return theme


def next_theme(theme: str) -> str:
    """Toggle order used by the theme switch: light -> dark, anything else -> light."""
    return "dark" if theme == "light" else "light"
