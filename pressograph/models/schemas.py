"""Core schemas — write results, durable records, and API bodies."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class WriteResult(BaseModel):
    """Outcome of a write or clear.

    success=False never means the value was rejected: validation failures
    raise instead. It means Tier 1 holds the value but the cache and/or the
    database could not be updated, so other devices may see a stale value.
    """

    success: bool = Field(default=True, description="All reachable tiers were updated")
    kind: str = Field(description="Preference kind name")
    value: str = Field(description="Value now visible to the current session")
    error: str | None = Field(default=None, description="Joined tier error messages")
    failed_tiers: list[str] = Field(
        default_factory=list,
        description="Tiers that failed: 'cache' and/or 'database'",
    )


class PreferenceRecord(BaseModel):
    """One user_preferences row."""

    user_id: str
    theme_preference: str | None = None
    language_preference: str | None = None
    date_format: str | None = None
    time_format: str | None = None
    graph_default_format: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PreferenceSetRequest(BaseModel):
    """Request body for setting a preference value.

    Any JSON type is accepted here; membership in the kind's allowed set is
    checked by the sync layer, which turns a bad value into a 400.
    """

    value: Any


class PreferenceValueResponse(BaseModel):
    kind: str
    value: str


class PreferenceWriteResponse(BaseModel):
    success: bool
    kind: str
    value: str
    error: str | None = None


class PreferenceBatchResponse(BaseModel):
    """Result of a multi-kind PATCH; `errors` maps kind to its tier error."""

    success: bool
    values: dict[str, str]
    errors: dict[str, str] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str = Field(description="'ok' when both tiers answer, otherwise 'degraded'")
    cache: bool
    database: bool
