"""Preference API endpoints.

Each handler builds a RequestContext from the incoming cookies, runs one
PreferenceSync operation, and copies the resulting cookie mutations onto
the response. Unknown kinds become 404 and invalid values 400 via the
exception handlers registered in pressograph.api.app.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Response

from pressograph.api.dependencies import (
    get_manager,
    get_request_context,
    get_user_id,
    require_user_id,
)
from pressograph.models.schemas import (
    PreferenceBatchResponse,
    PreferenceSetRequest,
    PreferenceValueResponse,
    PreferenceWriteResponse,
    WriteResult,
)
from pressograph.preferences.context import RequestContext
from pressograph.preferences.sync import PreferenceManager

router = APIRouter(prefix="/api/preferences", tags=["preferences"])


def _to_write_response(result: WriteResult) -> PreferenceWriteResponse:
    return PreferenceWriteResponse(
        success=result.success,
        kind=result.kind,
        value=result.value,
        error=result.error,
    )


@router.get("", response_model=dict[str, str])
async def list_preferences(
    response: Response,
    manager: PreferenceManager = Depends(get_manager),
    ctx: RequestContext = Depends(get_request_context),
    user_id: str | None = Depends(get_user_id),
):
    """Effective value of every preference kind as a flat {kind: value} dict."""
    values = await manager.get_all(ctx, user_id)
    ctx.apply(response)
    return values


@router.patch("", response_model=PreferenceBatchResponse)
async def update_preferences(
    response: Response,
    body: dict[str, Any] = Body(...),
    manager: PreferenceManager = Depends(get_manager),
    ctx: RequestContext = Depends(get_request_context),
    user_id: str | None = Depends(get_user_id),
):
    """Set several kinds at once from a flat {kind: value} body.

    The whole batch is rejected with 400/404 if any field is invalid.
    """
    results = await manager.set_many(ctx, body, user_id)
    ctx.apply(response)
    return PreferenceBatchResponse(
        success=all(r.success for r in results.values()),
        values={name: r.value for name, r in results.items()},
        errors={name: r.error for name, r in results.items() if r.error},
    )


@router.get("/{kind}", response_model=PreferenceValueResponse)
async def get_preference(
    kind: str,
    response: Response,
    manager: PreferenceManager = Depends(get_manager),
    ctx: RequestContext = Depends(get_request_context),
    user_id: str | None = Depends(get_user_id),
):
    sync = manager.for_kind(kind)
    value = await sync.get(ctx, user_id)
    ctx.apply(response)
    return PreferenceValueResponse(kind=sync.kind.name, value=value)


@router.put("/{kind}", response_model=PreferenceWriteResponse)
async def set_preference(
    kind: str,
    body: PreferenceSetRequest,
    response: Response,
    manager: PreferenceManager = Depends(get_manager),
    ctx: RequestContext = Depends(get_request_context),
    user_id: str | None = Depends(get_user_id),
):
    """Write a value. A cache/database failure still returns 200 with success=false."""
    result = await manager.for_kind(kind).set(ctx, body.value, user_id)
    ctx.apply(response)
    return _to_write_response(result)


@router.delete("/{kind}", response_model=PreferenceWriteResponse)
async def clear_preference(
    kind: str,
    response: Response,
    manager: PreferenceManager = Depends(get_manager),
    ctx: RequestContext = Depends(get_request_context),
    user_id: str | None = Depends(get_user_id),
):
    """Reset to the default by removing the value from every tier."""
    result = await manager.for_kind(kind).clear(ctx, user_id)
    ctx.apply(response)
    return _to_write_response(result)


@router.post("/{kind}/sync", response_model=PreferenceValueResponse)
async def sync_preference(
    kind: str,
    response: Response,
    manager: PreferenceManager = Depends(get_manager),
    ctx: RequestContext = Depends(get_request_context),
    user_id: str = Depends(require_user_id),
):
    """Overwrite cookie and cache with the stored value (call after login)."""
    sync = manager.for_kind(kind)
    value = await sync.sync(ctx, user_id)
    ctx.apply(response)
    return PreferenceValueResponse(kind=sync.kind.name, value=value)
