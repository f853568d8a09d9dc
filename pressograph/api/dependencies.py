"""FastAPI dependencies: the shared PreferenceManager, request context, user id."""

from __future__ import annotations

from fastapi import HTTPException, Request

from pressograph.config import settings
from pressograph.preferences.context import RequestContext
from pressograph.preferences.sync import PreferenceManager
from pressograph.utils import bind_request


def get_manager(request: Request) -> PreferenceManager:
    return request.app.state.manager


async def get_request_context(request: Request) -> RequestContext:
    """Request-scoped cookie context. Also binds request_id and user_id for logging.

    Declared async so FastAPI runs it on the event loop, in the same context
    as the endpoint; a threadpool dependency would lose the binding.
    """
    ctx = RequestContext.from_request(request)
    bind_request(ctx.request_id, get_user_id(request))
    return ctx


def get_user_id(request: Request) -> str | None:
    """Authenticated user id set by the upstream proxy, or None for anonymous sessions."""
    user_id = request.headers.get(settings.user_id_header, "").strip()
    return user_id or None


def require_user_id(request: Request) -> str:
    user_id = get_user_id(request)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id
