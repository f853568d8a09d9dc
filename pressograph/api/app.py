"""FastAPI application entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pressograph import __version__
from pressograph.api import routes
from pressograph.errors import InvalidPreferenceError, UnknownPreferenceKindError
from pressograph.models.events import PreferenceEventBus
from pressograph.models.schemas import HealthResponse
from pressograph.preferences.cache import PreferenceCache
from pressograph.preferences.repository import PreferenceRepository
from pressograph.preferences.sync import PreferenceManager
from pressograph.tools.pg_client import PgClient
from pressograph.tools.redis_client import RedisClient
from pressograph.utils import get_logger, setup_logging

logger = get_logger("api")


def create_app(
    manager: PreferenceManager | None = None,
    redis: RedisClient | None = None,
    pg: PgClient | None = None,
    bus: PreferenceEventBus | None = None,
) -> FastAPI:
    """Build the app. Clients passed in are used as-is and not closed on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = []
        if app.state.redis is None:
            app.state.redis = RedisClient()
            owned.append(app.state.redis)
        if app.state.pg is None:
            app.state.pg = PgClient()
            owned.append(app.state.pg)
            if not await app.state.pg.connect():
                logger.warning("api_started_without_database")
        if app.state.manager is None:
            app.state.manager = PreferenceManager(
                PreferenceCache(app.state.redis),
                PreferenceRepository(app.state.pg),
                bus=app.state.bus,
            )
        logger.info("api_started", version=__version__)
        try:
            yield
        finally:
            for client in owned:
                await client.close()
            logger.info("api_stopped")

    app = FastAPI(
        title="Pressograph",
        description="Cookie / cache / database preference synchronization",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.manager = manager
    app.state.redis = redis
    app.state.pg = pg
    app.state.bus = bus or (manager.bus if manager is not None else PreferenceEventBus())

    app.include_router(routes.router)

    @app.exception_handler(InvalidPreferenceError)
    async def invalid_preference_handler(request: Request, exc: InvalidPreferenceError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(UnknownPreferenceKindError)
    async def unknown_kind_handler(request: Request, exc: UnknownPreferenceKindError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Ping both shared tiers. Always 200; status is 'degraded' if either is down."""
        state = request.app.state
        cache_ok = await state.redis.ping() if state.redis is not None else False
        db_ok = await state.pg.ping() if state.pg is not None else False
        return HealthResponse(
            status="ok" if cache_ok and db_ok else "degraded",
            cache=cache_ok,
            database=db_ok,
        )

    return app


setup_logging()
app = create_app()
