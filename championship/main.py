"""FastAPI application entry point.

Poker championship tournament core: clock, removals, scoring, standings.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import redis.asyncio as redis
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware

from championship.config import Settings, get_settings
from championship.logging_config import (
    configure_logging,
    get_logger,
    log_context,
)
from championship.services.leaderboard import LeaderboardService
from championship.tournament.api import router as tournament_router
from championship.tournament.event_bus import TournamentEventBus
from championship.tournament.ledger import RemovalLedger
from championship.tournament.timer import TimerController
from championship.utils.db import close_db, get_session_factory, init_db
from championship.utils.errors import (
    ChampionshipError,
    ConcurrentModificationError,
    NotFoundError,
    NothingToUndoError,
)

logger = get_logger(__name__)

# API version prefix
API_V1_PREFIX = "/api/v1"


def attach_services(
    app: FastAPI,
    session_factory: async_sessionmaker[AsyncSession],
    event_bus: TournamentEventBus,
    settings: Settings,
) -> None:
    """Wire the timer, ledger and leaderboard onto app.state."""
    timer = TimerController(session_factory, event_bus)
    app.state.session_factory = session_factory
    app.state.event_bus = event_bus
    app.state.timer = timer
    app.state.ledger = RemovalLedger(
        session_factory,
        event_bus,
        timer=timer,
        auto_resume_delay_seconds=settings.auto_resume_delay_seconds,
    )
    app.state.leaderboard = LeaderboardService(session_factory)


# =============================================================================
# Lifespan Events
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services from settings unless they were injected."""
    settings: Settings = app.state.settings
    owns_services = not hasattr(app.state, "timer")

    if owns_services:
        logger.info("initializing_database")
        await init_db()

        redis_client = None
        if settings.redis_url:
            redis_client = redis.from_url(settings.redis_url, decode_responses=True)
            logger.info("event_stream_mirroring_enabled")

        attach_services(
            app,
            get_session_factory(),
            TournamentEventBus(redis_client, stream_max_len=settings.event_stream_max_len),
            settings,
        )

    logger.info("application_started", app_env=settings.app_env)

    yield

    logger.info("application_stopping")
    await app.state.timer.shutdown()
    if owns_services:
        await app.state.event_bus.close()
        await close_db()


# =============================================================================
# Exception Handlers
# =============================================================================


def get_request_id(request: Request) -> str:
    """Get request ID set by the middleware, or from headers."""
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    return request.headers.get("X-Request-ID", str(uuid.uuid4()))


def create_error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    trace_id: str | None = None,
) -> dict[str, Any]:
    """Create standardized error response."""
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        },
        "traceId": trace_id,
    }


def status_for(exc: ChampionshipError) -> int:
    if isinstance(exc, (NotFoundError, NothingToUndoError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ConcurrentModificationError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_400_BAD_REQUEST


async def championship_error_handler(
    request: Request,
    exc: ChampionshipError,
) -> JSONResponse:
    """Handle domain errors."""
    trace_id = get_request_id(request)
    status_code = status_for(exc)

    logger.info(
        "request_rejected",
        error_code=exc.code,
        status_code=status_code,
        path=request.url.path,
        trace_id=trace_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(
            code=exc.code,
            message=exc.message,
            details=exc.details,
            trace_id=trace_id,
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    trace_id = get_request_id(request)

    logger.error(
        "unexpected_error",
        error_type=type(exc).__name__,
        error_message=str(exc),
        trace_id=trace_id,
        exc_info=True,
    )

    message = "Internal server error"
    if request.app.state.settings.app_debug:
        message = f"{type(exc).__name__}: {exc}"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=create_error_response(
            code="INTERNAL_ERROR",
            message=message,
            trace_id=trace_id,
        ),
    )


# =============================================================================
# Middleware
# =============================================================================


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every request, its log lines and its response with X-Request-ID."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = datetime.now(timezone.utc)

        with log_context(request_id=request_id):
            response = await call_next(request)
            duration = (datetime.now(timezone.utc) - started).total_seconds()
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_seconds=round(duration, 3),
            )

        response.headers["X-Request-ID"] = request_id
        return response


# =============================================================================
# Health Check Endpoints
# =============================================================================


async def health_check(request: Request) -> dict[str, Any]:
    """Check database and Redis connectivity."""
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "database": "unknown",
            "redis": "not configured",
        },
    }

    try:
        async with request.app.state.session_factory() as session:
            await session.execute(text("SELECT 1"))
        health_status["services"]["database"] = "healthy"
    except Exception as e:
        health_status["services"]["database"] = f"unhealthy: {str(e)}"
        health_status["status"] = "degraded"
        logger.error("database_health_check_failed", error=str(e))

    event_redis = request.app.state.event_bus.redis
    if event_redis is not None:
        try:
            await event_redis.ping()
            health_status["services"]["redis"] = "healthy"
        except Exception as e:
            health_status["services"]["redis"] = f"unhealthy: {str(e)}"
            health_status["status"] = "degraded"
            logger.error("redis_health_check_failed", error=str(e))

    return health_status


async def liveness_probe() -> dict[str, str]:
    return {"status": "alive"}


# =============================================================================
# FastAPI Application
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    event_bus: Optional[TournamentEventBus] = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Defaults to get_settings()
        session_factory: Inject a ready session factory (tests); when given,
            services are wired immediately and the lifespan leaves the
            database alone
        event_bus: Event bus to use with an injected session factory
    """
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.app_env == "production",
        app_env=settings.app_env,
    )

    app = FastAPI(
        title="Poker Championship API",
        version="0.1.0",
        description="Tournament clock, removals, scoring and season standings",
        lifespan=lifespan,
    )
    app.state.settings = settings

    if session_factory is not None:
        attach_services(
            app,
            session_factory,
            event_bus or TournamentEventBus(),
            settings,
        )

    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(ChampionshipError, championship_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_probe, methods=["GET"], tags=["Health"])

    app.include_router(tournament_router, prefix=API_V1_PREFIX)

    return app
