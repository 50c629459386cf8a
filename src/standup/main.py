"""FastAPI application factory.

Creates the app with metrics middleware, Sentry, the v1 API router
(health + Google Chat webhook) and a lifespan that loads persisted standup
state and re-arms every scheduled standup before serving traffic.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import Response

from src.standup.api.v1.router import router as v1_router
from src.standup.config import get_settings
from src.standup.core.logging import configure_structlog
from src.standup.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.standup.core.redis import close_redis, get_redis_pool


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: load standups and start the scheduler, stop on shutdown."""
    import structlog

    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    app.state.standup = None
    service_account_path = settings.get_service_account_path()
    if service_account_path:
        from src.standup.bot.runtime import build_runtime
        from src.standup.services.gchat import ChatAuthManager, GoogleChatTransport
        from src.standup.standups.store import RedisStandupStore

        transport = GoogleChatTransport(ChatAuthManager(service_account_path))
        store = RedisStandupStore(get_redis_pool(), prefix=settings.STANDUP_KEY_PREFIX)
        runtime = build_runtime(settings, store, transport)
        await runtime.startup()
        app.state.standup = runtime
        log.info("standup.runtime_initialized")
    else:
        log.warning(
            "standup.runtime_disabled",
            reason="no Google service account configured",
        )

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    runtime = getattr(app.state, "standup", None)
    if runtime is not None:
        runtime.shutdown()

    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Standup Bot",
        version="0.1.0",
        description="Recurring room standups over Google Chat",
        lifespan=lifespan,
    )

    # Metrics middleware (records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    # Include v1 API router (health, chat webhook)
    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
