"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, Sentry,
lifespan wiring of the stores and sync orchestrator onto ``app.state``,
and the health and v1 API routers.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import Response

from src.currentprompt.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.currentprompt.api.v1 import health
from src.currentprompt.api.v1.router import router as v1_router
from src.currentprompt.catalog.repository import ModuleRepository
from src.currentprompt.config import Settings, SyncConfig, get_settings
from src.currentprompt.core.database import close_db, get_session, init_db
from src.currentprompt.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.currentprompt.sync.engine import SyncOrchestrator
from src.currentprompt.sync.postgres import PostgresPrimaryStore
from src.currentprompt.sync.webflow import WebflowMirrorStore
from src.currentprompt.sync.webhooks import WebhookIngestor

log = structlog.get_logger(__name__)


def _init_sync(app: FastAPI, settings: Settings) -> None:
    """Build stores, orchestrator and webhook ingestor onto app.state."""
    app.state.sync_orchestrator = None
    app.state.webhook_ingestor = None
    app.state.mirror_store = None

    if not settings.webflow_configured():
        log.warning("sync.webflow_not_configured")
        return

    config = SyncConfig.from_settings(settings)
    primary = PostgresPrimaryStore(ModuleRepository(session_factory=get_session), config)
    mirror = WebflowMirrorStore(
        token=settings.WEBFLOW_API_TOKEN,
        collection_id=settings.WEBFLOW_COLLECTION_ID,
        categories_collection_id=settings.WEBFLOW_CATEGORIES_COLLECTION_ID,
        tags_collection_id=settings.WEBFLOW_TAGS_COLLECTION_ID,
        config=config,
        timeout=settings.WEBFLOW_TIMEOUT_SECONDS,
    )
    orchestrator = SyncOrchestrator(primary, mirror, config)

    app.state.mirror_store = mirror
    app.state.sync_orchestrator = orchestrator
    app.state.webhook_ingestor = WebhookIngestor(
        orchestrator, primary, mirror, secret=config.webhook_secret
    )
    log.info(
        "sync.initialized",
        tie_tolerance_seconds=config.tie_tolerance_seconds,
        max_concurrency=config.max_concurrency,
        auto_publish=config.auto_publish,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and sync on startup, close on shutdown."""
    settings = get_settings()
    configure_structlog()
    await init_db()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    _init_sync(app, settings)

    yield

    mirror = getattr(app.state, "mirror_store", None)
    if mirror is not None:
        await mirror.aclose()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="CurrentPrompt Catalog Sync",
        version="0.1.0",
        description="Bidirectional module sync between PostgreSQL and Webflow CMS",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(MetricsMiddleware)

    app.include_router(health.router)
    app.include_router(v1_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
