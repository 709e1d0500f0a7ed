from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the long-lived collaborators: one quota engine and one Kagi client per
app, kept on ``app.state`` and handed to routes through dependencies.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from kagi_relay.adapters.kagi.base import AbstractKagiClient
from kagi_relay.adapters.kagi.factory import create_kagi_client
from kagi_relay.api.routes import commands_router, health_router
from kagi_relay.core.config import settings
from kagi_relay.core.exception_handlers import setup_exception_handlers
from kagi_relay.core.logging import configure_logging
from kagi_relay.core.middleware import request_id_middleware
from kagi_relay.core.openapi import apply_openapi_customizations
from kagi_relay.core.quota import build_quota_engine
from kagi_relay.quota.compaction import QuotaCompactor
from kagi_relay.quota.engine import QuotaEngine
from kagi_relay.services.command_service import CommandService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load persisted usage, run periodic compaction, release the Kagi client."""
    engine: QuotaEngine = app.state.quota_engine
    engine.load()

    compactor = QuotaCompactor(engine, interval_seconds=settings.quota.compaction_interval_seconds)
    compactor.start()
    logger.info("app.started", extra={"records": len(engine.ledger)})
    try:
        yield
    finally:
        await compactor.stop()
        await app.state.kagi_client.aclose()
        logger.info("app.stopped")


def create_app(
    *,
    kagi_client: AbstractKagiClient | None = None,
    quota_engine: QuotaEngine | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        kagi_client: Kagi client to use instead of one built from settings.
        quota_engine: Quota engine to use instead of one built from settings.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.

    Raises:
        ConfigurationError: If quota settings are malformed or KAGI_API_KEY
            is missing.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    engine = quota_engine or build_quota_engine(settings.quota)
    kagi = kagi_client or create_kagi_client(settings.kagi)

    app = FastAPI(
        title="Kagi Relay",
        description=(
            "Chat command backend for the Kagi APIs (Search, Enrichment, FastGPT and "
            "Universal Summarizer). Every command is gated by per-user rolling-window "
            "query limits and answered with chat-ready replies. Callers identify the "
            "invoking user with the identity header."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    app.state.quota_engine = engine
    app.state.kagi_client = kagi
    app.state.command_service = CommandService(kagi=kagi)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(commands_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (identity scheme, tags)
    apply_openapi_customizations(app)

    return app
