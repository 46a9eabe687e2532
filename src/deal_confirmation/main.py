"""FastAPI application entry point for the deal confirmation engine.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, wire the confirmation
       service and start the auto-resolve sweeper.
    2. Running: Serve the REST API; the sweeper runs on the same event loop.
    3. Shutdown: Stop the sweeper, close HTTP, database and Redis connections.

Run with:
    uvicorn deal_confirmation.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from deal_confirmation.config import Settings, get_settings
from deal_confirmation.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import httpx
    import redis.asyncio as aioredis

    from deal_confirmation.infrastructure.database.repositories import TransactionStore
    from deal_confirmation.services.confirmation_service import ConfirmationService


def build_confirmation_service(
    settings: Settings,
    store: TransactionStore,
    redis: aioredis.Redis | None,
    http_client: httpx.AsyncClient,
) -> ConfirmationService:
    """Wire the service with its store and collaborator adapters.

    Without a marketplace URL, notifications and dispute tickets go to the
    log; conversation lookups still need the marketplace backend.
    """
    from deal_confirmation.domain.role_resolver import RoleResolver
    from deal_confirmation.infrastructure.collaborators import (
        HttpConversationDirectory,
        HttpNotificationSender,
        HttpSupportTicketGateway,
        LoggingNotificationSender,
        LoggingSupportTicketGateway,
        RedisSettingsProvider,
    )
    from deal_confirmation.services.confirmation_service import ConfirmationService
    from deal_confirmation.services.side_effects import SideEffectDispatcher

    if settings.marketplace_api_url:
        notifications = HttpNotificationSender(http_client)
        tickets = HttpSupportTicketGateway(http_client)
    else:
        notifications = LoggingNotificationSender()
        tickets = LoggingSupportTicketGateway()

    return ConfirmationService(
        store=store,
        roles=RoleResolver(HttpConversationDirectory(http_client)),
        settings=RedisSettingsProvider(
            redis,
            default_days=settings.default_auto_resolve_days,
            prefix=settings.redis_settings_prefix,
        ),
        dispatcher=SideEffectDispatcher(notifications, tickets),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
    )

    # 2. Initialize database
    from deal_confirmation.infrastructure.database.engine import (
        close_db,
        get_session_factory,
        init_db,
    )

    await init_db()

    # 3. Initialize Redis
    from deal_confirmation.infrastructure.redis_client import close_redis, init_redis

    redis = None
    try:
        redis = await init_redis()
    except Exception as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    if not settings.marketplace_api_url:
        logger.warning("app.marketplace_url_missing", fallback="logging side effects")

    # 4. Wire the service and the sweeper
    from deal_confirmation.infrastructure.collaborators import build_marketplace_client
    from deal_confirmation.infrastructure.database.repositories import TransactionStore
    from deal_confirmation.services.auto_resolve_sweeper import AutoResolveSweeper

    http_client = build_marketplace_client(
        settings.marketplace_api_url,
        settings.marketplace_api_token,
        settings.collaborator_timeout_seconds,
    )
    store = TransactionStore(get_session_factory())
    service = build_confirmation_service(settings, store, redis, http_client)
    app.state.confirmation_service = service

    sweeper = AutoResolveSweeper(
        service,
        store,
        interval_seconds=settings.sweep_interval_seconds,
        batch_size=settings.sweep_batch_size,
    )
    app.state.sweeper = sweeper
    if settings.sweeper_enabled:
        sweeper.start()

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await sweeper.shutdown()
    await http_client.aclose()
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Deal Confirmation Engine",
        description=(
            "Two-party transaction confirmation for marketplace conversations, "
            "with auto-resolution, disputes and an audit trail."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from deal_confirmation.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from deal_confirmation.api.routes.health import router as health_router
    from deal_confirmation.api.routes.transactions import router as transactions_router

    app.include_router(health_router)
    app.include_router(transactions_router)

    return app


# The app instance used by Uvicorn
app = create_app()
