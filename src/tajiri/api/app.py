"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tajiri.config import get_settings
from tajiri.ledger.base import ConfigurationError
from tajiri.relay.factory import (
    create_key_directory,
    create_ledger_client,
    create_relay_service,
    create_wallet_registry,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    ledger = create_ledger_client(settings)
    directory = create_key_directory(settings)

    try:
        await ledger.open()
    except ConfigurationError as e:
        # Relay requests fail with a server error until the operator is configured
        logger.error(f"Ledger client not opened: {e}")

    app.state.ledger = ledger
    app.state.key_directory = directory
    app.state.relay = create_relay_service(ledger, directory, settings)
    app.state.wallet_registry = create_wallet_registry(ledger, settings)

    yield

    # Shutdown
    await directory.close()
    await ledger.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Tajiri Relay",
        description="Gasless meta-transaction relay",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    from tajiri.api.routes import admin, health, relayer

    app.include_router(health.router, tags=["Health"])
    app.include_router(relayer.router, tags=["Relayer"])
    app.include_router(admin.router, tags=["Admin"])

    return app


# Default app instance
app = create_app()
