"""Main entry point - runs the relay API."""

import logging

import uvicorn

from tajiri.api.app import create_app
from tajiri.config import get_settings

logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    settings = get_settings()

    # Configure logging
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info("Starting Tajiri relay...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Ledger network: {settings.ledger_network}")

    if not settings.has_operator:
        logger.warning("OPERATOR_ACCOUNT_ID/OPERATOR_PRIVATE_KEY not set - relaying disabled")

    app = create_app()
    logger.info(f"Starting API server on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
