"""Main entry point - runs the API server."""

import logging

import uvicorn

from payroute.api.app import create_app
from payroute.config import get_settings

logger = logging.getLogger(__name__)


def main():
    """Configure logging and serve the API until interrupted."""
    settings = get_settings()

    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info("Starting PayRoute...")
    logger.info(f"Environment: {settings.environment}")
    if settings.is_production and settings.allow_degraded_fallback:
        logger.warning("Degraded vault fallbacks are enabled in production")
    if settings.is_production and settings.debug:
        logger.warning("Debug mode is on in production")

    app = create_app()
    logger.info(f"Starting API server on {settings.api_host}:{settings.api_port}")
    try:
        uvicorn.run(
            app,
            host=settings.api_host,
            port=settings.api_port,
            log_level="debug" if settings.debug else "info",
        )
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")


if __name__ == "__main__":
    main()
