"""Main entry point for the drasbot webhook server"""
import logging

import uvicorn

from drasbot.config import API_HOST, API_PORT, LOG_LEVEL, validate_config
from drasbot.monitoring import init_sentry

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Validate configuration and serve the webhook"""
    logger.info("Validating configuration...")
    validate_config()

    if init_sentry():
        logger.info("Sentry error tracking enabled")

    from drasbot.api.server import create_api_application
    app = create_api_application()

    logger.info(f"Serving webhook on {API_HOST}:{API_PORT}")
    uvicorn.run(app, host=API_HOST, port=API_PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
