"""
Process entry point: serves the gateway with uvicorn and owns shutdown.

On SIGINT or SIGTERM uvicorn stops accepting connections, waits for
in-flight requests, then runs the application's lifespan shutdown, which
tears the messaging session down. Shutdown runs once; further signals
are ignored and the process exits with status 0.
"""

import sys

import uvicorn

from wa_gateway.config import get_settings
from wa_gateway.context import build_context
from wa_gateway.logging import setup_logger
from wa_gateway.main import create_app

logger = setup_logger(__name__)


class GatewayServer(uvicorn.Server):
    def handle_exit(self, sig, frame) -> None:
        if self.should_exit:
            logger.info(f"Shutdown already in progress, ignoring signal {sig}")
            return
        logger.info("Shutting down gracefully...")
        self.should_exit = True


def main() -> None:
    settings = get_settings()
    context = build_context(settings)
    app = create_app(context)

    config = uvicorn.Config(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_graceful_shutdown=settings.GRACEFUL_TIMEOUT,
    )
    server = GatewayServer(config)
    context.server = server
    server.run()
    sys.exit(0)


if __name__ == "__main__":
    main()
