import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from wa_gateway.api import router
from wa_gateway.context import AppContext
from wa_gateway.errors import GatewayError, ShutdownError
from wa_gateway.logging import log_exception, setup_logger
from wa_gateway.responses import resp
from wa_gateway.services.messaging import MessagingClient

logger = setup_logger(__name__)


async def start_session(client: MessagingClient) -> None:
    """Run the client's session start-up; readiness arrives as an event."""
    try:
        await client.initialize()
    except Exception as e:
        log_exception(logger, "WhatsApp client failed to initialize", e)


async def shutdown_client(client: MessagingClient, timeout: float) -> Optional[ShutdownError]:
    """
    Tear the client session down with a single bounded attempt.

    Failures are logged and returned, never raised, so they cannot block
    process exit.
    """
    try:
        await asyncio.wait_for(client.destroy(), timeout=timeout)
    except asyncio.TimeoutError:
        error = ShutdownError(f"WhatsApp client teardown timed out after {timeout}s")
        logger.error(error.message)
        return error
    except Exception as e:
        error = ShutdownError(f"Error during WhatsApp client shutdown: {e}")
        log_exception(logger, error.message, e)
        return error

    logger.info("WhatsApp client destroyed")
    return None


def create_app(context: AppContext) -> FastAPI:
    """Build the gateway application around an already constructed context."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context.staging.prepare()
        session_task = asyncio.create_task(start_session(context.client))
        logger.info(f"Gateway starting on {context.settings.HOST}:{context.settings.PORT}")

        yield

        logger.info("HTTP server closed")
        if not session_task.done():
            session_task.cancel()
        try:
            await session_task
        except asyncio.CancelledError:
            pass
        await shutdown_client(context.client, context.settings.SHUTDOWN_TIMEOUT)

    app = FastAPI(title=context.settings.PROJECT_NAME, lifespan=lifespan)
    app.state.context = context

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code < 500:
            logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return resp(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return resp(
            status.HTTP_400_BAD_REQUEST,
            "Invalid request",
            {"errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return resp(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log_exception(logger, f"Unhandled error on {request.method} {request.url.path}", exc)
        return resp(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    app.include_router(router)
    return app
