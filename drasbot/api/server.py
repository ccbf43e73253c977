"""FastAPI application for the bridge webhook"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from drasbot.api.routes import router
from drasbot.config import STORAGE_BACKEND
from drasbot.db.connection import db
from drasbot.db.schema import init_schema
from drasbot.exceptions import BridgeError, DatabaseError, DrasBotError
from drasbot.services.container import ServiceContainer, build_container
from drasbot.services.context_manager import ContextSweeper

logger = logging.getLogger(__name__)


def error_status(exc: DrasBotError) -> int:
    """Dependencies being down is 503; anything else of ours is a 500"""
    if isinstance(exc, (DatabaseError, BridgeError)):
        return 503
    return 500


def create_api_application(
    container: Optional[ServiceContainer] = None,
    storage_backend: str = STORAGE_BACKEND
) -> FastAPI:
    """
    Build the webhook app.

    Args:
        container: Prebuilt container (tests pass one with in-memory stores);
            built from config at startup when omitted
        storage_backend: 'postgres' or 'memory'
    """
    uses_postgres = storage_backend == "postgres"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Webhook starting (storage={storage_backend})")
        if uses_postgres:
            await db.init_pool()
        try:
            if uses_postgres:
                await init_schema()
            services = container or build_container(storage_backend)
            # Resolving the dispatcher validates command and handler wiring
            services.dispatcher
        except Exception:
            if uses_postgres:
                await db.close_pool()
            raise

        app.state.container = services
        app.state.storage_backend = storage_backend
        sweeper = ContextSweeper(services.contexts)
        sweeper.start()
        logger.info("Webhook ready")

        yield

        logger.info("Webhook stopping")
        await sweeper.stop()
        close = getattr(services.bridge, "close", None)
        if close is not None:
            await close()
        if uses_postgres:
            await db.close_pool()

    app = FastAPI(
        title="DrasBot Webhook API",
        description="Inbound message webhook for the WhatsApp bridge",
        version="1.0.0",
        lifespan=lifespan
    )
    app.include_router(router)

    @app.exception_handler(DrasBotError)
    async def drasbot_error_handler(request: Request, exc: DrasBotError):
        # Already logged when raised
        return JSONResponse(status_code=error_status(exc), content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app
