"""
Databridge Backend - FastAPI Application

Payment-to-provisioning bridge: Paystack checkout and verification,
InstantData data-bundle orders, SendGrid notifications.
"""
from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Settings, settings as default_settings
from .context import AppContext
from .exceptions import BridgeError, internal_error_body
from .api.middleware import cors_guard
from .api.paystack import router as paystack_router
from .api.ping import router as ping_router


logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration; defaults to the environment-loaded settings
        context: Pre-built context (tests). When given, the lifespan neither
            creates nor closes it.
    """
    settings = settings or (context.settings if context else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        - Startup: build the context, create tables, start the sweep job
        - Shutdown: stop jobs, close HTTP and database connections
        """
        if getattr(app.state, "context", None) is not None:
            yield
            return

        logger.info("Starting Databridge backend server...")
        app.state.context = AppContext(settings)
        try:
            await app.state.context.start()
        except Exception as e:
            logger.error(f"Failed to start application context: {e}")
            raise
        logger.info("Server startup complete")

        yield

        logger.info("Shutting down Databridge backend server...")
        try:
            await app.state.context.close()
        finally:
            app.state.context = None

    app = FastAPI(
        title="Databridge API",
        description="Paystack payments fulfilled as InstantData data bundles",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.context = context

    app.middleware("http")(cors_guard)

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError):
        """Render request-level failures with their own status code."""
        logger.warning(f"{exc.error_code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies are client errors: 400, not FastAPI's default 422."""
        logger.warning(f"Invalid request body on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error_code": "validation_error",
                "message": "Invalid request body",
                "detail": jsonable_errors(exc),
            }
        )

    @app.exception_handler(Exception)
    async def general_error_handler(request: Request, exc: Exception):
        """
        Catch-all handler for unexpected errors.

        Logs full exception for debugging but returns generic message to client.
        """
        logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
        return JSONResponse(status_code=500, content=internal_error_body())

    app.include_router(paystack_router, prefix="/paystack", tags=["Paystack"])
    app.include_router(ping_router, tags=["Health"])

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


configure_logging(default_settings)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "databridge.main:app",
        host=default_settings.host,
        port=default_settings.port,
        log_level=default_settings.log_level.lower()
    )
