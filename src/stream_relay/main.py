"""
Stream Relay - Main FastAPI Application

HTTP producers send text payloads onto logical channels; the active binder
(Kafka, RabbitMQ, NATS or in-memory) carries them to the consumer functions
bound to the same destinations.

Key Features:
- Profile-selected binder behind a uniform publish/subscribe interface
- Channel -> destination binding table fixed at startup
- Failure records routed to a single error handler
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api import router
from .core.config import Settings, get_settings
from .core.errors import RelayError
from .services.consumers import CONSUMER_FUNCTIONS, error_handler
from .services.relay import RelayContext

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The relay context is created in the lifespan handler and stored on
    ``app.state.relay``.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        relay = RelayContext.from_settings(
            settings,
            functions=CONSUMER_FUNCTIONS,
            failure_handler=error_handler,
        )
        await relay.initialize()
        app.state.relay = relay
        logger.info(f"{settings.service_name} ready on port {settings.service_port}")

        yield

        app.state.relay = None
        await relay.shutdown()

    app = FastAPI(
        title="Stream Relay",
        description="Channel bindings between HTTP producers, consumers and message brokers",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.relay = None

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.get("/", tags=["Info"])
    async def root() -> Dict[str, str]:
        """Root endpoint with service info."""
        return {
            "service": settings.service_name,
            "version": __version__,
            "profile": settings.relay_profile,
            "docs": "/docs",
        }

    @app.exception_handler(RelayError)
    async def relay_exception_handler(request: Request, exc: RelayError) -> JSONResponse:
        """Relay errors that escaped a route."""
        logger.error(f"Unhandled relay error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": exc.__class__.__name__,
                "detail": str(exc) if settings.debug else "An unexpected error occurred",
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = app.state.settings
    uvicorn.run(app, host="0.0.0.0", port=_settings.service_port)
