"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from balboa_gateway import __version__
from balboa_gateway.api.dependencies import app_state
from balboa_gateway.api.routes import router as api_router
from balboa_gateway.core.cache import SpaStateCache
from balboa_gateway.core.config import Settings, setup_logging
from balboa_gateway.core.models import HealthResponse
from balboa_gateway.protocol.handler import ProtocolHandler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    settings = app_state.settings or Settings()
    app_state.settings = settings

    setup_logging(settings.log_level)
    logger.info(f"Starting Balboa Gateway v{__version__}")

    # Initialize components
    app_state.cache = SpaStateCache()
    app_state.handler = ProtocolHandler(
        cache=app_state.cache,
        host=settings.host,
        port=settings.port,
        reconnect_interval=settings.reconnect_interval,
        babble_suppression=settings.babble_suppression,
    )

    # Start event processing before connecting so no state change is missed
    await app_state.handler.start()

    connected = await app_state.handler.connect()
    if connected:
        logger.info(f"Connected to {settings.host}:{settings.port}")
    else:
        logger.warning(f"Failed to connect to {settings.host}:{settings.port}, will retry in background")

    yield

    # Shutdown
    logger.info("Shutting down...")
    if app_state.handler is not None:
        await app_state.handler.stop()


app = FastAPI(
    title="Balboa Gateway",
    description="Local REST API gateway for Balboa spa control units",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Balboa Gateway",
        "version": __version__,
        "status": "running",
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    handler = app_state.handler
    cache = app_state.cache

    if handler is None or cache is None:
        return HealthResponse(
            status="unhealthy",
            spa_connected=False,
            connection_state="initial",
            last_update=None,
        )

    connected = handler.connected
    status = "healthy" if connected and cache.last_update is not None else ("degraded" if connected else "unhealthy")

    return HealthResponse(
        status=status,
        spa_connected=connected,
        connection_state=handler.connection.state.value,
        detail=handler.connection.detail,
        last_update=cache.last_update,
    )


def main():
    """Run the application (for CLI entry point)."""
    import uvicorn

    settings = Settings()
    setup_logging(settings.log_level)
    app_state.settings = settings

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
