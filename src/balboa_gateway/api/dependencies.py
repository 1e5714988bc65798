"""FastAPI dependency injection for shared application state."""

from balboa_gateway.core.cache import SpaStateCache
from balboa_gateway.core.config import Settings
from balboa_gateway.protocol.handler import ProtocolHandler


class AppState:
    """Holds shared application state instances.

    Created during app startup and accessed via FastAPI dependencies.
    """

    def __init__(self) -> None:
        self.settings: Settings | None = None
        self.cache: SpaStateCache | None = None
        self.handler: ProtocolHandler | None = None


# Global app state singleton
app_state = AppState()


def get_cache() -> SpaStateCache:
    """Get the state cache instance."""
    assert app_state.cache is not None, "App not initialized"
    return app_state.cache


def get_handler() -> ProtocolHandler:
    """Get the protocol handler instance."""
    assert app_state.handler is not None, "App not initialized"
    return app_state.handler
