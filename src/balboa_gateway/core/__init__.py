"""Core application functionality."""

from balboa_gateway.core.cache import SpaStateCache
from balboa_gateway.core.config import Settings, setup_logging
from balboa_gateway.core.items import build_items, item_value
from balboa_gateway.core.models import SpaItem

__all__ = [
    "SpaStateCache",
    "SpaItem",
    "Settings",
    "build_items",
    "item_value",
    "setup_logging",
]
