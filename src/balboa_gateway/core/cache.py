"""Async-safe state cache for the Balboa gateway."""

import asyncio
from datetime import datetime

from balboa_gateway.core.items import build_items, item_value
from balboa_gateway.core.models import SpaItem
from balboa_gateway.protocol.messages import (
    InformationResponseMessage,
    PanelConfigurationMessage,
    StatusUpdateMessage,
)
from balboa_gateway.transport.connection import ConnectionState


class SpaStateCache:
    """In-memory cache of what the control unit last reported.

    Provides async-safe access using asyncio.Lock(). Holds the latest status
    update, the panel configuration with the items built from it, the
    information response and the connection state.
    """

    def __init__(self) -> None:
        """Initialize empty cache."""
        self._lock = asyncio.Lock()
        self._status: StatusUpdateMessage | None = None
        self._configuration: PanelConfigurationMessage | None = None
        self._information: InformationResponseMessage | None = None
        self._items: dict[str, SpaItem] = {}  # keyed by item id
        self._state = ConnectionState.INITIAL
        self._detail = ""
        self._last_update: datetime | None = None

    async def get_status(self) -> StatusUpdateMessage | None:
        """Get the latest status update."""
        async with self._lock:
            return self._status

    async def set_status(self, status: StatusUpdateMessage) -> None:
        """Store a status update."""
        async with self._lock:
            self._status = status
            self._last_update = datetime.now()

    async def get_configuration(self) -> PanelConfigurationMessage | None:
        """Get the panel configuration of the current connection."""
        async with self._lock:
            return self._configuration

    async def set_configuration(self, configuration: PanelConfigurationMessage) -> None:
        """Store a panel configuration and rebuild the item list."""
        async with self._lock:
            self._configuration = configuration
            self._items = {item.id: item for item in build_items(configuration)}

    async def get_information(self) -> InformationResponseMessage | None:
        async with self._lock:
            return self._information

    async def set_information(self, information: InformationResponseMessage) -> None:
        async with self._lock:
            self._information = information

    async def get_item(self, item_id: str) -> SpaItem | None:
        """Get an item by id, with its value from the latest status."""
        async with self._lock:
            item = self._items.get(item_id)
            if item is None or self._status is None:
                return item
            return item.model_copy(update={"value": item_value(self._status, item)})

    async def get_items(self) -> list[SpaItem]:
        """Get all items, with values from the latest status."""
        async with self._lock:
            if self._status is None:
                return list(self._items.values())
            return [
                item.model_copy(update={"value": item_value(self._status, item)}) for item in self._items.values()
            ]

    async def set_connection_state(self, state: ConnectionState, detail: str) -> None:
        """Record a connection state change.

        A new handshake forgets the configuration of the previous connection.
        """
        async with self._lock:
            self._state = state
            self._detail = detail
            if state is ConnectionState.CONFIGURATION_PENDING:
                self._configuration = None
                self._items = {}

    async def clear(self) -> None:
        """Remove all cached data."""
        async with self._lock:
            self._status = None
            self._configuration = None
            self._information = None
            self._items = {}
            self._last_update = None

    @property
    def state(self) -> ConnectionState:
        """Get the last recorded connection state."""
        return self._state

    @property
    def detail(self) -> str:
        return self._detail

    @property
    def last_update(self) -> datetime | None:
        """Get timestamp of last status update."""
        return self._last_update

    @property
    def count(self) -> int:
        """Get number of configured items."""
        return len(self._items)
