"""Unit tests for the spa state cache."""

import asyncio

import pytest

from balboa_gateway.core.cache import SpaStateCache
from balboa_gateway.protocol.frames import Frame
from balboa_gateway.protocol.messages import (
    InformationResponseMessage,
    StatusUpdateMessage,
    decode_message,
)
from balboa_gateway.transport.connection import ConnectionState

PANEL = decode_message(Frame.from_bytes(bytes.fromhex("7e0b0abf2e1500019000003c7e")))


def make_status(pump0: int = 0, light0: int = 0) -> StatusUpdateMessage:
    """Create a status update with the given pump 1 and light 1 states."""
    payload = bytearray(27)
    payload[16 - 5] = pump0
    payload[19 - 5] = light0
    return StatusUpdateMessage.from_payload(bytes(payload))


class TestSpaStateCache:
    """Tests for SpaStateCache class."""

    @pytest.mark.asyncio
    async def test_init_empty(self):
        """Test cache starts empty."""
        cache = SpaStateCache()

        assert cache.count == 0
        assert cache.last_update is None
        assert cache.state is ConnectionState.INITIAL
        assert await cache.get_status() is None
        assert await cache.get_configuration() is None
        assert await cache.get_items() == []

    @pytest.mark.asyncio
    async def test_set_status(self):
        """Test storing a status update sets the update time."""
        cache = SpaStateCache()
        status = make_status()

        await cache.set_status(status)

        assert await cache.get_status() is status
        assert cache.last_update is not None

    @pytest.mark.asyncio
    async def test_set_configuration_builds_items(self):
        """Test the panel configuration defines the items."""
        cache = SpaStateCache()

        await cache.set_configuration(PANEL)

        assert await cache.get_configuration() is PANEL
        assert cache.count == 4
        items = await cache.get_items()
        assert [item.id for item in items] == ["pump-1", "pump-2", "pump-3", "light-1"]
        assert all(item.value is None for item in items)

    @pytest.mark.asyncio
    async def test_item_values_from_status(self):
        """Test item values follow the latest status."""
        cache = SpaStateCache()
        await cache.set_configuration(PANEL)

        await cache.set_status(make_status(pump0=0x01, light0=0x01))

        pump = await cache.get_item("pump-1")
        light = await cache.get_item("light-1")
        assert pump.value == "ON"
        assert light.value == "ON"
        assert (await cache.get_item("pump-2")).value == "OFF"

    @pytest.mark.asyncio
    async def test_get_unknown_item(self):
        """Test getting an item that does not exist."""
        cache = SpaStateCache()
        await cache.set_configuration(PANEL)

        assert await cache.get_item("pump-6") is None

    @pytest.mark.asyncio
    async def test_information(self):
        """Test storing the information response."""
        cache = SpaStateCache()
        info = InformationResponseMessage(payload=bytes(21))

        await cache.set_information(info)

        assert await cache.get_information() is info

    @pytest.mark.asyncio
    async def test_connection_state(self):
        """Test recording connection state changes."""
        cache = SpaStateCache()

        await cache.set_connection_state(ConnectionState.OFFLINE, "Disconnected")

        assert cache.state is ConnectionState.OFFLINE
        assert cache.detail == "Disconnected"

    @pytest.mark.asyncio
    async def test_new_handshake_forgets_configuration(self):
        """Test items are dropped when a new configuration is pending."""
        cache = SpaStateCache()
        await cache.set_configuration(PANEL)
        await cache.set_status(make_status())

        await cache.set_connection_state(ConnectionState.CONFIGURATION_PENDING, "Configuration request sent")

        assert await cache.get_configuration() is None
        assert cache.count == 0
        assert await cache.get_status() is not None

    @pytest.mark.asyncio
    async def test_clear(self):
        """Test clearing the cache."""
        cache = SpaStateCache()
        await cache.set_configuration(PANEL)
        await cache.set_status(make_status())

        await cache.clear()

        assert cache.count == 0
        assert cache.last_update is None
        assert await cache.get_status() is None

    @pytest.mark.asyncio
    async def test_concurrent_access(self):
        """Test concurrent writers and readers."""
        cache = SpaStateCache()
        await cache.set_configuration(PANEL)

        async def writer(i: int):
            await cache.set_status(make_status(pump0=i % 3))

        async def reader():
            return await cache.get_items()

        results = await asyncio.gather(*[writer(i) for i in range(20)], *[reader() for _ in range(20)])

        assert all(len(r) == 4 for r in results[20:])
