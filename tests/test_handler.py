"""Unit tests for the protocol handler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from balboa_gateway.core.cache import SpaStateCache
from balboa_gateway.protocol.constants import ItemType, MessageType, SettingsType
from balboa_gateway.protocol.exceptions import NotConnectedError
from balboa_gateway.protocol.frames import Frame
from balboa_gateway.protocol.handler import ProtocolHandler
from balboa_gateway.protocol.messages import (
    InformationResponseMessage,
    SetTemperatureMessage,
    SetTemperatureScaleMessage,
    SetTimeMessage,
    SettingsRequestMessage,
    StatusUpdateMessage,
    ToggleMessage,
    UnknownMessage,
)
from balboa_gateway.transport.connection import ConnectionState


def make_status(**fields: int) -> StatusUpdateMessage:
    """Status update with the given frame offsets set (``b14=0x01``)."""
    payload = bytearray(27)
    for name, value in fields.items():
        payload[int(name[1:]) - 5] = value
    return StatusUpdateMessage.from_payload(bytes(payload))


@pytest.fixture
def cache() -> SpaStateCache:
    return SpaStateCache()


@pytest.fixture
def handler(cache: SpaStateCache) -> ProtocolHandler:
    return ProtocolHandler(cache, "spa.local", reconnect_interval=0.01)


@pytest.fixture
def online_handler(handler: ProtocolHandler) -> ProtocolHandler:
    """Handler whose connection is replaced by an online mock."""
    connection = MagicMock()
    connection.state = ConnectionState.ONLINE
    handler._connection = connection
    return handler


class TestHandlerLifecycle:
    """Tests for starting, stopping and connecting."""

    @pytest.mark.asyncio
    async def test_start_stop(self, handler):
        """Test start and stop of event processing."""
        await handler.start()
        assert handler.running is True
        assert handler._event_task is not None

        await handler.stop()
        assert handler.running is False
        assert handler._event_task is None

    @pytest.mark.asyncio
    async def test_start_twice(self, handler):
        """Test a second start keeps the first event task."""
        await handler.start()
        task = handler._event_task

        await handler.start()

        assert handler._event_task is task
        await handler.stop()

    @pytest.mark.asyncio
    async def test_connect_goes_online(self, handler, cache, network, panel_frame):
        """Test the handshake result reaches the cache."""
        with network.patched():
            await handler.start()
            assert await handler.connect() is True
            network.protocol.data_received(panel_frame)
            await handler.wait_idle()

            assert handler.connected is True
            assert cache.state is ConnectionState.ONLINE
            assert cache.count == 4
            assert [item.id for item in await cache.get_items()] == ["pump-1", "pump-2", "pump-3", "light-1"]

            await handler.stop()

    @pytest.mark.asyncio
    async def test_status_update_cached(self, handler, cache, network, panel_frame, status_frame):
        """Test status updates reach the cache."""
        with network.patched():
            await handler.start()
            await handler.connect()
            network.protocol.data_received(panel_frame + status_frame(b7=100, b16=0x01))
            await handler.wait_idle()

            status = await cache.get_status()
            assert status.current_temperature == 100.0
            assert (await cache.get_item("pump-1")).value == "ON"

            await handler.stop()

    @pytest.mark.asyncio
    async def test_stop_disconnects(self, handler, network, panel_frame):
        """Test stop closes the socket without scheduling a reconnect."""
        with network.patched():
            await handler.start()
            await handler.connect()
            network.protocol.data_received(panel_frame)

            await handler.stop()

        network.transport.close.assert_called_once()
        assert handler.connection.state is ConnectionState.OFFLINE
        assert handler.reconnect_pending is False


class TestReconnect:
    """Tests for scheduling reconnects."""

    @pytest.mark.asyncio
    async def test_reconnect_scheduled_on_error(self, handler, network):
        """Test a failed connect schedules a reconnect."""
        network.connect_error = ConnectionRefusedError("refused")

        with network.patched():
            await handler.start()
            assert await handler.connect() is False

            assert handler.connection.state is ConnectionState.ERROR
            assert handler.reconnect_pending is True

            await handler.stop()

        assert handler.reconnect_pending is False

    @pytest.mark.asyncio
    async def test_no_reconnect_when_not_running(self, handler, network):
        """Test nothing is scheduled before start."""
        network.connect_error = ConnectionRefusedError("refused")

        with network.patched():
            await handler.connect()

        assert handler.reconnect_pending is False

    @pytest.mark.asyncio
    async def test_single_reconnect_scheduled(self, handler):
        """Test repeated failures keep one pending reconnect."""
        await handler.start()
        handler.on_state_change(ConnectionState.ERROR, "Connection failed: refused")
        first = handler._reconnect_handle

        handler.on_state_change(ConnectionState.OFFLINE, "Connection closed by peer")

        assert handler._reconnect_handle is first
        await handler.stop()

    @pytest.mark.asyncio
    async def test_reconnect_after_interval(self, handler, network, flush):
        """Test the reconnect opens a new socket once the interval passed."""
        network.connect_error = ConnectionRefusedError("refused")

        with network.patched():
            await handler.start()
            await handler.connect()
            network.connect_error = None

            await asyncio.sleep(0.05)
            await flush()

            assert len(network.protocols) == 1
            assert handler.connection.state is ConnectionState.CONFIGURATION_PENDING
            assert handler.reconnect_pending is False

            await handler.stop()

    @pytest.mark.asyncio
    async def test_connection_lost_schedules_reconnect(self, handler, network, panel_frame):
        """Test losing an online connection schedules a reconnect."""
        with network.patched():
            await handler.start()
            await handler.connect()
            network.protocol.data_received(panel_frame)

            network.protocol.connection_lost(ConnectionResetError("reset"))

            assert handler.connection.state is ConnectionState.OFFLINE
            assert handler.reconnect_pending is True

            await handler.stop()


class TestHandleEvent:
    """Tests for applying events to the cache."""

    @pytest.mark.asyncio
    async def test_state_event(self, handler, cache):
        """Test state events update the cache."""
        await handler.handle_event((ConnectionState.OFFLINE, "Disconnected"))

        assert cache.state is ConnectionState.OFFLINE
        assert cache.detail == "Disconnected"

    @pytest.mark.asyncio
    async def test_information_event(self, handler, cache):
        """Test information responses are stored."""
        info = InformationResponseMessage(payload=bytes(21))

        await handler.handle_event(info)

        assert await cache.get_information() is info

    @pytest.mark.asyncio
    async def test_unknown_event_ignored(self, handler, cache):
        """Test unregistered messages leave the cache untouched."""
        await handler.handle_event(UnknownMessage(message_type=0x0ABF23, payload=b"\x01"))

        assert await cache.get_status() is None
        assert cache.count == 0

    @pytest.mark.asyncio
    async def test_event_loop_survives_errors(self, handler, cache):
        """Test a failing event does not stop event processing."""
        await handler.start()
        original = cache.set_status
        cache.set_status = AsyncMock(side_effect=RuntimeError("boom"))

        handler.on_message(make_status())
        await handler.wait_idle()
        cache.set_status = original
        handler.on_message(make_status(b7=90))
        await handler.wait_idle()

        assert (await cache.get_status()).current_temperature == 90.0
        await handler.stop()

    @pytest.mark.asyncio
    async def test_events_applied_in_order(self, handler, cache):
        """Test queued events are applied in arrival order."""
        await handler.start()

        handler.on_message(make_status(b7=80))
        handler.on_message(make_status(b7=81))
        handler.on_state_change(ConnectionState.CONNECTING, "Connecting")
        await handler.wait_idle()

        assert (await cache.get_status()).current_temperature == 81.0
        assert cache.state is ConnectionState.CONNECTING
        await handler.stop()


class TestCommands:
    """Tests for turning commands into outbound messages."""

    @pytest.mark.asyncio
    async def test_toggle(self, online_handler):
        """Test toggle sends a toggle message."""
        online_handler.toggle(ItemType.PUMP, 1)

        online_handler.connection.send_message.assert_called_once_with(ToggleMessage(ItemType.PUMP, 1))

    @pytest.mark.asyncio
    async def test_toggle_not_connected(self, handler):
        """Test commands fail while the spa is not online."""
        with pytest.raises(NotConnectedError):
            handler.toggle(ItemType.LIGHT)

    @pytest.mark.asyncio
    async def test_toggle_read_only(self, online_handler):
        """Test read-only items cannot be toggled."""
        with pytest.raises(ValueError):
            online_handler.toggle(ItemType.HEATER)

        online_handler.connection.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_toggle_index_out_of_bounds(self, online_handler):
        """Test toggling a pump that cannot exist."""
        with pytest.raises(ValueError):
            online_handler.toggle(ItemType.PUMP, 6)

    @pytest.mark.asyncio
    async def test_switch_only_when_different(self, online_handler, cache):
        """Test switch toggles only when the state differs."""
        await cache.set_status(make_status(b16=0x01))

        assert await online_handler.switch(ItemType.PUMP, 0, True) is False
        online_handler.connection.send_message.assert_not_called()

        assert await online_handler.switch(ItemType.PUMP, 0, False) is True
        online_handler.connection.send_message.assert_called_once_with(ToggleMessage(ItemType.PUMP, 0))

    @pytest.mark.asyncio
    async def test_switch_without_status(self, online_handler):
        """Test switch needs a status update first."""
        with pytest.raises(ValueError):
            await online_handler.switch(ItemType.LIGHT, 0, True)

    @pytest.mark.asyncio
    async def test_set_temperature_celsius_clamped(self, online_handler, cache):
        """Test the target is clamped for the current scale and range."""
        await cache.set_status(make_status(b14=0x01))

        target = await online_handler.set_temperature(30.0)

        assert target == 26.0
        message = online_handler.connection.send_message.call_args.args[0]
        assert message == SetTemperatureMessage(target=30.0, celsius=True, high_range=False)
        assert message.payload() == bytes([52])

    @pytest.mark.asyncio
    async def test_set_temperature_fahrenheit_high_range(self, online_handler, cache):
        """Test a target inside the high Fahrenheit range is kept."""
        await cache.set_status(make_status(b15=0x04))

        target = await online_handler.set_temperature(100.0)

        assert target == 100.0
        message = online_handler.connection.send_message.call_args.args[0]
        assert message.payload() == bytes([100])

    @pytest.mark.asyncio
    async def test_set_temperature_without_status(self, online_handler):
        """Test the scale is unknown before a status update."""
        with pytest.raises(ValueError, match="No status"):
            await online_handler.set_temperature(38.0)

    @pytest.mark.asyncio
    async def test_set_temperature_not_connected(self, handler, cache):
        """Test set_temperature while offline."""
        await cache.set_status(make_status())

        with pytest.raises(NotConnectedError):
            await handler.set_temperature(38.0)

    @pytest.mark.asyncio
    async def test_set_temperature_scale(self, online_handler):
        """Test switching to Celsius."""
        online_handler.set_temperature_scale(True)

        online_handler.connection.send_message.assert_called_once_with(SetTemperatureScaleMessage(True))

    @pytest.mark.asyncio
    async def test_set_time_keeps_display(self, online_handler, cache):
        """Test the 24h display setting is kept when not given."""
        await cache.set_status(make_status(b14=0x02))

        await online_handler.set_time(7, 30)

        online_handler.connection.send_message.assert_called_once_with(SetTimeMessage(7, 30, True))

    @pytest.mark.asyncio
    async def test_set_time_without_status(self, online_handler):
        """Test the 12h display is used when nothing is known."""
        await online_handler.set_time(19, 5)

        online_handler.connection.send_message.assert_called_once_with(SetTimeMessage(19, 5, False))

    @pytest.mark.asyncio
    async def test_set_time_explicit_display(self, online_handler, cache):
        """Test an explicit display setting wins over the status."""
        await cache.set_status(make_status(b14=0x02))

        await online_handler.set_time(19, 5, display_24h=False)

        online_handler.connection.send_message.assert_called_once_with(SetTimeMessage(19, 5, False))

    @pytest.mark.asyncio
    async def test_request_settings(self, online_handler):
        """Test a settings request is sent."""
        online_handler.request_settings(SettingsType.FILTER_CYCLES)

        message = online_handler.connection.send_message.call_args.args[0]
        assert message == SettingsRequestMessage(SettingsType.FILTER_CYCLES)
        assert message.to_frame() == Frame(MessageType.SETTINGS_REQUEST, b"\x01\x00\x00")

    @pytest.mark.asyncio
    async def test_set_babble_suppression_offline(self, handler):
        """Test babble suppression can be changed without a connection."""
        handler.set_babble_suppression(False)

        assert handler.connection.babble_suppression is False
