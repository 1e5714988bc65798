"""Protocol handler for a Balboa control unit.

Owns the connection, feeds what the control unit reports into the state
cache, reconnects after failures and turns API commands into outbound
messages.
"""

import asyncio
import logging

from balboa_gateway.core.cache import SpaStateCache
from balboa_gateway.protocol.constants import DEFAULT_PORT, RECONNECT_INTERVAL, ItemType, SettingsType
from balboa_gateway.protocol.exceptions import NotConnectedError
from balboa_gateway.protocol.messages import (
    InboundMessage,
    InformationResponseMessage,
    OutboundMessage,
    PanelConfigurationMessage,
    SetTemperatureMessage,
    SetTemperatureScaleMessage,
    SetTimeMessage,
    SettingsRequestMessage,
    StatusUpdateMessage,
    ToggleMessage,
    UnknownMessage,
)
from balboa_gateway.transport.connection import ConnectionState, SpaConnection

logger = logging.getLogger(__name__)

Event = tuple[ConnectionState, str] | InboundMessage


class ProtocolHandler:
    """Orchestrates communication with one control unit.

    Connection callbacks only enqueue events; a background task applies them
    to the cache in arrival order. After ERROR or OFFLINE a single reconnect
    is scheduled ``reconnect_interval`` seconds later, as long as the handler
    is running.
    """

    def __init__(
        self,
        cache: SpaStateCache,
        host: str,
        port: int = DEFAULT_PORT,
        reconnect_interval: float = RECONNECT_INTERVAL,
        babble_suppression: bool = True,
    ):
        """Initialize protocol handler.

        Args:
            cache: State cache to update.
            host: Hostname or IP address of the control unit.
            port: TCP port of the control unit.
            reconnect_interval: Seconds to wait before reconnecting.
            babble_suppression: Drop repeated status frames while online.
        """
        self._cache = cache
        self._host = host
        self._port = port
        self._reconnect_interval = reconnect_interval

        self._connection = SpaConnection(
            on_state_change=self.on_state_change,
            on_message=self.on_message,
            babble_suppression=babble_suppression,
        )

        self._events: asyncio.Queue[Event] = asyncio.Queue()
        self._event_task: asyncio.Task | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._running = False

    @property
    def connection(self) -> SpaConnection:
        return self._connection

    @property
    def connected(self) -> bool:
        """Whether the control unit is online."""
        return self._connection.state is ConnectionState.ONLINE

    @property
    def running(self) -> bool:
        """Whether the handler processes events and reconnects."""
        return self._running

    @property
    def reconnect_pending(self) -> bool:
        """Whether a reconnect attempt is scheduled."""
        return self._reconnect_handle is not None

    async def start(self) -> None:
        """Start background event processing."""
        if self._running:
            return

        self._running = True
        self._event_task = asyncio.create_task(self._event_loop())
        logger.info("Protocol handler started")

    async def connect(self) -> bool:
        """Connect to the control unit.

        Returns:
            True if the socket was opened. On failure a reconnect is scheduled.
        """
        return await self._connection.connect(self._host, self._port)

    async def stop(self) -> None:
        """Stop reconnecting, disconnect and stop event processing."""
        self._running = False
        self._cancel_reconnect()

        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
            self._reconnect_task = None

        self._connection.disconnect()

        if self._event_task is not None:
            self._event_task.cancel()
            try:
                await self._event_task
            except asyncio.CancelledError:
                pass
            self._event_task = None

        logger.info("Protocol handler stopped")

    # -- connection callbacks ------------------------------------------------

    def on_state_change(self, state: ConnectionState, detail: str) -> None:
        """Connection state callback."""
        if state is ConnectionState.ERROR:
            logger.warning("Connection error: %s", detail)
        elif state is ConnectionState.OFFLINE:
            logger.warning("Spa offline: %s", detail)
        elif state is ConnectionState.ONLINE:
            logger.info("Spa online")

        self._events.put_nowait((state, detail))

        if state in (ConnectionState.ERROR, ConnectionState.OFFLINE):
            if self._running:
                self._schedule_reconnect()
            else:
                logger.debug("Disconnected while stopped, no reconnect")

    def on_message(self, message: InboundMessage) -> None:
        """Inbound message callback."""
        logger.debug("Received a %s", type(message).__name__)
        self._events.put_nowait(message)

    async def _event_loop(self) -> None:
        """Apply queued events to the cache."""
        while True:
            event = await self._events.get()
            try:
                await self.handle_event(event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Event handling error: {e}")
            finally:
                self._events.task_done()

    async def handle_event(self, event: Event) -> None:
        """Apply a single event to the cache."""
        if isinstance(event, tuple):
            state, detail = event
            await self._cache.set_connection_state(state, detail)
        elif isinstance(event, StatusUpdateMessage):
            await self._cache.set_status(event)
        elif isinstance(event, PanelConfigurationMessage):
            await self._cache.set_configuration(event)
            logger.info("Panel configuration: %d item(s)", self._cache.count)
        elif isinstance(event, InformationResponseMessage):
            await self._cache.set_information(event)
        elif isinstance(event, UnknownMessage):
            logger.debug("Ignoring message type 0x%06X", event.message_type)

    async def wait_idle(self) -> None:
        """Wait until every queued event has been applied."""
        await self._events.join()

    # -- reconnect -----------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            return

        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self._reconnect_interval, self._reconnect)
        logger.info("Reconnection attempt in %s seconds", self._reconnect_interval)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        if not self._running:
            return

        logger.info("Reconnecting to %s:%d", self._host, self._port)
        self._reconnect_task = asyncio.get_running_loop().create_task(self.connect())

    # -- commands -------------------------------------------------------------

    def _send(self, message: OutboundMessage) -> None:
        if not self.connected:
            raise NotConnectedError("Spa not connected")
        self._connection.send_message(message)

    async def _require_status(self) -> StatusUpdateMessage:
        status = await self._cache.get_status()
        if status is None:
            raise ValueError("No status received from the spa yet")
        return status

    def toggle(self, item: ItemType, index: int = 0) -> None:
        """Toggle an item.

        Raises:
            ValueError: If the item is read-only or the index is out of bounds.
            NotConnectedError: If the spa is not online.
        """
        message = ToggleMessage(item, index)
        self._send(message)
        logger.info("Toggled %s %d", item.key, index)

    async def switch(self, item: ItemType, index: int, on: bool) -> bool:
        """Bring an on/off item to the requested state.

        A toggle is only sent when the current state differs.

        Returns:
            True if a toggle was sent.
        """
        status = await self._require_status()
        if bool(status.get_item(item, index)) == on:
            return False

        self.toggle(item, index)
        return True

    async def set_temperature(self, target: float) -> float:
        """Set the target temperature in the current display scale.

        The scale and temperature range come from the latest status update.

        Returns:
            The target after clamping into the valid range.
        """
        status = await self._require_status()
        message = SetTemperatureMessage(
            target=target,
            celsius=status.celsius,
            high_range=status.temperature_high_range,
        )
        self._send(message)
        logger.info("Target temperature set to %s", message.clamped_target)
        return message.clamped_target

    def set_temperature_scale(self, celsius: bool) -> None:
        """Switch the display between Celsius and Fahrenheit."""
        self._send(SetTemperatureScaleMessage(celsius))
        logger.info("Temperature scale set to %s", "Celsius" if celsius else "Fahrenheit")

    async def set_time(self, hour: int, minute: int, display_24h: bool | None = None) -> None:
        """Set the clock of the control unit.

        Keeps the current 12h/24h display setting if ``display_24h`` is None.
        """
        if display_24h is None:
            status = await self._cache.get_status()
            display_24h = status.time_24h if status is not None else False

        self._send(SetTimeMessage(hour, minute, display_24h))
        logger.info("Time set to %02d:%02d", hour, minute)

    def request_settings(self, settings_type: SettingsType) -> None:
        """Ask the control unit for one class of settings."""
        self._send(SettingsRequestMessage(settings_type))

    def set_babble_suppression(self, enabled: bool) -> None:
        """Enable or disable dropping of repeated status frames."""
        self._connection.set_babble_suppression(enabled)
