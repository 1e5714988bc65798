"""TCP connection management and state machine for Balboa control units."""

import asyncio
import logging
import socket
from collections.abc import Callable
from enum import Enum

from balboa_gateway.protocol.constants import DEFAULT_PORT, SettingsType
from balboa_gateway.protocol.exceptions import NotConnectedError
from balboa_gateway.protocol.messages import (
    InboundMessage,
    OutboundMessage,
    PanelConfigurationMessage,
    SettingsRequestMessage,
)
from balboa_gateway.transport.protocol import SpaProtocol
from balboa_gateway.transport.reader import FrameReader
from balboa_gateway.transport.writer import FrameWriter

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection states.

    Valid transitions:
        INITIAL -> CONNECTING
        CONNECTING -> ERROR | CONFIGURATION_PENDING | OFFLINE
        CONFIGURATION_PENDING -> ONLINE | OFFLINE
        ONLINE -> OFFLINE
        OFFLINE -> CONNECTING
        ERROR -> CONNECTING | OFFLINE
    """

    INITIAL = "initial"
    CONNECTING = "connecting"
    OFFLINE = "offline"
    ERROR = "error"
    CONFIGURATION_PENDING = "configuration_pending"
    ONLINE = "online"


StateChangeCallback = Callable[[ConnectionState, str], None]
MessageCallback = Callable[[InboundMessage], None]


class SpaConnection:
    """Owns the socket to one control unit and drives the handshake.

    Reports every state transition through ``on_state_change`` and every
    decoded (not suppressed) message through ``on_message``. Reconnecting
    is left to the caller: after ERROR or OFFLINE, call :meth:`connect`
    again.

    All methods must be called from the event loop the connection runs on.
    Each socket is tagged with a generation number; callbacks belonging to
    an older generation are ignored.
    """

    def __init__(
        self,
        on_state_change: StateChangeCallback,
        on_message: MessageCallback,
        babble_suppression: bool = True,
    ):
        """
        Initialize the connection.

        Args:
            on_state_change: Called with (state, detail) on every transition
            on_message: Called with each decoded inbound message
            babble_suppression: Drop repeated frames while ONLINE
        """
        self._on_state_change = on_state_change
        self._on_message = on_message
        self._babble_suppression = babble_suppression

        self.host: str | None = None
        self.port: int = DEFAULT_PORT

        self._state = ConnectionState.INITIAL
        self._detail = ""
        self._generation = 0
        self._transport: asyncio.Transport | None = None
        self._protocol: SpaProtocol | None = None
        self._reader = FrameReader(self._should_suppress)
        self._writer: FrameWriter | None = None

    # -- properties -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def detail(self) -> str:
        """Detail string of the last transition."""
        return self._detail

    @property
    def connected(self) -> bool:
        """Whether a socket is open (configured or not)."""
        return self._transport is not None and not self._transport.is_closing()

    @property
    def online(self) -> bool:
        """Whether the handshake has completed."""
        return self._state is ConnectionState.ONLINE

    @property
    def babble_suppression(self) -> bool:
        return self._babble_suppression

    def set_babble_suppression(self, enabled: bool) -> None:
        """Enable or disable dropping of repeated frames while ONLINE."""
        self._babble_suppression = enabled
        logger.debug("Babble suppression %s", "enabled" if enabled else "disabled")

    @property
    def stats(self) -> dict:
        """Reader and writer statistics of the current socket."""
        stats = {"reader": self._reader.stats}
        if self._writer is not None:
            stats["writer"] = self._writer.stats
        return stats

    # -- state ---------------------------------------------------------------

    def _set_state(self, state: ConnectionState, detail: str) -> None:
        self._state = state
        self._detail = detail
        logger.info("Connection state %s: %s", state.name, detail)
        self._on_state_change(state, detail)

    def _should_suppress(self) -> bool:
        return self._babble_suppression and self._state is ConnectionState.ONLINE

    # -- connect / disconnect ------------------------------------------------

    async def connect(self, host: str, port: int = DEFAULT_PORT) -> bool:
        """
        Open a connection to the control unit.

        Does nothing while a connection attempt is already in progress. An
        existing socket is torn down first.

        Args:
            host: Hostname or IP address of the control unit
            port: TCP port (default 4257)

        Returns:
            True if the socket was opened, False otherwise
        """
        if self._state is ConnectionState.CONNECTING:
            logger.debug("Connection attempt already in progress")
            return False

        self.host = host
        self.port = port

        self._set_state(ConnectionState.CONNECTING, "Connecting")

        if self._transport is not None:
            self._teardown()

        self._generation += 1
        generation = self._generation
        loop = asyncio.get_running_loop()

        try:
            infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except (OSError, UnicodeError) as e:
            if generation != self._generation:
                return False
            logger.debug("Failed to resolve host %s: %s", host, e)
            self._set_state(ConnectionState.ERROR, f"Failed to resolve host: {host}")
            return False

        if generation != self._generation:
            return False
        if not infos:
            self._set_state(ConnectionState.ERROR, f"Failed to resolve host: {host}")
            return False

        address = infos[0][4]
        logger.debug("Connecting to %s:%d (%s)", host, port, address[0])

        try:
            transport, _ = await loop.create_connection(
                lambda: SpaProtocol(self, generation),
                host=address[0],
                port=address[1],
            )
        except OSError as e:
            if generation != self._generation:
                return False
            logger.debug("Connection failed: %s", e)
            self._set_state(ConnectionState.ERROR, f"Connection failed: {e}")
            return False

        if generation != self._generation:
            # Disconnected or replaced while connecting
            transport.close()
            return False

        return True

    def disconnect(self) -> None:
        """
        Close the connection.

        Safe to call at any time; always ends in a single OFFLINE event.
        Completions still outstanding for the closed socket are ignored.
        """
        self._close("Disconnected")

    def _close(self, detail: str) -> None:
        self._generation += 1
        if self._transport is None:
            logger.debug("Not connected when disconnect attempted")
        self._teardown()
        self._set_state(ConnectionState.OFFLINE, detail)

    def _teardown(self) -> None:
        if self._transport is not None:
            logger.debug("Closing connection to %s:%d", self.host, self.port)
            self._transport.close()
        self._transport = None
        self._protocol = None

        self._reader = FrameReader(self._should_suppress)
        if self._writer is not None:
            self._writer.reset()
            self._writer = None

    # -- protocol callbacks --------------------------------------------------

    def _connection_made(self, protocol: SpaProtocol, transport: asyncio.Transport) -> None:
        if protocol.generation != self._generation:
            logger.debug("Closing stale socket (generation %d)", protocol.generation)
            transport.close()
            return

        self._transport = transport
        self._protocol = protocol
        self._reader = FrameReader(self._should_suppress)
        self._writer = FrameWriter(protocol.write, lambda exc: self._write_failed(protocol.generation, exc))

        # Connected but not configured yet
        self.send_message(SettingsRequestMessage(SettingsType.INFORMATION))
        self.send_message(SettingsRequestMessage(SettingsType.PANEL))
        self._set_state(ConnectionState.CONFIGURATION_PENDING, "Configuration request sent")

    def _data_received(self, generation: int, data: bytes) -> None:
        if generation != self._generation:
            return

        self._reader.append(data)
        for message in self._reader.messages():
            self._dispatch(message)
            if generation != self._generation:
                # The collaborator disconnected from within its callback
                return

    def _dispatch(self, message: InboundMessage) -> None:
        self._on_message(message)

        if isinstance(message, PanelConfigurationMessage) and self._state is ConnectionState.CONFIGURATION_PENDING:
            self._set_state(ConnectionState.ONLINE, "Panel configuration received")

    def _connection_lost(self, generation: int, exc: Exception | None) -> None:
        if generation != self._generation:
            return
        self._close(f"Connection lost: {exc}" if exc else "Connection closed by peer")

    def _write_failed(self, generation: int, exc: Exception) -> None:
        if generation != self._generation:
            return
        self._close(f"Write failed: {exc}")

    # -- sending --------------------------------------------------------------

    def send_message(self, message: OutboundMessage) -> None:
        """
        Queue an outbound message.

        Args:
            message: Message to send

        Raises:
            NotConnectedError: If no socket is open
        """
        if self._writer is None or self._transport is None:
            raise NotConnectedError("Cannot send message while not connected")

        data = message.to_bytes()
        logger.debug("Writing %d bytes: %s", len(data), data.hex())
        self._writer.send(data)
