"""Shared test fixtures."""

import asyncio
import socket
from collections.abc import Callable
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from balboa_gateway.protocol.constants import MessageType
from balboa_gateway.protocol.frames import Frame

# Captured panel configuration: pumps 1-3 one-speed, light 1 one-level
PANEL_SAMPLE = bytes.fromhex("7e0b0abf2e1500019000003c7e")


class FakeNetwork:
    """Stands in for address resolution and socket creation on the running loop.

    Every socket opened gets a MagicMock transport; the protocol created by
    the connection's factory is recorded so tests can drive its callbacks.
    """

    def __init__(self) -> None:
        self.transports: list[MagicMock] = []
        self.protocols: list = []
        self.resolve_error: Exception | None = None
        self.connect_error: Exception | None = None
        self.resolve_gate: asyncio.Event | None = None
        self.write_error: Exception | None = None

    async def getaddrinfo(self, host, port, **kwargs):
        if self.resolve_gate is not None:
            await self.resolve_gate.wait()
        if self.resolve_error is not None:
            raise self.resolve_error
        return [(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP, "", ("192.0.2.10", port))]

    async def create_connection(self, protocol_factory, host=None, port=None, **kwargs):
        if self.connect_error is not None:
            raise self.connect_error

        protocol = protocol_factory()
        transport = MagicMock()
        transport.is_closing.return_value = False
        if self.write_error is not None:
            transport.write.side_effect = self.write_error

        self.transports.append(transport)
        self.protocols.append(protocol)
        protocol.connection_made(transport)
        return transport, protocol

    @contextmanager
    def patched(self):
        """Patch the running loop. Must be entered from a coroutine."""
        loop = asyncio.get_running_loop()
        with patch.object(loop, "getaddrinfo", self.getaddrinfo):
            with patch.object(loop, "create_connection", self.create_connection):
                yield self

    @property
    def transport(self) -> MagicMock:
        """Transport of the most recent socket."""
        return self.transports[-1]

    @property
    def protocol(self):
        """Protocol of the most recent socket."""
        return self.protocols[-1]

    def written(self, index: int = -1) -> bytes:
        """Bytes written to a socket."""
        return b"".join(call.args[0] for call in self.transports[index].write.call_args_list)


@pytest.fixture
def network() -> FakeNetwork:
    """Fake network for connection tests."""
    return FakeNetwork()


@pytest.fixture
def panel_frame() -> bytes:
    """Captured panel configuration frame."""
    return PANEL_SAMPLE


@pytest.fixture
def status_frame() -> Callable[..., bytes]:
    """Factory for status update frames.

    Keyword names are frame offsets (``b7=100``); unset bytes are zero.
    """

    def build(**fields: int) -> bytes:
        payload = bytearray(27)
        for name, value in fields.items():
            payload[int(name[1:]) - 5] = value
        return Frame(MessageType.STATUS_UPDATE, bytes(payload)).to_bytes()

    return build


async def settle(rounds: int = 5) -> None:
    """Let pending callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def flush() -> Callable:
    """Coroutine function that lets pending tasks run."""
    return settle
