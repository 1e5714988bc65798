"""asyncio.Protocol implementation for a single Balboa TCP socket."""

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from balboa_gateway.transport.connection import SpaConnection

logger = logging.getLogger(__name__)


class SpaProtocol(asyncio.Protocol):
    """Event-driven glue between one socket and its owning connection.

    Every callback is forwarded together with the generation the socket was
    opened under, so the connection can ignore completions that arrive after
    the socket has been replaced or torn down.
    """

    def __init__(self, connection: "SpaConnection", generation: int) -> None:
        self._connection = connection
        self.generation = generation
        self._transport: asyncio.Transport | None = None
        self._paused = False
        self._drain_waiter: asyncio.Future[None] | None = None

    # -- asyncio.Protocol callbacks ------------------------------------------

    def connection_made(self, transport: asyncio.Transport) -> None:  # type: ignore[override]
        self._transport = transport
        logger.debug("SpaProtocol: connection made (generation %d)", self.generation)
        self._connection._connection_made(self, transport)

    def data_received(self, data: bytes) -> None:
        self._connection._data_received(self.generation, data)

    def eof_received(self) -> bool:
        logger.debug("SpaProtocol: EOF received (generation %d)", self.generation)
        return False

    def connection_lost(self, exc: Exception | None) -> None:
        self._transport = None
        self._wake_writer(exc or ConnectionError("Connection closed"))
        logger.debug("SpaProtocol: connection lost (generation %d, exc=%s)", self.generation, exc)
        self._connection._connection_lost(self.generation, exc)

    def pause_writing(self) -> None:
        self._paused = True

    def resume_writing(self) -> None:
        self._paused = False
        self._wake_writer(None)

    # -- writing --------------------------------------------------------------

    def _wake_writer(self, exc: Exception | None) -> None:
        waiter = self._drain_waiter
        self._drain_waiter = None
        if waiter is None or waiter.done():
            return
        if exc is None:
            waiter.set_result(None)
        else:
            waiter.set_exception(exc)

    @property
    def connected(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    async def write(self, data: memoryview) -> int:
        """Hand a buffer to the transport and wait until it can take more.

        Returns the number of bytes accepted.

        Raises:
            ConnectionError: If the socket is closed or closes while waiting
        """
        if not self.connected:
            raise ConnectionError("Socket is closed")

        self._transport.write(bytes(data))  # type: ignore[union-attr]

        if self._paused:
            self._drain_waiter = asyncio.get_running_loop().create_future()
            await self._drain_waiter

        return len(data)
