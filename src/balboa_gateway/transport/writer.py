"""Serialized frame writer for the Balboa protocol."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

WriteFunc = Callable[[memoryview], Awaitable[int]]
FailureCallback = Callable[[Exception], None]


class FrameWriter:
    """Single-flight writer: one buffer on the socket at a time.

    ``send()`` never blocks. Buffers are written in submission order; a
    buffer that was only partially written is resumed before the next one
    starts. Any write failure stops the writer and is reported once through
    ``on_failure``.
    """

    def __init__(self, write: WriteFunc, on_failure: FailureCallback):
        """
        Initialize frame writer.

        Args:
            write: Awaitable writing (part of) a buffer, returning bytes written
            on_failure: Called with the exception when a write fails
        """
        self._write = write
        self._on_failure = on_failure
        self._queue: deque[bytes] = deque()
        self._task: asyncio.Task | None = None
        self._stats = {
            "frames_written": 0,
            "frames_failed": 0,
            "bytes_written": 0,
            "partial_writes": 0,
        }

    @property
    def stats(self) -> dict:
        """Get writer statistics."""
        return self._stats.copy()

    @property
    def busy(self) -> bool:
        """Whether a write is in flight."""
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        """Number of buffers waiting behind the one in flight."""
        return len(self._queue)

    def send(self, data: bytes) -> None:
        """
        Queue a buffer for transmission.

        Starts writing right away when idle, otherwise the buffer waits for
        the ones submitted before it. Must be called from the event loop.

        Args:
            data: Complete frame bytes
        """
        self._queue.append(bytes(data))
        if not self.busy:
            logger.debug("Write session started")
            self._task = asyncio.get_running_loop().create_task(self._drain())
        else:
            logger.debug("Write in progress, %d buffer(s) queued", len(self._queue))

    async def _drain(self) -> None:
        while self._queue:
            data = self._queue.popleft()
            view = memoryview(data)
            try:
                while view:
                    written = await self._write(view)
                    if written <= 0:
                        raise ConnectionError("Socket accepted no data")
                    if written < len(view):
                        logger.debug("Partial write (%d of %d bytes), resuming", written, len(view))
                        self._stats["partial_writes"] += 1
                    view = view[written:]
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Write error: %s", e)
                self._stats["frames_failed"] += 1
                self._queue.clear()
                self._task = None
                self._on_failure(e)
                return

            self._stats["frames_written"] += 1
            self._stats["bytes_written"] += len(data)

        logger.debug("Write session ended")

    def reset(self) -> None:
        """Drop queued buffers and abandon any write in flight."""
        self._queue.clear()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def reset_stats(self) -> None:
        """Reset writer statistics."""
        for key in self._stats:
            self._stats[key] = 0
