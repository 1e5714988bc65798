"""Incremental frame reader for the Balboa protocol."""

import logging
from collections.abc import Callable, Iterator

from balboa_gateway.protocol.exceptions import FrameError, FrameSyncError, IncompleteFrameError
from balboa_gateway.protocol.frames import Frame
from balboa_gateway.protocol.messages import InboundMessage, UnknownBitsTracer, decode_message

logger = logging.getLogger(__name__)


def _never() -> bool:
    return False


class FrameReader:
    """Turns an unbounded byte stream into typed messages.

    One reader belongs to one connection. Partial frames are kept across
    reads. The CRC of the last accepted frame is remembered so that the
    near-continuous repeats of an unchanged status ("babble") can be dropped
    while ``suppress_duplicates()`` returns True.
    """

    def __init__(self, suppress_duplicates: Callable[[], bool] = _never):
        """
        Initialize an empty reader.

        Args:
            suppress_duplicates: Consulted once per frame; when it returns True
                a frame with the same CRC as the previous one is dropped.
        """
        self._suppress_duplicates = suppress_duplicates
        self._buffer = bytearray()
        self._last_crc: int | None = None
        self._tracer = UnknownBitsTracer()
        self._stats = {
            "bytes_read": 0,
            "frames_read": 0,
            "frames_invalid": 0,
            "frames_suppressed": 0,
            "buffers_discarded": 0,
        }

    @property
    def stats(self) -> dict:
        """Get reader statistics."""
        return self._stats.copy()

    @property
    def buffered(self) -> int:
        """Number of bytes not yet consumed."""
        return len(self._buffer)

    @property
    def last_crc(self) -> int | None:
        """CRC of the last frame accepted for dispatch."""
        return self._last_crc

    def append(self, data: bytes) -> None:
        """Add newly received bytes to the buffer."""
        self._buffer.extend(data)
        self._stats["bytes_read"] += len(data)

    def messages(self) -> Iterator[InboundMessage]:
        """
        Decode complete frames from the buffer, one message at a time.

        Each frame is removed from the buffer before its message is yielded,
        so stopping early leaves the remaining frames for the next call.
        """
        while self._buffer:
            try:
                frame = Frame.from_bytes(self._buffer)
            except IncompleteFrameError:
                logger.debug("Incomplete frame, waiting for more data (%d bytes buffered)", len(self._buffer))
                return
            except FrameSyncError as e:
                # No safe way to find the next frame boundary, start over
                logger.debug("%s, discarding %d bytes", e, len(self._buffer))
                self._buffer.clear()
                self._stats["buffers_discarded"] += 1
                return
            except FrameError as e:
                logger.debug("Skipping corrupt frame: %s", e)
                del self._buffer[: e.size]
                self._stats["frames_invalid"] += 1
                continue

            frame_data = bytes(self._buffer[: frame.size])
            del self._buffer[: frame.size]

            if frame.crc == self._last_crc and self._suppress_duplicates():
                self._stats["frames_suppressed"] += 1
                continue

            self._last_crc = frame.crc
            self._stats["frames_read"] += 1
            logger.debug("Frame read: %s (hex: %s)", frame, frame_data.hex())

            message = decode_message(frame)
            if message is None:
                continue

            self._tracer.trace(frame.message_type, frame_data)
            yield message

    def feed(self, data: bytes) -> list[InboundMessage]:
        """
        Add received bytes and decode every complete frame.

        Args:
            data: Newly received bytes

        Returns:
            Messages decoded from the buffer, in stream order
        """
        self.append(data)
        return list(self.messages())

    def reset(self) -> None:
        """Forget buffered bytes and the last CRC."""
        self._buffer.clear()
        self._last_crc = None
        self._tracer.reset()

    def reset_stats(self) -> None:
        """Reset reader statistics."""
        for key in self._stats:
            self._stats[key] = 0
