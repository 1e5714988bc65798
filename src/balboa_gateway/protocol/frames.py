"""Frame construction and parsing for the Balboa protocol."""

from balboa_gateway.protocol.constants import FRAME_OVERHEAD, MAX_PAYLOAD_LEN, SEPARATOR
from balboa_gateway.protocol.crc import calculate_crc8
from balboa_gateway.protocol.exceptions import FrameError, FrameSyncError, IncompleteFrameError


class Frame:
    """
    Represents a Balboa protocol frame.

    Frame structure:
    [SEP][LEN][TYPE_H][TYPE_M][TYPE_L][PAYLOAD...][CRC][SEP]

    LEN counts everything from itself up to and including CRC, i.e.
    ``len(payload) + 5``. The whole frame is ``LEN + 2`` bytes long.

    Attributes:
        message_type: 24-bit message type code
        payload: Payload data
        crc: CRC byte (set on encode and decode)
    """

    def __init__(self, message_type: int, payload: bytes = b""):
        """
        Initialize a frame.

        Args:
            message_type: Message type code (0-0xFFFFFF)
            payload: Optional payload data
        """
        if not 0 <= message_type <= 0xFFFFFF:
            raise ValueError(f"Message type out of range: 0x{message_type:X}")
        if len(payload) > MAX_PAYLOAD_LEN:
            raise ValueError(f"Payload too long: {len(payload)} bytes")

        self.message_type = message_type
        self.payload = bytes(payload)
        self.crc: int | None = None

    @property
    def length(self) -> int:
        """Value of the length byte."""
        return len(self.payload) + FRAME_OVERHEAD

    @property
    def size(self) -> int:
        """Total number of bytes on the wire, separators included."""
        return self.length + 2

    def to_bytes(self) -> bytes:
        """
        Convert frame to bytes for transmission.

        Returns:
            Complete frame as bytes

        Example:
            >>> Frame(0x0ABF04).to_bytes().hex()
            '7e050abf04777e'
        """
        frame = bytearray()
        frame.append(SEPARATOR)
        frame.append(self.length)
        frame.extend(self.message_type.to_bytes(3, "big"))
        frame.extend(self.payload)

        # Placeholders so the CRC routine sees the final frame shape
        frame.extend([0, SEPARATOR])
        self.crc = calculate_crc8(frame)
        frame[-2] = self.crc

        return bytes(frame)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Frame":
        """
        Parse the frame at the start of a receive buffer.

        Trailing bytes beyond the frame are ignored; ``frame.size`` tells the
        caller how many bytes were consumed.

        Args:
            data: Buffer starting with a frame

        Returns:
            Parsed Frame object

        Raises:
            FrameSyncError: The buffer does not start with a separator
            IncompleteFrameError: More data is needed to complete the frame
            FrameError: The frame is corrupt (bad end marker, too short, bad CRC)

        Example:
            >>> frame = Frame.from_bytes(bytes.fromhex("7e080abf22020000897e"))
            >>> hex(frame.message_type), frame.payload.hex()
            ('0xabf22', '020000')
        """
        if not data:
            raise IncompleteFrameError("Empty buffer")

        if data[0] != SEPARATOR:
            raise FrameSyncError(f"Frame did not start with 0x{SEPARATOR:02X}, got 0x{data[0]:02X}")

        if len(data) < 2:
            raise IncompleteFrameError("Waiting for length byte")

        length = data[1]
        size = length + 2
        if size > len(data):
            raise IncompleteFrameError(f"Frame needs {size} bytes, have {len(data)}")

        frame_data = bytes(data[:size])

        if frame_data[-1] != SEPARATOR:
            raise FrameError(f"Frame did not end with 0x{SEPARATOR:02X}", size)

        # Room for the message type and CRC is required
        if length < FRAME_OVERHEAD:
            raise FrameError(f"Frame without message type (length {length})", size)

        crc = calculate_crc8(frame_data)
        if crc != frame_data[-2]:
            raise FrameError(
                f"CRC error: calculated 0x{crc:02X}, received 0x{frame_data[-2]:02X} for {frame_data.hex()}",
                size,
            )

        frame = cls(
            message_type=int.from_bytes(frame_data[2:5], "big"),
            payload=frame_data[5:-2],
        )
        frame.crc = crc
        return frame

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return self.message_type == other.message_type and self.payload == other.payload

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"Frame(type=0x{self.message_type:06X}, payload_len={len(self.payload)})"
