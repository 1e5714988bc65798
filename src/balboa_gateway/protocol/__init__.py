"""Balboa binary protocol implementation."""

from balboa_gateway.protocol.constants import (
    DEFAULT_PORT,
    SEPARATOR,
    Capability,
    ItemType,
    MessageType,
    SettingsType,
)
from balboa_gateway.protocol.crc import calculate_crc8, verify_crc8
from balboa_gateway.protocol.exceptions import (
    BalboaError,
    FrameError,
    FrameSyncError,
    IncompleteFrameError,
    NotConnectedError,
)
from balboa_gateway.protocol.frames import Frame
from balboa_gateway.protocol.messages import decode_message

# ProtocolHandler imported lazily to avoid circular import with transport
# (transport.connection -> protocol.messages -> protocol.__init__ -> handler -> transport.connection)


def __getattr__(name: str):
    if name == "ProtocolHandler":
        from balboa_gateway.protocol.handler import ProtocolHandler

        return ProtocolHandler
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "Frame",
    "ProtocolHandler",
    "calculate_crc8",
    "verify_crc8",
    "decode_message",
    "BalboaError",
    "FrameError",
    "FrameSyncError",
    "IncompleteFrameError",
    "NotConnectedError",
    "DEFAULT_PORT",
    "SEPARATOR",
    "Capability",
    "ItemType",
    "MessageType",
    "SettingsType",
]
