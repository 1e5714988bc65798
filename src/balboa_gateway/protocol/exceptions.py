"""Exceptions raised by the protocol and transport layers."""


class BalboaError(Exception):
    """Base class for all balboa_gateway exceptions."""


class FrameDecodeError(BalboaError):
    """A frame could not be decoded from the buffer."""


class IncompleteFrameError(FrameDecodeError):
    """The buffer does not (yet) hold a complete frame."""


class FrameSyncError(FrameDecodeError):
    """The buffer does not start with a separator.

    Nothing in the buffer can be trusted, including any length byte.
    """


class FrameError(FrameDecodeError):
    """A single frame is corrupt, but the rest of the buffer is sane."""

    def __init__(self, message: str, size: int):
        super().__init__(message)
        self.size = size


class NotConnectedError(BalboaError):
    """A message was sent while no socket exists."""
