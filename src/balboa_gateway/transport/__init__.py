"""TCP transport for Balboa control units."""

from balboa_gateway.transport.connection import ConnectionState, SpaConnection
from balboa_gateway.transport.reader import FrameReader
from balboa_gateway.transport.writer import FrameWriter

__all__ = ["ConnectionState", "FrameReader", "FrameWriter", "SpaConnection"]
