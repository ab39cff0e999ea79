"""
Host channel transports.

The panel exchanges untyped JSON payloads with its host over exactly one
channel. In-memory and socket stream channels are provided.
"""

from panelbridge.mcp.transport.types import TransportConfig, TransportEvent, TransportEventType
from panelbridge.mcp.transport.base import Transport, TransportError, ConnectionError, SessionError
from panelbridge.mcp.transport.memory import MemoryTransport
from panelbridge.mcp.transport.stream import StreamTransport

__all__ = [
    "Transport",
    "TransportConfig",
    "TransportEvent",
    "TransportEventType",
    "TransportError",
    "ConnectionError",
    "SessionError",
    "MemoryTransport",
    "StreamTransport",
]
