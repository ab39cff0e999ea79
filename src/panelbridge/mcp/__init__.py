"""
MCP Apps panel protocol for panelbridge.

Implements the panel (UI) side of the MCP Apps host channel: the
ui/initialize handshake, tools/call correlation, host notifications and the
ui/resource-teardown handshake.

Submodules:
- transport: Host channel transports (in-memory, socket streams)
- protocol: Envelope codec, correlation, session state, notification dispatch
- config: Bridge settings loading
"""

# Transport layer
from panelbridge.mcp.transport import (
    MemoryTransport,
    StreamTransport,
    TransportConfig,
    Transport,
    TransportError,
    ConnectionError,
    SessionError,
)

# Protocol layer
from panelbridge.mcp.protocol import (
    AppBridge,
    BridgeError,
    ClientInfo,
    HostContext,
    MemorySurface,
    SessionState,
    Surface,
)

# Configuration
from panelbridge.mcp.config import BridgeConfig, load_bridge_config, PROTOCOL_VERSION

__all__ = [
    # Transport
    "MemoryTransport",
    "StreamTransport",
    "TransportConfig",
    "Transport",
    "TransportError",
    "ConnectionError",
    "SessionError",
    # Protocol
    "AppBridge",
    "BridgeError",
    "ClientInfo",
    "HostContext",
    "MemorySurface",
    "SessionState",
    "Surface",
    # Config
    "BridgeConfig",
    "load_bridge_config",
    "PROTOCOL_VERSION",
]
