"""
Panel protocol core.

Implements the envelope codec, request/response correlation, the session
state machine and host notification dispatch.
"""

from panelbridge.mcp.protocol.messages import (
    EnvelopeKind,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCNotification,
    JSONRPCError,
    decode_envelope,
)
from panelbridge.mcp.protocol.errors import (
    BridgeError,
    METHOD_NOT_FOUND,
    INTERNAL_ERROR,
    REQUEST_TIMEOUT,
    SESSION_NOT_READY,
)
from panelbridge.mcp.protocol.state import (
    SessionState,
    SessionStateMachine,
    InvalidStateTransition,
)
from panelbridge.mcp.protocol.correlator import PendingRequest, RequestCorrelator
from panelbridge.mcp.protocol.context import AppState, HostContext, MemorySurface, Surface
from panelbridge.mcp.protocol.dispatcher import NotificationDispatcher
from panelbridge.mcp.protocol.client import AppBridge, ClientInfo

__all__ = [
    # Messages
    "EnvelopeKind",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCNotification",
    "JSONRPCError",
    "decode_envelope",
    # Errors
    "BridgeError",
    "METHOD_NOT_FOUND",
    "INTERNAL_ERROR",
    "REQUEST_TIMEOUT",
    "SESSION_NOT_READY",
    # State
    "SessionState",
    "SessionStateMachine",
    "InvalidStateTransition",
    # Correlation
    "PendingRequest",
    "RequestCorrelator",
    # Host context
    "AppState",
    "HostContext",
    "MemorySurface",
    "Surface",
    "NotificationDispatcher",
    # Client
    "AppBridge",
    "ClientInfo",
]
