"""Bridge error type and JSON-RPC error codes."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from panelbridge.mcp.protocol.messages import JSONRPCError

# Standard JSON-RPC 2.0 error codes
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

# Bridge-specific codes (-32000 to -32099 reserved for implementation)
REQUEST_TIMEOUT = -32001
SESSION_NOT_READY = -32002


@dataclass
class BridgeError(Exception):
    """
    Error surfaced to callers of the bridge.

    Host-reported errors, request timeouts and calls made before the
    handshake completes all arrive as this single type, so callers can
    handle every failed tool call the same way.
    """

    code: int
    message: str
    data: Any = None

    def __post_init__(self):
        super().__init__(self.message)

    @property
    def is_timeout(self) -> bool:
        return self.code == REQUEST_TIMEOUT

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-RPC error object."""
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, error: dict[str, Any]) -> "BridgeError":
        """Create from JSON-RPC error object."""
        return cls(
            code=error.get("code", INTERNAL_ERROR),
            message=error.get("message") or "Unknown error",
            data=error.get("data"),
        )

    @classmethod
    def from_response(cls, error: "JSONRPCError") -> "BridgeError":
        """Create from the error of a decoded host response, keeping its data."""
        return cls(code=error.code, message=error.message, data=error.data)

    @classmethod
    def method_not_found(cls, method: str) -> "BridgeError":
        return cls(
            code=METHOD_NOT_FOUND,
            message=f"Method not found: {method}",
            data={"method": method},
        )

    @classmethod
    def internal_error(cls, details: str | None = None) -> "BridgeError":
        return cls(
            code=INTERNAL_ERROR,
            message=details or "Internal error",
        )

    @classmethod
    def timeout(cls, timeout_seconds: float) -> "BridgeError":
        """Create a request timeout error."""
        return cls(
            code=REQUEST_TIMEOUT,
            message=f"Request timed out after {timeout_seconds}s",
            data={"timeout": timeout_seconds},
        )

    @classmethod
    def not_ready(cls, state: object) -> "BridgeError":
        """Create an error for calls made outside the READY state."""
        return cls(
            code=SESSION_NOT_READY,
            message=f"Session not ready (state: {state})",
            data={"state": str(state)},
        )

    def __str__(self) -> str:
        base = f"BridgeError({self.code}): {self.message}"
        if self.data:
            base += f" {self.data}"
        return base

    def __repr__(self) -> str:
        return f"BridgeError(code={self.code}, message={self.message!r}, data={self.data})"
