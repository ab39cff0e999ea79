"""JSON-RPC 2.0 envelopes exchanged with the host, and the inbound codec."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, ClassVar

from panelbridge.mcp.protocol.errors import INTERNAL_ERROR

JSONRPC_VERSION = "2.0"

# Host -> panel
INITIALIZE = "ui/initialize"
RESOURCE_TEARDOWN = "ui/resource-teardown"
TOOL_INPUT = "ui/notifications/tool-input"
TOOL_RESULT = "ui/notifications/tool-result"
HOST_CONTEXT_CHANGED = "ui/notifications/host-context-changed"

# Panel -> host
INITIALIZED = "ui/notifications/initialized"
TOOLS_CALL = "tools/call"

RequestId = int | str


class EnvelopeKind(Enum):
    """Shape of a message on the host channel."""

    REQUEST = auto()
    RESPONSE = auto()
    NOTIFICATION = auto()


@dataclass
class JSONRPCRequest:
    """
    JSON-RPC 2.0 request message.

    Requests expect a response correlated by ``id``.
    """

    kind: ClassVar[EnvelopeKind] = EnvelopeKind.REQUEST

    id: RequestId
    method: str
    params: dict[str, Any] | None = None
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        msg: dict[str, Any] = {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
            "method": self.method,
        }
        if self.params is not None:
            msg["params"] = self.params
        return msg

    def __str__(self) -> str:
        return f"Request({self.method}, id={self.id})"


@dataclass
class JSONRPCError:
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_value(cls, value: Any) -> "JSONRPCError":
        """Create from whatever the host put in the ``error`` field."""
        if isinstance(value, dict):
            code = value.get("code")
            return cls(
                code=code if isinstance(code, int) else INTERNAL_ERROR,
                message=str(value.get("message") or "Unknown error"),
                data=value.get("data"),
            )
        return cls(code=INTERNAL_ERROR, message=str(value))


@dataclass
class JSONRPCResponse:
    """
    JSON-RPC 2.0 response message.

    Either result or error is meaningful, never both. An error field that is
    present but empty counts as success.
    """

    kind: ClassVar[EnvelopeKind] = EnvelopeKind.RESPONSE

    id: RequestId
    result: Any = None
    error: JSONRPCError | None = None
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    @property
    def is_error(self) -> bool:
        """Check if this is an error response."""
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        msg: dict[str, Any] = {
            "jsonrpc": self.jsonrpc,
            "id": self.id,
        }
        if self.error is not None:
            msg["error"] = self.error.to_dict()
        else:
            msg["result"] = self.result
        return msg

    @classmethod
    def success(cls, id: RequestId, result: Any = None) -> "JSONRPCResponse":
        """Create a success response."""
        return cls(id=id, result=result)

    @classmethod
    def error_response(
        cls,
        id: RequestId,
        code: int,
        message: str,
        data: Any = None,
    ) -> "JSONRPCResponse":
        """Create an error response."""
        return cls(id=id, error=JSONRPCError(code=code, message=message, data=data))

    def __str__(self) -> str:
        if self.is_error:
            return f"Response(id={self.id}, error={self.error.code})"
        return f"Response(id={self.id}, success)"


@dataclass
class JSONRPCNotification:
    """
    JSON-RPC 2.0 notification message.

    Notifications do not expect a response (no id field).
    """

    kind: ClassVar[EnvelopeKind] = EnvelopeKind.NOTIFICATION

    method: str
    params: dict[str, Any] | None = None
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        msg: dict[str, Any] = {
            "jsonrpc": self.jsonrpc,
            "method": self.method,
        }
        if self.params is not None:
            msg["params"] = self.params
        return msg

    def __str__(self) -> str:
        return f"Notification({self.method})"


Envelope = JSONRPCRequest | JSONRPCResponse | JSONRPCNotification


def _is_valid_id(value: Any) -> bool:
    # bool is an int subclass but never a valid id
    return isinstance(value, (int, str)) and not isinstance(value, bool)


def decode_envelope(payload: Any) -> Envelope | None:
    """
    Interpret an untyped inbound payload as an envelope.

    A payload with an ``id`` plus ``result`` or ``error`` is a response; one
    with ``id`` and ``method`` is a request; one with ``method`` and no
    ``id`` is a notification. Anything else, including a payload carrying a
    ``jsonrpc`` version other than 2.0, decodes to None so the caller can
    drop it.

    Args:
        payload: The raw object delivered by the transport.

    Returns:
        The decoded envelope, or None if the payload has no recognizable shape.
    """
    if not isinstance(payload, dict):
        return None

    version = payload.get("jsonrpc", JSONRPC_VERSION)
    if version != JSONRPC_VERSION:
        return None

    has_id = payload.get("id") is not None
    if has_id and not _is_valid_id(payload["id"]):
        return None

    if has_id and ("result" in payload or "error" in payload):
        error = payload.get("error")
        return JSONRPCResponse(
            id=payload["id"],
            result=payload.get("result"),
            error=JSONRPCError.from_value(error) if error else None,
        )

    method = payload.get("method")
    if not isinstance(method, str) or not method:
        return None

    params = payload.get("params")
    if params is not None and not isinstance(params, dict):
        return None

    if has_id:
        return JSONRPCRequest(id=payload["id"], method=method, params=params)
    return JSONRPCNotification(method=method, params=params)
