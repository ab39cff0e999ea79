"""Transport layer types and configuration."""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any


class TransportEventType(Enum):
    """Types of transport events for observability."""

    CONNECTING = auto()
    CONNECTED = auto()
    DISCONNECTING = auto()
    DISCONNECTED = auto()
    MESSAGE_SENT = auto()
    MESSAGE_RECEIVED = auto()
    MESSAGE_DROPPED = auto()
    ERROR = auto()


@dataclass
class TransportEvent:
    """Event emitted by transport for observability."""

    type: TransportEventType
    timestamp: float
    data: dict[str, Any] | None = None
    error: Exception | None = None

    def __str__(self) -> str:
        base = f"[{self.type.name}]"
        if self.data:
            base += f" {self.data}"
        if self.error:
            base += f" error={self.error}"
        return base


@dataclass
class TransportConfig:
    """Configuration for stream transports to a host."""

    host: str | None = None
    """Host name for TCP connections."""

    port: int | None = None
    """Port for TCP connections."""

    path: str | None = None
    """Socket path for Unix domain socket connections."""

    connect_timeout: float = 10.0
    """Connection establishment timeout in seconds."""

    max_line_bytes: int = 4 * 1024 * 1024
    """Largest single message accepted from the host."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.path is None and (self.host is None or self.port is None):
            raise ValueError("either path or host and port are required")
        if self.path is not None and self.host is not None:
            raise ValueError("path and host are mutually exclusive")
        if self.port is not None and not 0 < self.port < 65536:
            raise ValueError("port must be between 1 and 65535")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.max_line_bytes < 1024:
            raise ValueError("max_line_bytes must be at least 1024")

    @property
    def is_unix(self) -> bool:
        return self.path is not None

    @classmethod
    def from_address(cls, address: str) -> "TransportConfig":
        """
        Parse ``HOST:PORT`` or a filesystem path.

        Args:
            address: Address string from the command line.
        """
        if "/" in address:
            return cls(path=address)
        host, sep, port = address.rpartition(":")
        if not sep or not host:
            raise ValueError(f"Invalid address: {address!r}")
        try:
            return cls(host=host, port=int(port))
        except ValueError as e:
            raise ValueError(f"Invalid address: {address!r}") from e
