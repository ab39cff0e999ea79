"""Abstract base transport and error types."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable

from panelbridge.mcp.transport.types import TransportEvent


class TransportError(Exception):
    """Base exception for transport errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class ConnectionError(TransportError):
    """Failed to establish connection to the host."""

    pass


class SessionError(TransportError):
    """Channel not established or already closed."""

    pass


class Transport(ABC):
    """
    Abstract base class for host channels.

    The channel is the only thing that touches the embedder. Sends are
    fire-and-forget broadcasts with no acknowledgment; each inbound item is
    exactly one JSON-like payload, delivered in order per direction. The
    payload is handed over untyped: deciding what it means is the
    protocol layer's job.
    """

    def __init__(self) -> None:
        self._event_handlers: list[Callable[[TransportEvent], None]] = []

    def on_event(self, handler: Callable[[TransportEvent], None]) -> None:
        """
        Register an event handler for transport events.

        Args:
            handler: Callback invoked when transport events occur.
        """
        self._event_handlers.append(handler)

    def _emit_event(self, event: TransportEvent) -> None:
        """Emit an event to all registered handlers."""
        for handler in self._event_handlers:
            try:
                handler(event)
            except Exception:
                # Don't let handler errors affect transport
                pass

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the channel.

        Raises:
            ConnectionError: If the channel cannot be opened.
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Close the channel and release all resources.

        This method should be safe to call multiple times.
        """
        pass

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> None:
        """
        Send one envelope to the host.

        Args:
            message: JSON-serializable envelope.

        Raises:
            SessionError: If the channel is not open.
            TransportError: If the write fails.
        """
        pass

    @abstractmethod
    def receive(self) -> AsyncIterator[Any]:
        """
        Async iterator yielding inbound payloads until the channel closes.

        Yields:
            Decoded payloads, unvalidated.
        """
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """
        Check if the channel is currently open.

        Returns:
            True if open and ready for communication.
        """
        pass

    async def __aenter__(self) -> "Transport":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect()
