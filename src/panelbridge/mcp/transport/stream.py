"""Newline-delimited JSON transport over asyncio streams."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator

from panelbridge.lib import oj
from panelbridge.mcp.transport.base import (
    ConnectionError,
    SessionError,
    Transport,
    TransportError,
)
from panelbridge.mcp.transport.types import (
    TransportConfig,
    TransportEvent,
    TransportEventType,
)

logger = logging.getLogger(__name__)


class StreamTransport(Transport):
    """
    Host channel over a TCP or Unix socket.

    Each message is one line of JSON. Lines that are not valid JSON or that
    exceed the configured size are dropped without closing the channel.
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        reader: asyncio.StreamReader | None = None,
        writer: asyncio.StreamWriter | None = None,
    ):
        """
        Initialize the transport.

        Args:
            config: Where to connect. Not needed when streams are supplied.
            reader: Already-open reader (e.g. from a server callback).
            writer: Already-open writer paired with reader.
        """
        super().__init__()
        if config is None and (reader is None or writer is None):
            raise ValueError("config or both reader and writer are required")

        self.config = config
        self._reader = reader
        self._writer = writer
        self._connected = reader is not None and writer is not None
        self._closing = False

    @classmethod
    def from_streams(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> "StreamTransport":
        """Wrap an already-connected stream pair."""
        return cls(reader=reader, writer=writer)

    async def connect(self) -> None:
        if self._connected:
            return

        self._emit_event(
            TransportEvent(
                type=TransportEventType.CONNECTING,
                timestamp=time.time(),
                data={"address": self._address()},
            )
        )

        limit = self.config.max_line_bytes
        try:
            if self.config.is_unix:
                opener = asyncio.open_unix_connection(self.config.path, limit=limit)
            else:
                opener = asyncio.open_connection(
                    self.config.host, self.config.port, limit=limit
                )
            self._reader, self._writer = await asyncio.wait_for(
                opener, timeout=self.config.connect_timeout
            )
        except asyncio.TimeoutError as e:
            raise ConnectionError(f"Timed out connecting to {self._address()}", cause=e)
        except OSError as e:
            raise ConnectionError(f"Failed to connect to {self._address()}: {e}", cause=e)

        self._connected = True
        self._closing = False
        self._emit_event(
            TransportEvent(type=TransportEventType.CONNECTED, timestamp=time.time())
        )

    async def disconnect(self) -> None:
        if not self._connected and self._writer is None:
            return

        self._closing = True
        self._emit_event(
            TransportEvent(type=TransportEventType.DISCONNECTING, timestamp=time.time())
        )

        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except (ConnectionResetError, BrokenPipeError):
                pass
            self._writer = None

        self._reader = None
        self._connected = False
        self._emit_event(
            TransportEvent(type=TransportEventType.DISCONNECTED, timestamp=time.time())
        )

    async def send(self, message: Any) -> None:
        if not self._connected or self._writer is None:
            raise SessionError("Transport not connected")
        if self._closing:
            raise SessionError("Transport is closing")

        try:
            line = oj.dumps(message) + b"\n"
        except TypeError as e:
            raise TransportError(f"Message is not JSON-serializable: {e}", cause=e)

        try:
            self._writer.write(line)
            await self._writer.drain()
        except (ConnectionResetError, BrokenPipeError) as e:
            raise TransportError(f"Write failed: {e}", cause=e)

        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_SENT,
                timestamp=time.time(),
                data={"method": message.get("method"), "id": message.get("id")}
                if isinstance(message, dict)
                else None,
            )
        )

    async def receive(self) -> AsyncIterator[Any]:
        while self._connected and not self._closing and self._reader is not None:
            try:
                line = await self._reader.readline()
            except ValueError as e:
                # Line exceeded the stream limit; the reader has discarded it
                self._drop("oversized line", e)
                continue
            except (ConnectionResetError, asyncio.IncompleteReadError) as e:
                if not self._closing:
                    self._emit_event(
                        TransportEvent(
                            type=TransportEventType.ERROR,
                            timestamp=time.time(),
                            error=e,
                        )
                    )
                break

            if not line:
                logger.debug("Host closed the stream")
                break

            line = line.strip()
            if not line:
                continue

            try:
                payload = oj.loads(line)
            except oj.JSONDecodeError as e:
                self._drop("invalid JSON", e)
                continue

            self._emit_event(
                TransportEvent(
                    type=TransportEventType.MESSAGE_RECEIVED,
                    timestamp=time.time(),
                    data={"id": payload.get("id"), "method": payload.get("method")}
                    if isinstance(payload, dict)
                    else None,
                )
            )
            yield payload

    def is_connected(self) -> bool:
        return self._connected and not self._closing

    def _drop(self, reason: str, error: Exception) -> None:
        logger.debug(f"Dropping inbound line: {reason}")
        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_DROPPED,
                timestamp=time.time(),
                data={"reason": reason},
                error=error,
            )
        )

    def _address(self) -> str:
        if self.config is None:
            return "<streams>"
        if self.config.is_unix:
            return self.config.path
        return f"{self.config.host}:{self.config.port}"
