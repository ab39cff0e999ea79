"""In-process transport linking a panel to a host in the same event loop."""

from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncIterator

from panelbridge.lib import oj
from panelbridge.mcp.transport.base import SessionError, Transport, TransportError
from panelbridge.mcp.transport.types import TransportEvent, TransportEventType

_CLOSED = object()


class MemoryTransport(Transport):
    """
    One endpoint of an in-memory channel.

    Messages are copied through a JSON round trip on send, so neither side
    can observe the other's later mutations, much like a structured clone.
    Use pair() to get two linked endpoints.
    """

    def __init__(self, name: str = "memory"):
        super().__init__()
        self.name = name
        self._peer: MemoryTransport | None = None
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        self._connected = False

    @classmethod
    def pair(cls) -> tuple["MemoryTransport", "MemoryTransport"]:
        """
        Create two linked endpoints.

        Returns:
            (panel_side, host_side)
        """
        panel = cls("panel")
        host = cls("host")
        panel._peer = host
        host._peer = panel
        return panel, host

    async def connect(self) -> None:
        if self._connected:
            return
        if self._peer is None:
            raise SessionError("Transport has no peer")
        self._connected = True
        self._emit_event(
            TransportEvent(type=TransportEventType.CONNECTED, timestamp=time.time())
        )

    async def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        self._inbox.put_nowait(_CLOSED)
        self._emit_event(
            TransportEvent(type=TransportEventType.DISCONNECTED, timestamp=time.time())
        )

    async def send(self, message: Any) -> None:
        if not self._connected or self._peer is None:
            raise SessionError("Transport not connected")

        try:
            copied = oj.loads(oj.dumps(message))
        except (TypeError, oj.JSONDecodeError) as e:
            raise TransportError(f"Message is not JSON-serializable: {e}", cause=e)

        self._peer.deliver(copied)
        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_SENT,
                timestamp=time.time(),
                data=_summary(message),
            )
        )

    def deliver(self, payload: Any) -> None:
        """Queue a payload for receive(), as if it arrived from the peer."""
        self._inbox.put_nowait(payload)

    async def receive(self) -> AsyncIterator[Any]:
        while True:
            payload = await self._inbox.get()
            if payload is _CLOSED:
                break
            self._emit_event(
                TransportEvent(
                    type=TransportEventType.MESSAGE_RECEIVED,
                    timestamp=time.time(),
                    data=_summary(payload),
                )
            )
            yield payload

    def is_connected(self) -> bool:
        return self._connected

    def __repr__(self) -> str:
        return f"MemoryTransport({self.name!r}, connected={self._connected})"


def _summary(payload: Any) -> dict[str, Any] | None:
    if isinstance(payload, dict):
        return {"method": payload.get("method"), "id": payload.get("id")}
    return None
