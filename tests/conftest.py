"""Pytest configuration and fixtures."""

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any, AsyncIterator

import pytest

from panelbridge.mcp.protocol.client import AppBridge, ClientInfo
from panelbridge.mcp.transport.base import Transport, TransportError

# Enable async tests without marking each one
pytest_plugins = ["pytest_asyncio"]

_CLOSED = object()


class RecordingTransport(Transport):
    """Transport that records outbound envelopes and replays injected ones."""

    def __init__(self) -> None:
        super().__init__()
        self.sent: list[dict[str, Any]] = []
        self.fail_sends = False
        self._connected = False
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        if self._connected:
            self._connected = False
            self._inbox.put_nowait(_CLOSED)

    async def send(self, message: dict[str, Any]) -> None:
        if self.fail_sends:
            raise TransportError("channel broken")
        self.sent.append(message)

    async def receive(self) -> AsyncIterator[Any]:
        while True:
            payload = await self._inbox.get()
            if payload is _CLOSED:
                break
            yield payload

    def inject(self, payload: Any) -> None:
        self._inbox.put_nowait(payload)

    def is_connected(self) -> bool:
        return self._connected

    def sent_with(self, method: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m.get("method") == method]

    def responses_to(self, request_id: Any) -> list[dict[str, Any]]:
        return [m for m in self.sent if "method" not in m and m.get("id") == request_id]


def initialize_request(request_id: Any = "init-1", host_context: dict | None = None) -> dict:
    params: dict[str, Any] = {"protocolVersion": "2025-06-18"}
    if host_context is not None:
        params["hostContext"] = host_context
    return {"jsonrpc": "2.0", "id": request_id, "method": "ui/initialize", "params": params}


def teardown_request(request_id: Any = "teardown-1") -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "method": "ui/resource-teardown", "params": {}}


class FakeTodoHost:
    """
    Host side of a MemoryTransport pair serving the todo tools.

    Keeps todos in a dict, answers tools/call with the same result shape
    as the todo MCP server and can broadcast tool results to the panel.
    """

    def __init__(self, transport: Transport) -> None:
        self.transport = transport
        self.todos: dict[str, dict[str, Any]] = {}
        self.received: list[dict[str, Any]] = []
        self.initialized = asyncio.Event()
        self.responses: dict[Any, dict[str, Any]] = {}
        self.respond_to_calls = True
        self._ids = itertools.count(1000)
        self._todo_ids = itertools.count(1)
        self._response_events: dict[Any, asyncio.Event] = {}
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        await self.transport.connect()
        self._task = asyncio.create_task(self._serve())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        await self.transport.disconnect()

    async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        request_id = next(self._ids)
        self._response_events[request_id] = asyncio.Event()
        await self.transport.send(
            {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}
        )
        return request_id

    async def wait_response(self, request_id: Any, timeout: float = 2.0) -> dict[str, Any]:
        await asyncio.wait_for(self._response_events[request_id].wait(), timeout)
        return self.responses[request_id]

    async def broadcast_result(self, result: dict[str, Any]) -> None:
        await self.transport.send(
            {"jsonrpc": "2.0", "method": "ui/notifications/tool-result", "params": result}
        )

    def calls(self) -> list[dict[str, Any]]:
        return [m for m in self.received if m.get("method") == "tools/call"]

    async def _serve(self) -> None:
        async for message in self.transport.receive():
            self.received.append(message)
            if "method" not in message:
                self.responses[message.get("id")] = message
                event = self._response_events.get(message.get("id"))
                if event is not None:
                    event.set()
            elif message["method"] == "ui/notifications/initialized":
                self.initialized.set()
            elif message["method"] == "tools/call" and self.respond_to_calls:
                params = message["params"]
                await self.transport.send(
                    {
                        "jsonrpc": "2.0",
                        "id": message["id"],
                        **self._call(params["name"], params.get("arguments", {})),
                    }
                )

    def _call(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        if name == "todo_add":
            todo_id = f"todo_{next(self._todo_ids)}"
            self.todos[todo_id] = {
                "id": todo_id,
                "text": arguments["text"],
                "completed": False,
                "createdAt": datetime.now(timezone.utc).isoformat(),
            }
        elif name == "todo_toggle":
            todo = self.todos.get(arguments["id"])
            if todo is not None:
                todo["completed"] = not todo["completed"]
        elif name == "todo_remove":
            self.todos.pop(arguments["id"], None)
        elif name != "todo_list":
            return {"error": {"code": -32601, "message": f"Unknown tool: {name}"}}

        todos = list(self.todos.values())
        open_count = sum(1 for t in todos if not t["completed"])
        return {
            "result": {
                "content": [{"type": "text", "text": f"{len(todos)} todos"}],
                "structuredContent": {
                    "success": True,
                    "todos": todos,
                    "title": f"Todos {open_count}",
                },
            }
        }


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def bridge(transport):
    return AppBridge(
        transport,
        client_info=ClientInfo(name="Todo List", version="1.0.0"),
        request_timeout=0.2,
    )


@pytest.fixture
def tool_result():
    """Sample todo_add result as the todo server returns it."""
    todo = {
        "id": "todo_1",
        "text": "milk",
        "completed": False,
        "createdAt": "2026-01-01T00:00:00Z",
    }
    return {
        "content": [{"type": "text", "text": '{"success": true}'}],
        "structuredContent": {
            "success": True,
            "action": "added",
            "todo": todo,
            "todos": [todo],
            "title": "Todos 1",
        },
    }
