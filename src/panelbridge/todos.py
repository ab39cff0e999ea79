"""Client-side view of the todo list served by the MCP todo tools."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from panelbridge.mcp.protocol.client import AppBridge

logger = logging.getLogger(__name__)

TODO_ADD = "todo_add"
TODO_LIST = "todo_list"
TODO_TOGGLE = "todo_toggle"
TODO_REMOVE = "todo_remove"


@dataclass
class Todo:
    """A todo item as the server reports it."""

    id: str
    text: str
    completed: bool = False
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Todo":
        return cls(
            id=str(data["id"]),
            text=str(data.get("text", "")),
            completed=bool(data.get("completed", False)),
            created_at=str(data.get("createdAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "createdAt": self.created_at,
        }


class TodoView:
    """
    The todo list as last reported by the server.

    The server owns the data. The view only mirrors ``structuredContent``
    from tool results, whether they answer the panel's own calls or are
    broadcast by the host after the agent called a tool. Results without a
    ``todos`` list leave the view unchanged.
    """

    def __init__(self) -> None:
        self.todos: list[Todo] = []
        self.title: str | None = None
        self._bridge: AppBridge | None = None
        self._synced = False
        self._listeners: list[Callable[["TodoView"], None]] = []

    @property
    def completed_count(self) -> int:
        return sum(1 for todo in self.todos if todo.completed)

    @property
    def open_count(self) -> int:
        return len(self.todos) - self.completed_count

    @property
    def summary(self) -> str:
        """Header text, e.g. ``2/5 done``."""
        if not self.todos:
            return "No items"
        return f"{self.completed_count}/{len(self.todos)} done"

    def on_change(self, callback: Callable[["TodoView"], None]) -> None:
        """Register a callback run after the list is replaced."""
        self._listeners.append(callback)

    def attach(self, bridge: "AppBridge") -> None:
        """Receive every tool result the bridge sees."""
        self._bridge = bridge
        bridge.on_tool_result(self.apply_result)

    def apply_result(self, result: dict[str, Any]) -> bool:
        """
        Update the view from a tool result.

        Args:
            result: Tool result with optional ``structuredContent``.

        Returns:
            True if the list was replaced.
        """
        structured = result.get("structuredContent") if isinstance(result, dict) else None
        if not isinstance(structured, dict):
            return False

        title = structured.get("title")
        if isinstance(title, str):
            self.title = title

        todos = structured.get("todos")
        if not isinstance(todos, list):
            return False

        parsed = []
        for item in todos:
            try:
                parsed.append(Todo.from_dict(item))
            except (KeyError, TypeError):
                logger.warning(f"Skipping malformed todo: {item!r}")
        self.todos = parsed

        for listener in self._listeners:
            listener(self)
        return True

    async def sync(self) -> bool:
        """
        Fetch the current list once per view.

        A reloaded panel starts empty while the server still holds the data,
        so the panel asks for the list as soon as the bridge is ready.

        Returns:
            True if a fetch was made.
        """
        if self._synced:
            return False
        self._synced = True
        await self._call(TODO_LIST, {})
        return True

    async def add(self, text: str) -> dict[str, Any] | None:
        text = text.strip()
        if not text:
            return None
        return await self._call(TODO_ADD, {"text": text})

    async def toggle(self, todo_id: str) -> dict[str, Any]:
        return await self._call(TODO_TOGGLE, {"id": todo_id})

    async def remove(self, todo_id: str) -> dict[str, Any]:
        return await self._call(TODO_REMOVE, {"id": todo_id})

    async def _call(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        if self._bridge is None:
            raise RuntimeError("TodoView is not attached to a bridge")
        # The bridge feeds the result back through apply_result
        return await self._bridge.call_tool(name, arguments)
