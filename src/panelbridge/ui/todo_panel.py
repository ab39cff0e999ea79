"""Textual todo panel driven by the host bridge."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import Input, Label, ListItem, ListView, Static

from panelbridge.mcp.protocol.context import THEME_ATTRIBUTE, Surface
from panelbridge.mcp.protocol.errors import BridgeError
from panelbridge.mcp.protocol.state import SessionState
from panelbridge.todos import Todo, TodoView

if TYPE_CHECKING:
    from panelbridge.mcp.protocol.client import AppBridge

logger = logging.getLogger(__name__)

LIGHT_THEME = "textual-light"
DARK_THEME = "textual-dark"


class TextualSurface(Surface):
    """Maps host context onto a running Textual app."""

    def __init__(self, app: App) -> None:
        self.app = app
        self.style: dict[str, str] = {}

    def set_attribute(self, name: str, value: str) -> None:
        if name == THEME_ATTRIBUTE:
            self.app.theme = LIGHT_THEME if value == "light" else DARK_THEME

    def set_style_property(self, name: str, value: str) -> None:
        # Host variables are CSS custom properties; kept for widgets to read
        self.style[name] = value


class TodoItem(ListItem):
    """One row of the todo list."""

    def __init__(self, todo: Todo) -> None:
        mark = "[x]" if todo.completed else "[ ]"
        super().__init__(Label(f"{mark} {todo.text}"), classes="done" if todo.completed else "")
        self.todo = todo


class TodoPanelApp(App):
    """Panel listing todos; all changes go through the host as tool calls."""

    BINDINGS = [
        ("space", "toggle_todo", "Toggle"),
        ("d", "remove_todo", "Remove"),
        ("delete", "remove_todo", "Remove"),
    ]

    DEFAULT_CSS = """
    #todo-header {
        height: 3;
        padding: 1;
        background: $primary;
    }

    #todo-title {
        width: 1fr;
        text-style: bold;
    }

    #todo-summary {
        width: auto;
    }

    #todo-list {
        height: 1fr;
    }

    TodoItem.done Label {
        color: $text-muted;
        text-style: strike;
    }
    """

    def __init__(self, bridge: "AppBridge", todo_view: TodoView | None = None) -> None:
        """
        Initialize the panel.

        Args:
            bridge: Bridge to the host. Started when the app mounts.
            todo_view: Todo state; a new one is attached to the bridge if omitted.
        """
        super().__init__()
        self.bridge = bridge
        self.todo_view = todo_view or TodoView()
        self.todo_view.attach(bridge)
        self.bridge.surface = TextualSurface(self)
        self.todo_view.on_change(lambda _view: self._schedule_refresh())

    def compose(self) -> ComposeResult:
        with Horizontal(id="todo-header"):
            yield Static("Todo List", id="todo-title")
            yield Static(self.todo_view.summary, id="todo-summary")
        yield Input(placeholder="Add a todo...", id="new-todo")
        yield ListView(id="todo-list")

    async def on_mount(self) -> None:
        self.bridge.on_state_change(self._on_state_change)
        await self.bridge.start()

    async def on_unmount(self) -> None:
        self.bridge.remove_state_listener(self._on_state_change)
        await self.bridge.close()

    def _on_state_change(self, old: SessionState, new: SessionState) -> None:
        if new == SessionState.READY:
            self._sync()
        elif new == SessionState.CLOSED:
            logger.info("Host tore the panel down")
            self.exit()

    def _schedule_refresh(self) -> None:
        self.run_worker(self._refresh(), group="todo-refresh", exclusive=True)

    async def _refresh(self) -> None:
        self.query_one("#todo-summary", Static).update(self.todo_view.summary)
        if self.todo_view.title:
            self.query_one("#todo-title", Static).update(self.todo_view.title)

        list_view = self.query_one("#todo-list", ListView)
        await list_view.clear()
        await list_view.extend(TodoItem(todo) for todo in self.todo_view.todos)

    async def _run_call(self, action: str, call) -> None:
        try:
            await call
        except BridgeError as e:
            self.notify(f"Failed to {action}: {e.message}", severity="error")

    def _start_call(self, action: str, call) -> None:
        # Tool calls wait on the host; keep the message pump free meanwhile
        self.run_worker(self._run_call(action, call), group="todo-calls")

    def _sync(self) -> None:
        self._start_call("load todos", self.todo_view.sync())

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "new-todo":
            return
        text = event.value
        event.input.value = ""
        if text.strip():
            self._start_call("add todo", self.todo_view.add(text))

    def _selected(self) -> Todo | None:
        item = self.query_one("#todo-list", ListView).highlighted_child
        return item.todo if isinstance(item, TodoItem) else None

    def action_toggle_todo(self) -> None:
        todo = self._selected()
        if todo is not None:
            self._start_call("toggle todo", self.todo_view.toggle(todo.id))

    def action_remove_todo(self) -> None:
        todo = self._selected()
        if todo is not None:
            self._start_call("remove todo", self.todo_view.remove(todo.id))
