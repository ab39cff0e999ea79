"""Terminal UI for the todo panel."""

from panelbridge.ui.todo_panel import TextualSurface, TodoItem, TodoPanelApp

__all__ = [
    "TextualSurface",
    "TodoItem",
    "TodoPanelApp",
]
