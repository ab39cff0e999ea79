"""Routing of host notifications to panel callbacks."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable

from panelbridge.mcp.protocol.context import (
    THEME_ATTRIBUTE,
    AppState,
    HostContext,
    MemorySurface,
    Surface,
    Theme,
    normalize_theme,
)
from panelbridge.mcp.protocol.messages import (
    HOST_CONTEXT_CHANGED,
    TOOL_INPUT,
    TOOL_RESULT,
    JSONRPCNotification,
)

logger = logging.getLogger(__name__)

# Callbacks may be plain functions or coroutine functions
ToolInputCallback = Callable[[dict[str, Any]], Awaitable[None] | None]
ToolResultCallback = Callable[[dict[str, Any]], Awaitable[None] | None]
ThemeChangeCallback = Callable[[Theme], Awaitable[None] | None]
AppStateCallback = Callable[[AppState], Awaitable[None] | None]


class NotificationDispatcher:
    """
    Routes host notifications and applies host context.

    Handles tool-input, tool-result and host-context-changed; any other
    method is logged and ignored. Callback failures are logged and never
    propagate into the protocol layer. Delivery is at-least-once: the same
    tool-result notification received twice reaches the callback twice.
    """

    def __init__(self, surface: Surface | None = None):
        """
        Initialize the dispatcher.

        Args:
            surface: Target of theme and style side effects
                (defaults to an in-memory surface).
        """
        self.surface = surface or MemorySurface()
        self._tool_input: ToolInputCallback | None = None
        self._tool_result: ToolResultCallback | None = None
        self._theme_change: ThemeChangeCallback | None = None
        self._app_state: AppStateCallback | None = None

        self._routes: dict[str, Callable[[dict[str, Any]], Awaitable[None]]] = {
            TOOL_INPUT: self._handle_tool_input,
            TOOL_RESULT: self._handle_tool_result,
            HOST_CONTEXT_CHANGED: self._handle_host_context_changed,
        }

    def on_tool_input(self, callback: ToolInputCallback | None) -> None:
        """Register the callback receiving tool arguments before execution."""
        self._tool_input = callback

    def on_tool_result(self, callback: ToolResultCallback | None) -> None:
        """Register the callback receiving tool results."""
        self._tool_result = callback

    def on_theme_change(self, callback: ThemeChangeCallback | None) -> None:
        self._theme_change = callback

    def on_app_state(self, callback: AppStateCallback | None) -> None:
        self._app_state = callback

    async def dispatch(self, notification: JSONRPCNotification) -> bool:
        """
        Route a notification to its handler.

        Args:
            notification: Decoded inbound notification.

        Returns:
            True if the method is one the dispatcher handles.
        """
        route = self._routes.get(notification.method)
        if route is None:
            logger.debug(f"Ignoring unhandled notification: {notification.method}")
            return False

        await route(notification.params or {})
        return True

    async def emit_tool_result(self, result: dict[str, Any]) -> None:
        """Deliver a tool result to the registered callback."""
        await self._invoke(self._tool_result, result, label="tool-result")

    async def apply_host_context(
        self,
        context: HostContext,
        include_app_state: bool = False,
    ) -> None:
        """
        Apply host context side effects.

        Args:
            context: Context received from the host.
            include_app_state: Forward ``appState`` to the app-state callback
                (only done during the handshake).
        """
        if context.theme:
            await self.apply_theme(context.theme)

        if context.style_variables:
            self.apply_style_variables(context.style_variables)

        if include_app_state and context.app_state is not None:
            await self._invoke(self._app_state, context.app_state, label="app-state")

    async def apply_theme(self, theme: Any) -> Theme:
        """Normalize a theme, record it on the surface and report it."""
        normalized = normalize_theme(theme)
        self.surface.set_attribute(THEME_ATTRIBUTE, normalized)
        await self._invoke(self._theme_change, normalized, label="theme-change")
        return normalized

    def apply_style_variables(self, variables: dict[str, Any]) -> int:
        """
        Apply style variables to the surface, skipping empty values.

        Returns:
            Number of properties applied.
        """
        applied = 0
        for name, value in variables.items():
            if value:
                self.surface.set_style_property(name, str(value))
                applied += 1
        return applied

    async def _handle_tool_input(self, params: dict[str, Any]) -> None:
        arguments = params.get("arguments") or {}
        await self._invoke(self._tool_input, arguments, label="tool-input")

    async def _handle_tool_result(self, params: dict[str, Any]) -> None:
        await self.emit_tool_result(params)

    async def _handle_host_context_changed(self, params: dict[str, Any]) -> None:
        logger.debug(f"Host context changed: {params}")
        await self.apply_host_context(HostContext.from_dict(params))

    async def _invoke(self, callback: Callable[..., Any] | None, *args: Any, label: str) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"{label} callback error")
