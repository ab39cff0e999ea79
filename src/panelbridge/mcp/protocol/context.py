"""Host context and the surface it is applied to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal

Theme = Literal["light", "dark"]

THEME_ATTRIBUTE = "data-theme"


def normalize_theme(theme: Any) -> Theme:
    """Collapse any host theme value to light or dark."""
    return "light" if theme == "light" else "dark"


@dataclass
class AppState:
    """Restoration state passed by the host, e.g. after popout/popin."""

    session_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppState":
        extra = {k: v for k, v in data.items() if k != "sessionId"}
        session_id = data.get("sessionId")
        return cls(
            session_id=str(session_id) if session_id is not None else None,
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        if self.session_id is not None:
            data["sessionId"] = self.session_id
        return data


@dataclass
class HostContext:
    """
    Presentation context sent by the host.

    Carried in ``ui/initialize`` params as ``hostContext`` and as the params
    of ``ui/notifications/host-context-changed``. It is applied as a side
    effect on receipt and not retained.
    """

    theme: str | None = None
    """Raw theme value; normalized when applied."""

    style_variables: dict[str, Any] = field(default_factory=dict)
    """Named style properties from ``styles.variables``."""

    app_state: AppState | None = None
    """Session restoration state (handshake only)."""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "HostContext":
        """
        Create from the wire shape.

        Missing or mistyped sections are treated as absent.
        """
        if not isinstance(data, dict):
            return cls()

        styles = data.get("styles")
        variables = styles.get("variables") if isinstance(styles, dict) else None
        app_state = data.get("appState")

        theme = data.get("theme")
        return cls(
            theme=theme if theme else None,
            style_variables=dict(variables) if isinstance(variables, dict) else {},
            app_state=AppState.from_dict(app_state) if isinstance(app_state, dict) else None,
        )


class Surface(ABC):
    """
    The document-level target of host context side effects.

    A browser panel would map these onto the root element; other
    renderers map them onto whatever owns their look.
    """

    @abstractmethod
    def set_attribute(self, name: str, value: str) -> None:
        """Set a document-level attribute such as ``data-theme``."""
        pass

    @abstractmethod
    def set_style_property(self, name: str, value: str) -> None:
        """Set a named style property."""
        pass


class MemorySurface(Surface):
    """Surface that records what was applied."""

    def __init__(self) -> None:
        self.attributes: dict[str, str] = {}
        self.style: dict[str, str] = {}

    @property
    def theme(self) -> str | None:
        return self.attributes.get(THEME_ATTRIBUTE)

    def set_attribute(self, name: str, value: str) -> None:
        self.attributes[name] = value

    def set_style_property(self, name: str, value: str) -> None:
        self.style[name] = value

    def __repr__(self) -> str:
        return f"MemorySurface(attributes={self.attributes!r}, style={self.style!r})"
