"""Bridge configuration loading."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from panelbridge.lib import oj

logger = logging.getLogger(__name__)

# Protocol version answered in the ui/initialize handshake
PROTOCOL_VERSION = "2025-06-18"

# Config file locations
BRIDGE_CONFIG_FILENAME = "bridge.json"
GLOBAL_BRIDGE_CONFIG = Path.home() / ".panelbridge" / BRIDGE_CONFIG_FILENAME
LOCAL_BRIDGE_CONFIG_DIR = ".panelbridge"

# JSON key -> field name
_CONFIG_KEYS = {
    "clientName": "client_name",
    "clientVersion": "client_version",
    "protocolVersion": "protocol_version",
    "requestTimeout": "request_timeout",
}


@dataclass
class BridgeConfig:
    """Settings for one panel's protocol session."""

    client_name: str = "panelbridge"
    """Name reported to the host in the handshake."""

    client_version: str = "0.1.0"
    """Version reported to the host in the handshake."""

    protocol_version: str = PROTOCOL_VERSION
    """Fixed protocol version string answered to the host."""

    request_timeout: float = 30.0
    """Seconds an outbound request may stay unanswered."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.client_name:
            raise ValueError("client_name is required")
        if not self.client_version:
            raise ValueError("client_version is required")
        if not self.protocol_version:
            raise ValueError("protocol_version is required")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BridgeConfig":
        """Create from config dict (camelCase keys, unknown keys ignored)."""
        kwargs = {
            field: data[key] for key, field in _CONFIG_KEYS.items() if key in data
        }
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, field) for key, field in _CONFIG_KEYS.items()}


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = oj.loads(path.read_bytes())
    except (OSError, oj.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable config {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config {path}: expected an object")
        return {}
    return data


def load_bridge_config(
    working_dir: Path | None = None,
    global_config: Path | None = None,
) -> BridgeConfig:
    """Load bridge settings from global and local config files.

    Global config (~/.panelbridge/bridge.json) is loaded first.
    Local config ({working_dir}/.panelbridge/bridge.json) overrides it key by key.

    Returns:
        The merged configuration (defaults where neither file sets a key).
    """
    merged: dict[str, Any] = {}
    merged.update(_read_config_file(global_config or GLOBAL_BRIDGE_CONFIG))

    if working_dir:
        local_config = working_dir / LOCAL_BRIDGE_CONFIG_DIR / BRIDGE_CONFIG_FILENAME
        merged.update(_read_config_file(local_config))

    try:
        return BridgeConfig.from_dict(merged)
    except (TypeError, ValueError) as e:
        logger.warning(f"Invalid bridge config, using defaults: {e}")
        return BridgeConfig()
