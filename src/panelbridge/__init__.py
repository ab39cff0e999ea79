"""panelbridge: panel-side client for the MCP Apps host protocol."""

__version__ = "0.1.0"
