"""Run the todo panel against a host listening on a socket."""

import argparse
import logging
from pathlib import Path

from panelbridge.mcp.config import load_bridge_config
from panelbridge.mcp.protocol.client import AppBridge
from panelbridge.mcp.transport import StreamTransport, TransportConfig
from panelbridge.ui.todo_panel import TodoPanelApp


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m panelbridge.ui",
        description="Todo panel speaking the MCP Apps host protocol.",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--tcp", metavar="HOST:PORT", help="connect to a host over TCP")
    target.add_argument("--unix", metavar="PATH", help="connect to a host over a Unix socket")
    parser.add_argument("--log-file", type=Path, help="write protocol logs to this file")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    # The terminal belongs to the UI, so logs only go to a file
    if args.log_file:
        logging.basicConfig(
            filename=args.log_file,
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    transport_config = (
        TransportConfig(path=args.unix) if args.unix else TransportConfig.from_address(args.tcp)
    )
    bridge = AppBridge.from_config(
        StreamTransport(transport_config),
        load_bridge_config(Path.cwd()),
    )
    TodoPanelApp(bridge).run()


if __name__ == "__main__":
    main()
