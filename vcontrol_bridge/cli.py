"""Command-line interface for vcontrol-bridge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .adapters import create_channel
from .app import VcontrolBridgeApp
from .config import BridgeConfig, load_config
from .core import BridgeError
from .dispatcher import CommandDispatcher
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vcontrol-bridge",
        description="Serialized thermostat bridge for a vcontrold heating controller",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    start_parser = subparsers.add_parser("start", help="Start the bridge service")
    start_parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use the in-memory controller instead of the configured backend",
    )

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    read_parser = subparsers.add_parser("read", help="Run one vcontrold read command")
    read_parser.add_argument("target", help="Command name, e.g. getTempRaumNorSollM1")

    write_parser = subparsers.add_parser("write", help="Run one vcontrold write command")
    write_parser.add_argument("target", help="Command name, e.g. setTempRaumNorSollM1")
    write_parser.add_argument("value", type=float)

    return parser


async def _run_once(
    config: BridgeConfig, target: str, value: Optional[float]
) -> Optional[float]:
    dispatcher = CommandDispatcher(
        create_channel(config.vcontrold),
        connect_timeout=config.vcontrold.connect_timeout_seconds,
    )
    try:
        if value is None:
            return await dispatcher.enqueue_read(target)
        await dispatcher.enqueue_write(target, value)
        return None
    finally:
        await dispatcher.wait_idle()


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        VcontrolBridgeApp.start(config, simulate=args.simulate)
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    if args.command in ("read", "write"):
        configure_logging(config.logging.level, debug_commands=config.logging.debug_commands)
        value = args.value if args.command == "write" else None
        try:
            result = asyncio.run(_run_once(config, args.target, value))
        except (BridgeError, ValueError, ImportError) as exc:
            LOGGER.error("%s %s failed: %s", args.command, args.target, exc)
            return 1
        if result is not None:
            print(result)
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
