"""Root logger setup shared by the service and the one-shot CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

COMMAND_LOGGER = "vcontrol_bridge.dispatcher"


def configure_logging(
    level: str = "INFO",
    *,
    log_path: Optional[Path] = None,
    debug_commands: bool = False,
) -> None:
    """Replace the root handlers with a console handler and, optionally, a file.

    ``debug_commands`` lets the dispatcher trace every queued and executed
    command even when the root level is INFO or higher.
    """

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    logging.captureWarnings(True)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT
    )

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    logging.getLogger(COMMAND_LOGGER).setLevel(
        logging.DEBUG if debug_commands else logging.NOTSET
    )
    # One line per HTTP poll is noise next to the command trace.
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
