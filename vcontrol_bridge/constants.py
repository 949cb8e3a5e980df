"""Constants used across the vcontrol-bridge package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "vcontrol-bridge"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_LOG_PATH = Path.home() / ".local" / "state" / APP_NAME / f"{APP_NAME}.log"

DEFAULT_VCONTROLD_HOST = "127.0.0.1"
DEFAULT_VCONTROLD_PORT = 3002
DEFAULT_CHANNEL_BACKEND = "simulated"

DEFAULT_REFRESH_INTERVAL_SECONDS = 600.0

DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 8099

DEFAULT_MANUFACTURER = "Viessmann"
DEFAULT_MODEL = "unknown"
