"""Error taxonomy for the command channel lifecycle."""

from __future__ import annotations

from typing import Optional


class BridgeError(RuntimeError):
    """Base class for failures delivered to command callers."""


class ChannelConnectionError(BridgeError):
    """Raised when the vcontrold channel cannot be opened."""


class CommandExecutionError(BridgeError):
    """Raised when a single read or write fails on an open channel."""

    def __init__(self, target: str, message: Optional[str] = None) -> None:
        self.target = target
        super().__init__(message or f"command {target!r} failed")


class ChannelCloseError(BridgeError):
    """Raised when the channel fails to close cleanly. Only ever logged."""
