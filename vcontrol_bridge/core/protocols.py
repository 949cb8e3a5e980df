"""Protocol definitions for the remote command channel."""

from __future__ import annotations

from typing import Any, Callable, Protocol


class CommandChannel(Protocol):
    """Minimal contract for a connection to the vcontrold daemon.

    A channel carries one command at a time. The dispatcher opens it when
    work is queued, runs every queued command through it and closes it again
    once the queue is empty.
    """

    async def connect(self) -> None:
        """Open the connection to the daemon."""
        ...

    async def read(self, target: str) -> float:
        """Execute a read command and return its numeric value."""
        ...

    async def write(self, target: str, value: float) -> None:
        """Execute a write command; returns once the daemon acknowledged it."""
        ...

    async def close(self) -> None:
        """Close the connection."""
        ...


# Called with the [vcontrold] config section.
ChannelFactory = Callable[[Any], CommandChannel]
