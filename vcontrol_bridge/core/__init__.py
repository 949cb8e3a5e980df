"""Core primitives for vcontrol-bridge."""

from .errors import (
    BridgeError,
    ChannelCloseError,
    ChannelConnectionError,
    CommandExecutionError,
)
from .models import (
    CIRCUIT_FIELDS,
    Circuit,
    CircuitState,
    Command,
    CommandKind,
    HeatingState,
)
from .protocols import ChannelFactory, CommandChannel

__all__ = [
    "BridgeError",
    "CIRCUIT_FIELDS",
    "ChannelCloseError",
    "ChannelConnectionError",
    "ChannelFactory",
    "Circuit",
    "CircuitState",
    "Command",
    "CommandChannel",
    "CommandExecutionError",
    "CommandKind",
    "HeatingState",
]
