"""Channel backends for the vcontrold daemon."""

from __future__ import annotations

import importlib

from ..config import VcontroldConfig
from ..core import ChannelFactory, CommandChannel
from .simulated import DEFAULT_SIMULATED_VALUES, SimulatedChannel

SIMULATED_BACKEND = "simulated"


def create_channel(config: VcontroldConfig) -> CommandChannel:
    """Build the channel named by ``config.backend``.

    ``simulated`` selects the in-memory controller. Anything else must be a
    ``package.module:factory`` path; the factory is called with the
    :class:`VcontroldConfig` and returns a :class:`CommandChannel`.
    """

    backend = config.backend.strip()
    if backend == SIMULATED_BACKEND:
        return SimulatedChannel()

    module_name, sep, attr = backend.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"Invalid channel backend {backend!r}; expected 'simulated' or 'module:factory'"
        )

    module = importlib.import_module(module_name)
    factory: ChannelFactory = getattr(module, attr)
    return factory(config)


__all__ = [
    "DEFAULT_SIMULATED_VALUES",
    "SIMULATED_BACKEND",
    "SimulatedChannel",
    "create_channel",
]
