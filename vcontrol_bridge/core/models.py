"""Domain models for circuits, cached state and queued commands."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional


class Circuit(str, Enum):
    """Heating circuits managed by the controller."""

    HK1 = "HK1"
    HK2 = "HK2"


class CommandKind(str, Enum):
    READ = "read"
    WRITE = "write"


class HeatingState(IntEnum):
    """Thermostat heating states; only OFF and HEAT are supported."""

    OFF = 0
    HEAT = 1


CIRCUIT_FIELDS: tuple[str, ...] = (
    "current_mode",
    "target_mode",
    "current_temperature",
    "target_temperature",
    "display_unit",
)


@dataclass(slots=True)
class CircuitState:
    """Last known values for one circuit.

    Defaults match what the thermostat reports before the first refresh:
    heating enabled, 21 degrees, Celsius.
    """

    current_mode: float = float(HeatingState.OFF)
    target_mode: float = float(HeatingState.HEAT)
    current_temperature: float = 21.0
    target_temperature: float = 21.0
    display_unit: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in CIRCUIT_FIELDS}


@dataclass(frozen=True)
class Command:
    """A single queued read or write against the daemon.

    The future is resolved exactly once by the drain loop. A caller that gave
    up waiting may have cancelled it already; late results are then dropped.
    """

    kind: CommandKind
    target: str
    future: asyncio.Future[Any] = field(compare=False, repr=False)
    value: Optional[float] = None

    def resolve(self, result: Any) -> bool:
        if self.future.done():
            return False
        self.future.set_result(result)
        return True

    def fail(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True
