"""In-memory stand-in for a vcontrold daemon."""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_SIMULATED_VALUES: dict[str, float] = {
    "getVitoBetriebsartM1": 2.0,
    "getVitoBetriebsartM2": 2.0,
    "getTempRaumNorSollM1": 21.0,
    "getTempRaumNorSollM2": 20.0,
}


class SimulatedChannel:
    """Heating controller kept in a dict, following vcontrold command naming.

    ``setFoo`` writes the value that ``getFoo`` returns. Like the real daemon
    it refuses commands while no connection is open.
    """

    def __init__(
        self,
        values: Optional[Mapping[str, float]] = None,
        *,
        latency: float = 0.0,
    ) -> None:
        self._values = dict(DEFAULT_SIMULATED_VALUES if values is None else values)
        self._latency = max(latency, 0.0)
        self._connected = False
        self.connect_count = 0
        self.close_count = 0

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def values(self) -> dict[str, float]:
        return dict(self._values)

    async def connect(self) -> None:
        await self._delay()
        if self._connected:
            raise RuntimeError("Simulated vcontrold connection already open")
        self._connected = True
        self.connect_count += 1
        LOGGER.debug("Simulated vcontrold connected")

    async def read(self, target: str) -> float:
        self._require_connection()
        await self._delay()
        try:
            return self._values[target]
        except KeyError:
            raise ValueError(f"Unknown command: {target}") from None

    async def write(self, target: str, value: float) -> None:
        self._require_connection()
        await self._delay()
        if not target.startswith("set"):
            raise ValueError(f"Not a write command: {target}")
        self._values[f"get{target[3:]}"] = float(value)

    async def close(self) -> None:
        await self._delay()
        self._connected = False
        self.close_count += 1
        LOGGER.debug("Simulated vcontrold closed")

    def _require_connection(self) -> None:
        if not self._connected:
            raise RuntimeError("Simulated vcontrold is not connected")

    async def _delay(self) -> None:
        if self._latency:
            await asyncio.sleep(self._latency)
