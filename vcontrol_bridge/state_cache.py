"""Last-known-value cache for heating circuits."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional

from .core import CIRCUIT_FIELDS, Circuit, CircuitState

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _CircuitEntry:
    state: CircuitState
    updated_at: Dict[str, datetime] = field(default_factory=dict)


class EntityCache:
    """Caches the latest known value of each observable field per circuit.

    Reads never block and never touch the network; they return whatever the
    last completed command wrote, or the seeded default. Writes come only from
    command completions (read results, or write-through after a successful
    write). Fields are updated independently; no multi-field consistency is
    offered.
    """

    def __init__(
        self,
        circuits: Iterable[Circuit] = (),
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: Dict[Circuit, _CircuitEntry] = {}
        for circuit in circuits:
            self.register(circuit)

    def register(
        self, circuit: Circuit, defaults: Optional[CircuitState] = None
    ) -> None:
        if circuit in self._entries:
            return
        self._entries[circuit] = _CircuitEntry(state=defaults or CircuitState())
        LOGGER.debug("Registered circuit %s", circuit.value)

    @property
    def circuits(self) -> list[Circuit]:
        return list(self._entries)

    def __contains__(self, circuit: object) -> bool:
        return circuit in self._entries

    def read(self, circuit: Circuit, name: str) -> float:
        """Return the last known value of ``name`` for ``circuit``."""

        _check_field(name)
        return getattr(self._entry(circuit).state, name)

    def write(self, circuit: Circuit, name: str, value: Any) -> None:
        _check_field(name)
        entry = self._entry(circuit)
        numeric = float(value)
        previous = getattr(entry.state, name)
        setattr(entry.state, name, numeric)
        entry.updated_at[name] = self._clock()
        if previous != numeric:
            LOGGER.info("%s %s: %s -> %s", circuit.value, name, previous, numeric)
        else:
            LOGGER.debug("%s %s confirmed at %s", circuit.value, name, numeric)

    def updated_at(self, circuit: Circuit, name: str) -> Optional[datetime]:
        """When ``name`` was last written, or ``None`` while still seeded."""

        _check_field(name)
        return self._entry(circuit).updated_at.get(name)

    def snapshot(self, circuit: Circuit) -> Dict[str, Any]:
        entry = self._entry(circuit)
        payload: Dict[str, Any] = {"circuit": circuit.value}
        payload.update(entry.state.as_dict())
        latest = max(entry.updated_at.values(), default=None)
        payload["updatedAt"] = (
            latest.isoformat(timespec="seconds") if latest is not None else None
        )
        return payload

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {circuit.value: self.snapshot(circuit) for circuit in self._entries}

    def _entry(self, circuit: Circuit) -> _CircuitEntry:
        try:
            return self._entries[circuit]
        except KeyError:
            raise KeyError(f"Circuit {circuit!r} is not registered") from None


def _check_field(name: str) -> None:
    if name not in CIRCUIT_FIELDS:
        raise ValueError(f"Unknown circuit field: {name}")
