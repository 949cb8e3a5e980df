"""Thermostat characteristics mapped onto vcontrold commands.

Each heating circuit is exposed as a thermostat with five characteristics.
Reads are served from the entity cache and never wait for the daemon; writes
are queued on the dispatcher and awaited, and the cache is updated once the
daemon acknowledged them.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Callable, Dict, Iterable

from .config import CircuitConfig, ThermostatConfig
from .core import Circuit, HeatingState
from .dispatcher import CommandDispatcher
from .refresh import RefreshSpec
from .state_cache import EntityCache

LOGGER = logging.getLogger(__name__)

CELSIUS = 0


def mode_to_heating_state(raw: float, *, heat_threshold: int = 2) -> float:
    """Translate a raw operating mode into OFF/HEAT.

    Modes below ``heat_threshold`` (off, hot water only) count as OFF.
    """
    return float(HeatingState.HEAT if raw >= heat_threshold else HeatingState.OFF)


def _parse_heating_state(value: Any) -> HeatingState:
    try:
        number = float(value)
        if not number.is_integer():
            raise ValueError(value)
        return HeatingState(int(number))
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"Unsupported heating state: {value!r}") from None


class ThermostatHandler:
    """Characteristic handlers for one heating circuit."""

    def __init__(
        self,
        circuit_config: CircuitConfig,
        *,
        dispatcher: CommandDispatcher,
        cache: EntityCache,
        thermostat_config: ThermostatConfig,
    ) -> None:
        self._config = circuit_config
        self._dispatcher = dispatcher
        self._cache = cache
        self._limits = thermostat_config
        cache.register(circuit_config.circuit)

    @property
    def circuit(self) -> Circuit:
        return self._config.circuit

    def refresh_specs(self) -> list[RefreshSpec]:
        config = self._config
        specs = [
            RefreshSpec(
                circuit=config.circuit,
                field="current_mode",
                target=config.mode_read,
                convert=lambda raw: mode_to_heating_state(
                    raw, heat_threshold=config.heat_mode
                ),
                mirror=("target_mode",),
            ),
            RefreshSpec(
                circuit=config.circuit,
                field="target_temperature",
                target=config.setpoint_read,
            ),
        ]
        if config.room_temperature_read:
            specs.append(
                RefreshSpec(
                    circuit=config.circuit,
                    field="current_temperature",
                    target=config.room_temperature_read,
                )
            )
        return specs

    def accessory_info(self) -> Dict[str, str]:
        return {
            "manufacturer": self._limits.manufacturer,
            "model": self._limits.model,
            "name": self.circuit.value,
        }

    def snapshot(self) -> Dict[str, Any]:
        payload = self._cache.snapshot(self.circuit)
        payload["device"] = self.accessory_info()
        return payload

    # ── Getters (cache only) ───────────────────────────────────────────────

    def get_current_heating_state(self) -> int:
        return int(self._cache.read(self.circuit, "current_mode"))

    def get_target_heating_state(self) -> int:
        return int(self._cache.read(self.circuit, "target_mode"))

    def get_current_temperature(self) -> float:
        return self._cache.read(self.circuit, "current_temperature")

    def get_target_temperature(self) -> float:
        return self._cache.read(self.circuit, "target_temperature")

    def get_display_units(self) -> int:
        return int(self._cache.read(self.circuit, "display_unit"))

    # ── Setters (queued writes) ────────────────────────────────────────────

    async def set_target_heating_state(self, value: int) -> None:
        """Switch the circuit between OFF and HEAT.

        Raises:
            ValueError: For states other than OFF and HEAT.
            BridgeError: When the daemon write fails.
        """
        state = _parse_heating_state(value)

        raw = self._config.heat_mode if state is HeatingState.HEAT else self._config.off_mode
        LOGGER.debug(
            "%s target heating state -> %s (mode %d)", self.circuit.value, state.name, raw
        )
        future = self._dispatcher.enqueue_write(
            self._config.mode_write,
            raw,
            on_complete=self._write_through("target_mode", float(state)),
        )
        await asyncio.shield(future)

    async def set_target_temperature(self, value: float) -> None:
        """Write a new room setpoint.

        Raises:
            ValueError: Outside the configured range or off the step grid.
            BridgeError: When the daemon write fails.
        """
        temperature = self._validate_temperature(value)
        LOGGER.debug("%s target temperature -> %s", self.circuit.value, temperature)
        future = self._dispatcher.enqueue_write(
            self._config.setpoint_write,
            temperature,
            on_complete=self._write_through("target_temperature", temperature),
        )
        # A caller giving up must not drop the write-through.
        await asyncio.shield(future)

    def set_display_units(self, value: int) -> None:
        if int(value) != CELSIUS:
            raise ValueError("Only Celsius display units are supported")

    def _validate_temperature(self, value: Any) -> float:
        try:
            temperature = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid temperature: {value!r}") from None

        limits = self._limits
        if not math.isfinite(temperature) or not (
            limits.min_temperature <= temperature <= limits.max_temperature
        ):
            raise ValueError(
                f"Temperature {temperature} outside "
                f"{limits.min_temperature}..{limits.max_temperature}"
            )

        steps = (temperature - limits.min_temperature) / limits.temperature_step
        if not math.isclose(steps, round(steps), abs_tol=1e-6):
            raise ValueError(
                f"Temperature {temperature} is not a multiple of {limits.temperature_step}"
            )
        return temperature

    def _write_through(
        self, name: str, value: float
    ) -> Callable[[asyncio.Future[Any]], None]:
        def _callback(future: asyncio.Future[Any]) -> None:
            if future.cancelled() or future.exception() is not None:
                return
            self._cache.write(self.circuit, name, value)

        return _callback


def build_handlers(
    circuits: Iterable[CircuitConfig],
    *,
    dispatcher: CommandDispatcher,
    cache: EntityCache,
    thermostat_config: ThermostatConfig,
) -> Dict[Circuit, ThermostatHandler]:
    return {
        entry.circuit: ThermostatHandler(
            entry,
            dispatcher=dispatcher,
            cache=cache,
            thermostat_config=thermostat_config,
        )
        for entry in circuits
    }
