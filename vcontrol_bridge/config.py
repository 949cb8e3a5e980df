"""Configuration loader for vcontrol-bridge."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from . import constants
from .core import Circuit

DEFAULT_CIRCUIT_COMMANDS: Dict[Circuit, Dict[str, str]] = {
    Circuit.HK1: {
        "mode_read": "getVitoBetriebsartM1",
        "mode_write": "setVitoBetriebsartM1",
        "setpoint_read": "getTempRaumNorSollM1",
        "setpoint_write": "setTempRaumNorSollM1",
        "room_temperature_read": "",
    },
    Circuit.HK2: {
        "mode_read": "getVitoBetriebsartM2",
        "mode_write": "setVitoBetriebsartM2",
        "setpoint_read": "getTempRaumNorSollM2",
        "setpoint_write": "setTempRaumNorSollM2",
        "room_temperature_read": "",
    },
}

# Raw device mode written when a circuit is switched off. HK1 drops to the
# reduced mode, HK2 is switched off entirely.
DEFAULT_OFF_MODES: Dict[Circuit, int] = {Circuit.HK1: 1, Circuit.HK2: 0}
DEFAULT_HEAT_MODE = 2


@dataclass(slots=True)
class VcontroldConfig:
    host: str = constants.DEFAULT_VCONTROLD_HOST
    port: int = constants.DEFAULT_VCONTROLD_PORT
    backend: str = constants.DEFAULT_CHANNEL_BACKEND
    connect_timeout_seconds: float = 10.0


@dataclass(slots=True)
class RefreshConfig:
    enabled: bool = True
    interval_seconds: float = constants.DEFAULT_REFRESH_INTERVAL_SECONDS


@dataclass(slots=True)
class CircuitConfig:
    circuit: Circuit
    enabled: bool = True
    mode_read: str = ""
    mode_write: str = ""
    setpoint_read: str = ""
    setpoint_write: str = ""
    room_temperature_read: Optional[str] = None
    heat_mode: int = DEFAULT_HEAT_MODE
    off_mode: int = 0

    @classmethod
    def default(cls, circuit: Circuit) -> "CircuitConfig":
        commands = DEFAULT_CIRCUIT_COMMANDS[circuit]
        return cls(
            circuit=circuit,
            mode_read=commands["mode_read"],
            mode_write=commands["mode_write"],
            setpoint_read=commands["setpoint_read"],
            setpoint_write=commands["setpoint_write"],
            room_temperature_read=commands["room_temperature_read"] or None,
            off_mode=DEFAULT_OFF_MODES[circuit],
        )


@dataclass(slots=True)
class ThermostatConfig:
    min_temperature: float = 15.0
    max_temperature: float = 25.0
    temperature_step: float = 1.0
    manufacturer: str = constants.DEFAULT_MANUFACTURER
    model: str = constants.DEFAULT_MODEL


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    debug_commands: bool = False


@dataclass(slots=True)
class ServerConfig:
    enabled: bool = True
    host: str = constants.DEFAULT_SERVER_HOST
    port: int = constants.DEFAULT_SERVER_PORT
    request_timeout_seconds: float = 30.0


@dataclass(slots=True)
class BridgeConfig:
    vcontrold: VcontroldConfig
    refresh: RefreshConfig
    circuits: list[CircuitConfig]
    thermostat: ThermostatConfig
    logging: LoggingConfig
    server: ServerConfig
    raw: ConfigParser
    path: Path

    @property
    def enabled_circuits(self) -> list[CircuitConfig]:
        return [entry for entry in self.circuits if entry.enabled]


def _circuit_section(circuit: Circuit) -> str:
    return f"circuit {circuit.value}"


def load_config(path: Optional[Path] = None) -> BridgeConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    defaults: Dict[str, Dict[str, str]] = {
        "vcontrold": {
            "host": constants.DEFAULT_VCONTROLD_HOST,
            "port": str(constants.DEFAULT_VCONTROLD_PORT),
            "backend": constants.DEFAULT_CHANNEL_BACKEND,
            "connect_timeout_seconds": "10.0",
        },
        "refresh": {
            "enabled": "true",
            "interval_seconds": str(constants.DEFAULT_REFRESH_INTERVAL_SECONDS),
        },
        "thermostat": {
            "min_temperature": "15",
            "max_temperature": "25",
            "temperature_step": "1",
            "manufacturer": constants.DEFAULT_MANUFACTURER,
            "model": constants.DEFAULT_MODEL,
        },
        "logging": {
            "level": "INFO",
            "path": str(constants.DEFAULT_LOG_PATH),
            "debug_commands": "false",
        },
        "server": {
            "enabled": "true",
            "host": constants.DEFAULT_SERVER_HOST,
            "port": str(constants.DEFAULT_SERVER_PORT),
            "request_timeout_seconds": "30.0",
        },
    }
    for circuit, commands in DEFAULT_CIRCUIT_COMMANDS.items():
        defaults[_circuit_section(circuit)] = {
            "enabled": "true",
            "heat_mode": str(DEFAULT_HEAT_MODE),
            "off_mode": str(DEFAULT_OFF_MODES[circuit]),
            **commands,
        }
    parser.read_dict(defaults)

    if config_path.exists():
        parser.read(config_path)

    vcontrold = VcontroldConfig(
        host=parser.get("vcontrold", "host"),
        port=parser.getint("vcontrold", "port", fallback=constants.DEFAULT_VCONTROLD_PORT),
        backend=parser.get("vcontrold", "backend").strip() or constants.DEFAULT_CHANNEL_BACKEND,
        connect_timeout_seconds=max(
            0.1,
            parser.getfloat("vcontrold", "connect_timeout_seconds", fallback=10.0),
        ),
    )

    default_interval = RefreshConfig().interval_seconds
    try:
        interval_value = parser.getfloat(
            "refresh", "interval_seconds", fallback=default_interval
        )
    except ValueError:
        interval_value = default_interval

    refresh = RefreshConfig(
        enabled=parser.getboolean("refresh", "enabled", fallback=True),
        interval_seconds=interval_value if interval_value > 0 else default_interval,
    )

    circuits: list[CircuitConfig] = []
    for circuit in Circuit:
        section = _circuit_section(circuit)
        room_read = parser.get(section, "room_temperature_read", fallback="").strip()
        circuits.append(
            CircuitConfig(
                circuit=circuit,
                enabled=parser.getboolean(section, "enabled", fallback=True),
                mode_read=parser.get(section, "mode_read").strip(),
                mode_write=parser.get(section, "mode_write").strip(),
                setpoint_read=parser.get(section, "setpoint_read").strip(),
                setpoint_write=parser.get(section, "setpoint_write").strip(),
                room_temperature_read=room_read or None,
                heat_mode=parser.getint(section, "heat_mode", fallback=DEFAULT_HEAT_MODE),
                off_mode=parser.getint(
                    section, "off_mode", fallback=DEFAULT_OFF_MODES[circuit]
                ),
            )
        )

    thermostat = ThermostatConfig(
        min_temperature=parser.getfloat("thermostat", "min_temperature", fallback=15.0),
        max_temperature=parser.getfloat("thermostat", "max_temperature", fallback=25.0),
        temperature_step=max(
            0.1, parser.getfloat("thermostat", "temperature_step", fallback=1.0)
        ),
        manufacturer=parser.get("thermostat", "manufacturer"),
        model=parser.get("thermostat", "model"),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        debug_commands=parser.getboolean("logging", "debug_commands", fallback=False),
    )

    server = ServerConfig(
        enabled=parser.getboolean("server", "enabled", fallback=True),
        host=parser.get("server", "host", fallback=constants.DEFAULT_SERVER_HOST),
        port=parser.getint("server", "port", fallback=constants.DEFAULT_SERVER_PORT),
        request_timeout_seconds=max(
            1.0,
            parser.getfloat("server", "request_timeout_seconds", fallback=30.0),
        ),
    )

    return BridgeConfig(
        vcontrold=vcontrold,
        refresh=refresh,
        circuits=circuits,
        thermostat=thermostat,
        logging=logging_config,
        server=server,
        raw=parser,
        path=config_path,
    )


def save_config(config: BridgeConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
