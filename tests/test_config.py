from pathlib import Path

from vcontrol_bridge.config import load_config, save_config
from vcontrol_bridge.core import Circuit


def test_load_config_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "vcontrol-bridge.cfg"
    config = load_config(config_path)

    assert config.vcontrold.host == "127.0.0.1"
    assert config.vcontrold.port == 3002
    assert config.vcontrold.backend == "simulated"
    assert config.refresh.enabled is True
    assert config.refresh.interval_seconds == 600.0
    assert config.thermostat.min_temperature == 15.0
    assert config.thermostat.max_temperature == 25.0
    assert config.thermostat.temperature_step == 1.0
    assert config.server.port == 8099
    assert config.logging.debug_commands is False

    hk1, hk2 = config.circuits
    assert hk1.circuit is Circuit.HK1
    assert hk1.mode_write == "setVitoBetriebsartM1"
    assert hk1.setpoint_read == "getTempRaumNorSollM1"
    assert hk1.off_mode == 1
    assert hk1.heat_mode == 2
    assert hk1.room_temperature_read is None
    assert hk2.mode_read == "getVitoBetriebsartM2"
    assert hk2.off_mode == 0
    assert [entry.circuit for entry in config.enabled_circuits] == [Circuit.HK1, Circuit.HK2]


def test_load_config_overrides_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "vcontrol-bridge.cfg"
    config_file.write_text(
        """
[vcontrold]
host = 192.168.1.20
port = 3003
backend = mypackage.channels:create

[refresh]
interval_seconds = 120

[circuit HK2]
enabled = false

[circuit HK1]
room_temperature_read = getTempRaumIstM1
off_mode = 0

[thermostat]
temperature_step = 0.5

[logging]
path =
debug_commands = true
        """.strip()
        + "\n",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.vcontrold.host == "192.168.1.20"
    assert config.vcontrold.port == 3003
    assert config.vcontrold.backend == "mypackage.channels:create"
    assert config.refresh.interval_seconds == 120.0
    assert [entry.circuit for entry in config.enabled_circuits] == [Circuit.HK1]
    assert config.circuits[0].room_temperature_read == "getTempRaumIstM1"
    assert config.circuits[0].off_mode == 0
    assert config.thermostat.temperature_step == 0.5
    assert config.logging.path is None
    assert config.logging.debug_commands is True


def test_invalid_refresh_interval_falls_back(tmp_path: Path) -> None:
    config_file = tmp_path / "vcontrol-bridge.cfg"
    config_file.write_text("[refresh]\ninterval_seconds = soon\n", encoding="utf-8")

    assert load_config(config_file).refresh.interval_seconds == 600.0

    config_file.write_text("[refresh]\ninterval_seconds = -5\n", encoding="utf-8")

    assert load_config(config_file).refresh.interval_seconds == 600.0


def test_save_config_round_trips(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "vcontrol-bridge.cfg"
    config = load_config(config_path)
    config.raw.set("vcontrold", "host", "10.0.0.5")

    save_config(config)

    assert load_config(config_path).vcontrold.host == "10.0.0.5"
