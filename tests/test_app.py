import asyncio
from pathlib import Path

import pytest

from vcontrol_bridge.adapters import SimulatedChannel
from vcontrol_bridge.app import BridgeState, VcontrolBridgeApp
from vcontrol_bridge.config import load_config
from vcontrol_bridge.core import Circuit


def _config(tmp_path: Path, extra: str = ""):
    config_path = tmp_path / "vcontrol-bridge.cfg"
    config_path.write_text("[server]\nenabled = false\n" + extra, encoding="utf-8")
    return load_config(config_path)


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_app_refreshes_cache_and_shuts_down(tmp_path: Path):
    channel = SimulatedChannel(
        {
            "getVitoBetriebsartM1": 1.0,
            "getVitoBetriebsartM2": 2.0,
            "getTempRaumNorSollM1": 22.0,
            "getTempRaumNorSollM2": 19.0,
        }
    )
    app = VcontrolBridgeApp(_config(tmp_path), channel=channel)

    task = asyncio.create_task(app.run())
    await _wait_for(
        lambda: app.cache.updated_at(Circuit.HK2, "target_temperature") is not None
        if Circuit.HK2 in app.cache
        else False
    )

    assert app.state is BridgeState.ACTIVE
    assert app.cache.read(Circuit.HK1, "current_mode") == 0.0
    assert app.cache.read(Circuit.HK2, "current_mode") == 1.0
    assert app.cache.read(Circuit.HK1, "target_temperature") == 22.0

    await app.handlers[Circuit.HK2].set_target_temperature(24)
    assert channel.values["getTempRaumNorSollM2"] == 24.0

    app.request_shutdown()
    await asyncio.wait_for(task, timeout=2)

    assert app.state is BridgeState.STOPPING
    assert channel.connected is False


@pytest.mark.asyncio
async def test_app_without_circuits_is_degraded(tmp_path: Path):
    config = _config(
        tmp_path, "[circuit HK1]\nenabled = false\n[circuit HK2]\nenabled = false\n"
    )
    app = VcontrolBridgeApp(config, channel=SimulatedChannel())

    task = asyncio.create_task(app.run())
    await _wait_for(lambda: app.state is BridgeState.DEGRADED)

    assert app.dispatcher is None
    assert app.handlers == {}

    app.request_shutdown()
    await asyncio.wait_for(task, timeout=2)


@pytest.mark.asyncio
async def test_app_with_refresh_disabled_serves_defaults(tmp_path: Path):
    channel = SimulatedChannel()
    app = VcontrolBridgeApp(
        _config(tmp_path, "[refresh]\nenabled = false\n"), channel=channel
    )

    task = asyncio.create_task(app.run())
    await _wait_for(lambda: app.state is BridgeState.ACTIVE)

    assert app.handlers[Circuit.HK1].get_target_temperature() == 21.0
    assert channel.connect_count == 0

    app.request_shutdown()
    await asyncio.wait_for(task, timeout=2)
