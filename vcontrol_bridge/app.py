"""Main application entry-point for vcontrol-bridge."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Dict, Optional

from .adapters import SimulatedChannel, create_channel
from .config import BridgeConfig, load_config
from .core import Circuit, CommandChannel
from .dispatcher import CommandDispatcher
from .health import HealthReporter
from .logging import configure_logging
from .refresh import RefreshScheduler
from .server import BridgeServer
from .state_cache import EntityCache
from .thermostat import ThermostatHandler, build_handlers

LOGGER = logging.getLogger(__name__)

SHUTDOWN_DRAIN_TIMEOUT = 10.0


class BridgeState(str, Enum):
    COLD_START = "cold_start"
    ACTIVE = "active"
    DEGRADED = "degraded"
    STOPPING = "stopping"


class VcontrolBridgeApp:
    """Coordinates application startup and shutdown.

    Wires the vcontrold channel, the dispatcher, the entity cache, the
    thermostat handlers, the refresh scheduler and the HTTP surface. The
    channel can be injected for testing or to use a custom backend.
    """

    def __init__(
        self,
        config: Optional[BridgeConfig] = None,
        *,
        channel: Optional[CommandChannel] = None,
    ) -> None:
        self._config = config or load_config()
        self._channel = channel or create_channel(self._config.vcontrold)
        self._health = HealthReporter()
        self._cache = EntityCache()
        self._dispatcher: Optional[CommandDispatcher] = None
        self._handlers: Dict[Circuit, ThermostatHandler] = {}
        self._scheduler: Optional[RefreshScheduler] = None
        self._server: Optional[BridgeServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._state = BridgeState.COLD_START

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def cache(self) -> EntityCache:
        return self._cache

    @property
    def dispatcher(self) -> Optional[CommandDispatcher]:
        return self._dispatcher

    @property
    def handlers(self) -> Dict[Circuit, ThermostatHandler]:
        return dict(self._handlers)

    async def run(self) -> None:
        """Run until :meth:`request_shutdown` is called or the task is cancelled."""

        self._shutdown_event = asyncio.Event()

        LOGGER.info("vcontrol-bridge starting with config: %s", self._config.path)
        started = await self._start_services()
        if not started:
            LOGGER.warning("Service startup incomplete; running in degraded mode")

        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("vcontrol-bridge received shutdown signal")
            raise
        finally:
            await self._stop_services()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @classmethod
    def start(
        cls, config: Optional[BridgeConfig] = None, *, simulate: bool = False
    ) -> None:
        config = config or load_config()
        configure_logging(
            config.logging.level,
            log_path=config.logging.path,
            debug_commands=config.logging.debug_commands,
        )
        instance = cls(config=config, channel=SimulatedChannel() if simulate else None)
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("vcontrol-bridge received shutdown signal")

    async def _transition_state(
        self, state: BridgeState, *, detail: Optional[str] = None
    ) -> None:
        previous = self._state
        self._state = state
        message_detail = detail or state.value
        LOGGER.info(
            "Bridge state transition %s -> %s (%s)",
            previous.value,
            state.value,
            message_detail,
        )
        await self._health.set_agent_state(
            state.value,
            healthy=state == BridgeState.ACTIVE,
            detail=message_detail,
        )

    async def _start_services(self) -> bool:
        await self._transition_state(BridgeState.COLD_START, detail="initialising")

        circuits = self._config.enabled_circuits
        if not circuits:
            LOGGER.error("No heating circuits enabled in %s", self._config.path)
            await self._transition_state(BridgeState.DEGRADED, detail="no circuits")
            return False

        self._dispatcher = CommandDispatcher(
            self._channel,
            health=self._health,
            connect_timeout=self._config.vcontrold.connect_timeout_seconds,
        )
        self._dispatcher.bind_loop()

        self._handlers = build_handlers(
            circuits,
            dispatcher=self._dispatcher,
            cache=self._cache,
            thermostat_config=self._config.thermostat,
        )
        LOGGER.info(
            "Managing circuits: %s",
            ", ".join(circuit.value for circuit in self._handlers),
        )

        refresh = self._config.refresh
        if refresh.enabled:
            specs = [
                spec
                for handler in self._handlers.values()
                for spec in handler.refresh_specs()
            ]
            self._scheduler = RefreshScheduler(
                dispatcher=self._dispatcher,
                cache=self._cache,
                specs=specs,
                interval_seconds=refresh.interval_seconds,
                health=self._health,
            )
            self._scheduler.start()
        else:
            LOGGER.info("Periodic refresh disabled; cache serves defaults until written")

        server_ready = await self._start_server()

        if server_ready:
            await self._transition_state(BridgeState.ACTIVE, detail="runtime ready")
        else:
            await self._transition_state(
                BridgeState.DEGRADED, detail="http endpoint unavailable"
            )
        return server_ready

    async def _start_server(self) -> bool:
        server_config = self._config.server
        if not server_config.enabled or server_config.port <= 0:
            return True

        server = BridgeServer(
            self._health,
            self._handlers,
            server_config.host,
            server_config.port,
            request_timeout=server_config.request_timeout_seconds,
        )
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start HTTP endpoint: %s", exc)
            await self._health.update("http-endpoint", False, str(exc))
            return False

        self._server = server
        await self._health.update("http-endpoint", True, None)
        return True

    async def _stop_services(self) -> None:
        await self._transition_state(BridgeState.STOPPING, detail="shutdown requested")

        if self._scheduler is not None:
            await self._scheduler.stop()
            self._scheduler = None

        if self._server is not None:
            await self._server.stop()
            self._server = None

        if self._dispatcher is not None:
            drained = await self._dispatcher.wait_idle(timeout=SHUTDOWN_DRAIN_TIMEOUT)
            if not drained:
                LOGGER.warning(
                    "Dispatcher still busy after %.0fs (%d commands queued)",
                    SHUTDOWN_DRAIN_TIMEOUT,
                    self._dispatcher.pending_count,
                )
