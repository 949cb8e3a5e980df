"""HTTP surface exposing health and cached circuit state."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, Mapping, Optional

from aiohttp import web

from .core import BridgeError, Circuit
from .health import HealthReporter
from .thermostat import ThermostatHandler

LOGGER = logging.getLogger(__name__)


class BridgeServer:
    """Minimal HTTP server for status checks and thermostat control.

    ``GET`` routes answer from the entity cache and never wait for the
    daemon. ``PUT /circuits/{circuit}`` queues writes and waits for them.
    """

    def __init__(
        self,
        reporter: HealthReporter,
        handlers: Mapping[Circuit, ThermostatHandler],
        host: str,
        port: int,
        *,
        request_timeout: float = 30.0,
    ) -> None:
        self._reporter = reporter
        self._handlers = dict(handlers)
        self._host = host
        self._port = port
        self._request_timeout = request_timeout
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/circuits", self._handle_list)
        app.router.add_get("/circuits/{circuit}", self._handle_get)
        app.router.add_put("/circuits/{circuit}", self._handle_put)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info("HTTP endpoint listening on http://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)

    async def _handle_list(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "circuits": [
                    handler.snapshot() for handler in self._handlers.values()
                ]
            }
        )

    async def _handle_get(self, request: web.Request) -> web.Response:
        handler = self._resolve(request)
        return web.json_response(handler.snapshot())

    async def _handle_put(self, request: web.Request) -> web.Response:
        handler = self._resolve(request)

        try:
            body: Any = await request.json()
        except json.JSONDecodeError:
            raise web.HTTPBadRequest(text="Request body must be JSON") from None
        if not isinstance(body, dict):
            raise web.HTTPBadRequest(text="Request body must be a JSON object")

        unknown = set(body) - {"target_mode", "target_temperature"}
        if unknown:
            raise web.HTTPBadRequest(text=f"Unsupported fields: {', '.join(sorted(unknown))}")
        if not body:
            raise web.HTTPBadRequest(text="Nothing to update")

        try:
            async with asyncio.timeout(self._request_timeout):
                if "target_mode" in body:
                    await handler.set_target_heating_state(body["target_mode"])
                if "target_temperature" in body:
                    await handler.set_target_temperature(body["target_temperature"])
        except ValueError as exc:
            raise web.HTTPBadRequest(text=str(exc)) from None
        except BridgeError as exc:
            LOGGER.warning("Update of %s failed: %s", handler.circuit.value, exc)
            raise web.HTTPBadGateway(text=str(exc)) from None
        except TimeoutError:
            raise web.HTTPGatewayTimeout(
                text="vcontrold did not answer in time; the write stays queued"
            ) from None

        return web.json_response(handler.snapshot())

    def _resolve(self, request: web.Request) -> ThermostatHandler:
        name = request.match_info["circuit"].upper()
        try:
            circuit = Circuit(name)
        except ValueError:
            raise web.HTTPNotFound(text=f"Unknown circuit: {name}") from None
        handler = self._handlers.get(circuit)
        if handler is None:
            raise web.HTTPNotFound(text=f"Circuit {name} is not enabled")
        return handler
