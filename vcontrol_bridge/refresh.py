"""Periodic refresh of the entity cache through the command queue.

Every refresh pass enqueues one read per observed circuit field. Each read's
completion callback writes the result into the cache, so the cache stays
within one refresh interval of the device. The first pass runs immediately
on start.

Refresh reads go through the same queue as every other command; the
scheduler never touches the channel itself. Stopping the scheduler cancels
only its timer: reads already queued complete and still update the cache.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional

from .core import Circuit
from .dispatcher import CommandDispatcher
from .state_cache import EntityCache

if TYPE_CHECKING:
    from .health import HealthReporter

LOGGER = logging.getLogger(__name__)

HEALTH_COMPONENT = "refresh"


@dataclass(frozen=True)
class RefreshSpec:
    """One observed field: which command reads it and how to store the value.

    Attributes:
        circuit: Circuit the field belongs to
        field: Cache field written with the result
        target: vcontrold read command
        convert: Maps the raw device value to the cached value
        mirror: Further cache fields receiving the same converted value
    """

    circuit: Circuit
    field: str
    target: str
    convert: Callable[[float], float] = float
    mirror: tuple[str, ...] = ()


class RefreshScheduler:
    """Keeps the entity cache fresh by queueing reads on a timer."""

    def __init__(
        self,
        *,
        dispatcher: CommandDispatcher,
        cache: EntityCache,
        specs: Iterable[RefreshSpec],
        interval_seconds: float,
        health: Optional[HealthReporter] = None,
    ) -> None:
        """Initialize the refresh scheduler.

        Args:
            dispatcher: Dispatcher the reads are queued on
            cache: Cache receiving the read results
            specs: Observed fields, refreshed in this order every pass
            interval_seconds: Seconds between the start of two passes
            health: Optional reporter updated after every pass
        """
        self._dispatcher = dispatcher
        self._cache = cache
        self._specs = tuple(specs)
        self._interval = interval_seconds if interval_seconds > 0 else 600.0
        self._health = health
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None
        self._inflight: dict[RefreshSpec, asyncio.Future[Any]] = {}
        self.passes = 0
        self.last_skipped = 0

    @property
    def specs(self) -> tuple[RefreshSpec, ...]:
        return self._specs

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the refresh loop; the first pass is queued right away."""
        if self.running:
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        """Cancel the timer. Reads already queued are left to complete."""
        self._stop_event.set()

        if self._task is None:
            return

        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    def refresh_now(self) -> list[asyncio.Future[Any]]:
        """Queue one read per observed field and return their futures.

        A field whose previous read is still queued (the daemon was
        unreachable) is skipped, so an outage does not pile up stale reads.
        """
        futures: list[asyncio.Future[Any]] = []
        skipped = 0
        for spec in self._specs:
            if spec.circuit not in self._cache:
                continue
            previous = self._inflight.get(spec)
            if previous is not None and not previous.done():
                skipped += 1
                continue
            future = self._dispatcher.enqueue_read(
                spec.target, on_complete=self._store_result(spec)
            )
            self._inflight[spec] = future
            futures.append(future)

        self.last_skipped = skipped
        if skipped:
            LOGGER.warning(
                "Skipped %d refresh reads still queued from an earlier pass "
                "(%d commands pending)",
                skipped,
                self._dispatcher.pending_count,
            )
        LOGGER.debug("Queued %d refresh reads", len(futures))
        return futures

    def _store_result(self, spec: RefreshSpec) -> Callable[[asyncio.Future[Any]], None]:
        def _callback(future: asyncio.Future[Any]) -> None:
            if future.cancelled():
                return
            error = future.exception()
            if error is not None:
                LOGGER.warning(
                    "Refresh of %s %s via %s failed: %s",
                    spec.circuit.value,
                    spec.field,
                    spec.target,
                    error,
                )
                return
            value = spec.convert(future.result())
            for name in (spec.field, *spec.mirror):
                self._cache.write(spec.circuit, name, value)

        return _callback

    async def _refresh_loop(self) -> None:
        loop = asyncio.get_running_loop()

        while not self._stop_event.is_set():
            started = loop.time()
            futures = self.refresh_now()
            self.passes += 1

            if futures:
                # Bounded by the interval: after an open failure the rest of a
                # pass stays queued until the next enqueue triggers a drain.
                done, pending = await asyncio.wait(futures, timeout=self._interval)
                await self._report_pass(done, pending)
            elif self.last_skipped:
                await self._report_pass(set(), set())

            remaining = max(self._interval - (loop.time() - started), 0.0)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=remaining)
                break
            except asyncio.TimeoutError:
                continue

    async def _report_pass(
        self, done: set[asyncio.Future[Any]], pending: set[asyncio.Future[Any]]
    ) -> None:
        failed = sum(
            1 for future in done if not future.cancelled() and future.exception()
        )
        skipped = self.last_skipped
        if failed or pending or skipped:
            detail: Optional[str] = f"failed={failed} pending={len(pending)}"
            if skipped:
                detail += f" skipped={skipped}"
            LOGGER.warning("Refresh pass %d incomplete (%s)", self.passes, detail)
        else:
            detail = None
            LOGGER.debug("Refresh pass %d complete (%d reads)", self.passes, len(done))

        if self._health is not None:
            await self._health.update(
                HEALTH_COMPONENT, detail is None, detail
            )
