"""Single-flight command dispatch against the vcontrold daemon.

The daemon accepts exactly one command at a time over one stateful
connection. Producers (thermostat handlers, the refresh scheduler, the HTTP
surface) append commands to a :class:`CommandQueue`; the
:class:`CommandDispatcher` drains that queue through the channel.

Drain protocol
--------------
Every enqueue requests a drain. The request is a compare-and-set on the
running flag: when a drain is already active it is a no-op, because the
active drain re-polls the queue after every command and only closes the
channel once the queue is empty. Otherwise the request wins and starts the
drain task.

A drain opens the channel once, executes queued commands in FIFO order until
the queue is empty, closes the channel and clears the flag. An open failure
fails only the head command; the remaining commands stay queued for the next
drain request. A failing command never aborts the drain. Nothing is retried
automatically.

Cancelling the drain task (shutdown) fails the command in flight and still
closes the channel. Commands left in the queue are not touched.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from collections import deque
from typing import TYPE_CHECKING, Any, Callable, Optional

from .core import (
    BridgeError,
    ChannelCloseError,
    ChannelConnectionError,
    Command,
    CommandChannel,
    CommandExecutionError,
    CommandKind,
)

if TYPE_CHECKING:
    from .health import HealthReporter

LOGGER = logging.getLogger(__name__)

HEALTH_COMPONENT = "vcontrold"

CompletionCallback = Callable[["asyncio.Future[Any]"], None]


class CommandQueue:
    """Unbounded FIFO of pending commands.

    Listeners are notified after every enqueue; the dispatcher registers its
    drain trigger here so producers holding only the queue still start a
    drain.
    """

    def __init__(self) -> None:
        self._items: deque[Command] = deque()
        self._listeners: list[Callable[[], Any]] = []

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def register_listener(self, listener: Callable[[], Any]) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def enqueue(self, command: Command) -> None:
        """Append a command to the tail and signal listeners. Never blocks."""

        self._items.append(command)
        for listener in list(self._listeners):
            listener()

    def dequeue_next(self) -> Optional[Command]:
        """Remove and return the head command, or ``None`` when empty."""

        if not self._items:
            return None
        return self._items.popleft()


class CommandDispatcher:
    """Owns the channel and the single drain loop that may use it."""

    def __init__(
        self,
        channel: CommandChannel,
        *,
        queue: Optional[CommandQueue] = None,
        health: Optional[HealthReporter] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        connect_timeout: Optional[float] = None,
    ) -> None:
        self._channel = channel
        self._connect_timeout = connect_timeout
        self._queue = queue if queue is not None else CommandQueue()
        self._queue.register_listener(self.request_drain)
        self._health = health
        self._loop = loop
        self._running = False
        self._drain_task: Optional[asyncio.Task[None]] = None
        self._idle = asyncio.Event()
        self._idle.set()

        self.batches_opened = 0
        self.open_failures = 0
        self.commands_completed = 0
        self.commands_failed = 0

    @property
    def queue(self) -> CommandQueue:
        return self._queue

    @property
    def running(self) -> bool:
        """Whether a drain currently holds the channel."""
        return self._running

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------
    def enqueue_read(
        self, target: str, *, on_complete: Optional[CompletionCallback] = None
    ) -> asyncio.Future[float]:
        """Queue a read; the returned future resolves to the device value."""

        return self._submit(CommandKind.READ, target, None, on_complete)

    def enqueue_write(
        self,
        target: str,
        value: float,
        *,
        on_complete: Optional[CompletionCallback] = None,
    ) -> asyncio.Future[None]:
        """Queue a write; the returned future resolves once acknowledged."""

        return self._submit(CommandKind.WRITE, target, value, on_complete)

    def enqueue_read_threadsafe(self, target: str) -> concurrent.futures.Future[float]:
        """Queue a read from a thread that does not run the event loop."""

        loop = self._require_loop()

        async def _submit() -> float:
            return await self.enqueue_read(target)

        return asyncio.run_coroutine_threadsafe(_submit(), loop)

    def enqueue_write_threadsafe(
        self, target: str, value: float
    ) -> concurrent.futures.Future[None]:
        """Queue a write from a thread that does not run the event loop."""

        loop = self._require_loop()

        async def _submit() -> None:
            await self.enqueue_write(target, value)

        return asyncio.run_coroutine_threadsafe(_submit(), loop)

    def _submit(
        self,
        kind: CommandKind,
        target: str,
        value: Optional[float],
        on_complete: Optional[CompletionCallback],
    ) -> asyncio.Future[Any]:
        loop = self._ensure_loop()
        future: asyncio.Future[Any] = loop.create_future()
        if on_complete is not None:
            future.add_done_callback(on_complete)
        command = Command(kind=kind, target=target, value=value, future=future)
        LOGGER.debug("Queueing %s %s (value=%s)", kind.value, target, value)
        self._queue.enqueue(command)
        return future

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("Dispatcher is not bound to an event loop")
        return self._loop

    def bind_loop(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Bind to the running loop so foreign threads can submit commands."""

        self._loop = loop or asyncio.get_running_loop()

    # ------------------------------------------------------------------
    # Drain loop
    # ------------------------------------------------------------------
    def request_drain(self) -> bool:
        """Start a drain unless one is already active.

        Returns ``True`` when this call started the drain. The check and the
        flag update happen without an intervening await.
        """

        if self._running:
            return False
        if not self._queue:
            return False

        self._running = True
        self._idle.clear()
        loop = self._ensure_loop()
        self._drain_task = loop.create_task(self._drain())
        return True

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait until no drain is active. Returns ``False`` on timeout."""

        if timeout is None:
            await self._idle.wait()
            return True
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _drain(self) -> None:
        completed_batch = False
        try:
            completed_batch = await self._run_batch()
        finally:
            self._running = False
            self._drain_task = None
            self._idle.set()

        # Commands queued while the channel was closing found the flag still
        # set; serve them with a fresh batch.
        if completed_batch and self._queue:
            LOGGER.debug("Commands arrived during close; starting next batch")
            self.request_drain()

    async def _run_batch(self) -> bool:
        if not self._queue:
            return False

        LOGGER.debug("Opening vcontrold channel (%d queued)", len(self._queue))
        try:
            async with asyncio.timeout(self._connect_timeout):
                await self._channel.connect()
        except Exception as exc:
            self.open_failures += 1
            head = self._queue.dequeue_next()
            error = ChannelConnectionError(f"Failed to connect to vcontrold: {exc}")
            error.__cause__ = exc
            LOGGER.error("%s (%d commands left queued)", error, len(self._queue))
            if head is not None:
                head.fail(error)
            await self._report_health(False, str(exc))
            return False

        self.batches_opened += 1
        executed = 0
        try:
            await self._report_health(True, None)
            while True:
                command = self._queue.dequeue_next()
                if command is None:
                    break
                await self._execute(command)
                executed += 1
        finally:
            await self._close_channel(executed)
        return True

    async def _close_channel(self, executed: int) -> None:
        try:
            await self._channel.close()
        except Exception as exc:
            error = ChannelCloseError(f"Failed to close vcontrold channel: {exc}")
            LOGGER.error("%s", error)
        else:
            LOGGER.debug("Closed vcontrold channel after %d commands", executed)

    async def _execute(self, command: Command) -> None:
        LOGGER.debug("Executing %s %s", command.kind.value, command.target)
        try:
            if command.kind is CommandKind.READ:
                result: Any = await self._channel.read(command.target)
            else:
                await self._channel.write(command.target, command.value)
                result = None
        except asyncio.CancelledError:
            command.fail(
                ChannelConnectionError(
                    f"Drain cancelled before {command.target!r} completed"
                )
            )
            raise
        except Exception as exc:
            self.commands_failed += 1
            if isinstance(exc, BridgeError):
                error: BridgeError = exc
            else:
                error = CommandExecutionError(
                    command.target,
                    f"{command.kind.value} {command.target!r} failed: {exc}",
                )
                error.__cause__ = exc
            LOGGER.error("%s", error)
            command.fail(error)
            return

        self.commands_completed += 1
        LOGGER.debug("Command %s returned %s", command.target, result)
        if not command.resolve(result):
            LOGGER.debug("Discarding late result for %s", command.target)

    async def _report_health(self, healthy: bool, detail: Optional[str]) -> None:
        if self._health is None:
            return
        await self._health.update(HEALTH_COMPONENT, healthy, detail)
