import asyncio
from typing import Any, Callable, Iterable, Optional

import pytest


class FakeChannel:
    """Instrumented vcontrold channel.

    Records every operation and fails an assertion when two operations
    overlap or the channel is reopened without being closed.
    """

    def __init__(
        self,
        values: Optional[dict[str, float]] = None,
        *,
        fail_connect: int = 0,
        fail_targets: Iterable[str] = (),
        fail_close: bool = False,
        delay: float = 0.0,
        connect_delay: float = 0.0,
    ) -> None:
        self.values = dict(values or {})
        self.fail_connect = fail_connect
        self.fail_targets = set(fail_targets)
        self.fail_close = fail_close
        self.delay = delay
        self.connect_delay = connect_delay
        self.events: list[tuple[Any, ...]] = []
        self.connected = False
        self.active = 0
        self.max_active = 0
        self.connect_count = 0
        self.close_count = 0
        self.on_read: Optional[Callable[[str], None]] = None
        self.on_close: Optional[Callable[[], None]] = None

    async def _operation(self, delay: float) -> None:
        assert self.active == 0, "concurrent channel access"
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(delay)
        finally:
            self.active -= 1

    async def connect(self) -> None:
        assert not self.connected, "channel reopened without close"
        self.events.append(("connect",))
        await self._operation(self.connect_delay)
        if self.fail_connect > 0:
            self.fail_connect -= 1
            raise ConnectionRefusedError("vcontrold unreachable")
        self.connected = True
        self.connect_count += 1

    async def read(self, target: str) -> float:
        assert self.connected, "read on closed channel"
        self.events.append(("read", target))
        if self.on_read is not None:
            self.on_read(target)
        await self._operation(self.delay)
        if target in self.fail_targets:
            raise OSError(f"no answer for {target}")
        return self.values.get(target, 0.0)

    async def write(self, target: str, value: float) -> None:
        assert self.connected, "write on closed channel"
        self.events.append(("write", target, value))
        await self._operation(self.delay)
        if target in self.fail_targets:
            raise OSError(f"write {target} rejected")
        self.values[target] = value

    async def close(self) -> None:
        self.events.append(("close",))
        if self.on_close is not None:
            self.on_close()
        await self._operation(0)
        self.connected = False
        self.close_count += 1
        if self.fail_close:
            raise OSError("socket already gone")


@pytest.fixture
def fake_channel() -> Callable[..., FakeChannel]:
    """Build instrumented channels with per-test failure settings."""

    def factory(*args: Any, **kwargs: Any) -> FakeChannel:
        return FakeChannel(*args, **kwargs)

    return factory
