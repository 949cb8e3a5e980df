"""Health reporting for the bridge components."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="seconds") if value is not None else None


@dataclass(slots=True)
class ComponentStatus:
    """Latest report for one component.

    ``consecutive_failures`` counts unhealthy reports since the last healthy
    one, so a flapping vcontrold connection is visible in the snapshot.
    """

    name: str
    healthy: bool
    detail: Optional[str] = None
    consecutive_failures: int = 0
    last_healthy_at: Optional[datetime] = None
    updated_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "consecutiveFailures": self.consecutive_failures,
            "lastHealthyAt": _iso(self.last_healthy_at),
            "updatedAt": _iso(self.updated_at),
        }


class HealthReporter:
    """Tracks component statuses and the bridge state."""

    _AGENT_KEY = "__bridge_state__"

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._bridge_state: Optional[str] = None
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            previous = self._status.get(name)
            now = _utcnow()
            if healthy:
                failures = 0
                last_healthy_at: Optional[datetime] = now
            else:
                failures = (previous.consecutive_failures if previous else 0) + 1
                last_healthy_at = previous.last_healthy_at if previous else None
            self._status[name] = ComponentStatus(
                name=name,
                healthy=healthy,
                detail=detail,
                consecutive_failures=failures,
                last_healthy_at=last_healthy_at,
                updated_at=now,
            )

    async def set_agent_state(
        self, state: str, *, healthy: bool, detail: Optional[str] = None
    ) -> None:
        self._bridge_state = state
        await self.update(self._AGENT_KEY, healthy, detail if detail is not None else state)

    def get(self, name: str) -> Optional[ComponentStatus]:
        return self._status.get(name)

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            entries = list(self._status.values())

        bridge_state: Optional[ComponentStatus] = None
        components: list[Dict[str, object]] = []
        for status in entries:
            if status.name == self._AGENT_KEY:
                bridge_state = status
            else:
                components.append(status.as_dict())

        healthy = all(item["healthy"] for item in components)
        if bridge_state is not None and not bridge_state.healthy:
            healthy = False

        payload: Dict[str, object] = {
            "status": "ok" if healthy else "degraded",
            "components": components,
        }
        if bridge_state is not None:
            payload["bridgeState"] = {
                "state": self._bridge_state,
                "detail": bridge_state.detail,
                "healthy": bridge_state.healthy,
                "updatedAt": _iso(bridge_state.updated_at),
            }
        return payload
