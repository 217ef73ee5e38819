from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock:
    """
    Test clock. Only moves when told to.
    """

    def __init__(self, start: datetime) -> None:
        self._now = ensure_utc(start)

    def now(self) -> datetime:
        return self._now

    def advance(self, *, seconds: float = 0.0, milliseconds: float = 0.0) -> datetime:
        self._now = self._now + timedelta(seconds=seconds, milliseconds=milliseconds)
        return self._now

    def set(self, dt: datetime) -> None:
        self._now = ensure_utc(dt)


class SimClock:
    """
    Wall clock driven by a SimPy environment.
    env.now is seconds since sim start.
    """

    def __init__(self, env: Any, start_dt: datetime) -> None:
        self.env = env
        self.start_dt = ensure_utc(start_dt)

    def now(self) -> datetime:
        return self.start_dt + timedelta(seconds=float(self.env.now))
