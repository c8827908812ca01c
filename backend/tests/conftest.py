"""Shared fixtures for spot sync tests.

Controllers run against a virtual-time scheduler: ``advance(seconds)`` fires
due timers in time order (ties in arming order) and lets spawned fetch tasks
finish between firings.
"""

import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import asyncio
import itertools
from collections import deque
from typing import Optional

import pytest

from models.spot import CurrentConditions, Forecast, Spot
from services.spot_sync.timings import SyncTimings


# ---------------------------------------------------------------------------
# Virtual-time scheduler
# ---------------------------------------------------------------------------


class ManualTimer:
    def __init__(self, scheduler, when, seq, callback, interval=None):
        self._scheduler = scheduler
        self.when = when
        self.seq = seq
        self.callback = callback
        self.interval = interval
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def fire(self) -> None:
        if self.interval is None:
            self._cancelled = True
        else:
            self.when += self.interval
            self.seq = next(self._scheduler._seq)
        self.callback()


class ManualScheduler:
    def __init__(self):
        self._now = 0.0
        self._seq = itertools.count()
        self._timers: list[ManualTimer] = []
        self.tasks: list[asyncio.Task] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay, callback):
        timer = ManualTimer(self, self._now + max(0.0, delay), next(self._seq), callback)
        self._timers.append(timer)
        return timer

    def call_every(self, interval, callback):
        if interval <= 0:
            raise ValueError("interval must be positive")
        timer = ManualTimer(self, self._now + interval, next(self._seq), callback, interval)
        self._timers.append(timer)
        return timer

    def spawn(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self.tasks.append(task)
        return task

    @property
    def pending_timers(self) -> list[ManualTimer]:
        return [t for t in self._timers if not t.cancelled]

    async def settle(self) -> None:
        for _ in range(10):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        target = self._now + seconds
        await self.settle()
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self._now = timer.when
            timer.fire()
            await self.settle()
        self._timers = [t for t in self._timers if not t.cancelled]
        self._now = target
        await self.settle()


# ---------------------------------------------------------------------------
# Scripted upstream + recording surface
# ---------------------------------------------------------------------------


class ScriptedSpotsClient:
    """Fake spots API.

    Each script entry is a Spot (or list of spots), an exception to raise, or
    an ``asyncio.Future`` resolved later by the test. The last entry of a
    script repeats once the script is exhausted.
    """

    def __init__(self, scheduler: Optional[ManualScheduler] = None):
        self._scheduler = scheduler
        self._spot_scripts: dict[str, deque] = {}
        self._collection_script: deque = deque()
        self.calls: list[tuple] = []

    def script_spot(self, spot_id: str, *results) -> None:
        self._spot_scripts.setdefault(spot_id, deque()).extend(results)

    def script_collection(self, *results) -> None:
        self._collection_script.extend(results)

    def _now(self) -> float:
        return self._scheduler.now() if self._scheduler is not None else 0.0

    @staticmethod
    def _next(script: deque):
        if not script:
            raise AssertionError("unscripted fetch")
        return script.popleft() if len(script) > 1 else script[0]

    @staticmethod
    async def _resolve(result):
        if isinstance(result, asyncio.Future):
            result = await result
        if isinstance(result, BaseException):
            raise result
        return result

    def spot_calls(self, spot_id: Optional[str] = None) -> list[tuple]:
        return [c for c in self.calls if c[0] == "spot" and (spot_id is None or c[1] == spot_id)]

    def collection_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] == "spots"]

    async def fetch_spot(self, spot_id: str, model: Optional[str] = None) -> Spot:
        self.calls.append(("spot", spot_id, model, self._now()))
        return await self._resolve(self._next(self._spot_scripts.get(spot_id, deque())))

    async def fetch_all_spots(self) -> list[Spot]:
        self.calls.append(("spots", None, None, self._now()))
        return await self._resolve(self._next(self._collection_script))


class RecordingSurface:
    """Records every render hook call as a tuple."""

    def __init__(self, scheduler: Optional[ManualScheduler] = None):
        self._scheduler = scheduler
        self.calls: list[tuple] = []
        self.times: list[float] = []

    def _record(self, *call) -> None:
        self.calls.append(call)
        self.times.append(self._scheduler.now() if self._scheduler is not None else 0.0)

    def render_ready(self, spot):
        self._record("ready", spot)

    def render_loading(self, reason_key):
        self._record("loading", reason_key)

    def render_error(self, error_class, detail_key=None):
        self._record("error", error_class, detail_key)

    def render_collection(self, spots):
        self._record("collection", list(spots))

    def apply_patch(self, ops):
        self._record("patch", list(ops))

    def of(self, kind: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == kind]

    def times_of(self, kind: str) -> list[float]:
        return [t for c, t in zip(self.calls, self.times) if c[0] == kind]


# ---------------------------------------------------------------------------
# Spot factories
# ---------------------------------------------------------------------------


def make_spot(
    name: str = "Hel",
    country: str = "Poland",
    forecast_rows: int = 2,
    wind: float = 14.0,
    hourly_rows: int = 0,
    live: bool = False,
) -> Spot:
    forecast = [
        Forecast(date=f"Day {i}", wind=wind + i, gusts=wind + i + 6, direction="NW", temp=18.0)
        for i in range(forecast_rows)
    ]
    hourly = [
        Forecast(date=f"{i:02d}:00", wind=wind, gusts=wind + 4, direction="W", temp=17.0)
        for i in range(hourly_rows)
    ]
    return Spot(
        name=name,
        country=country,
        forecast=forecast,
        forecast_hourly=hourly,
        current_conditions=(
            CurrentConditions(date="now", wind=wind, gusts=wind + 3, direction="NW", temp=19.0)
            if live
            else None
        ),
        last_updated="2026-06-01T10:00:00Z",
    )


@pytest.fixture
def timings():
    return SyncTimings(
        min_display=2.0,
        poll_interval=5.0,
        poll_timeout=30.0,
        refresh_interval=60.0,
        collection_refresh_interval=60.0,
        collection_retry_delay=5.0,
    )


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def client(scheduler):
    return ScriptedSpotsClient(scheduler)


@pytest.fixture
def surface(scheduler):
    return RecordingSurface(scheduler)


@pytest.fixture
def spot_factory():
    return make_spot
