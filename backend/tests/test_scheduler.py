import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import pytest

from services.spot_sync.scheduler import AsyncioScheduler, TimerGroup


@pytest.mark.asyncio
async def test_call_later_fires_once():
    scheduler = AsyncioScheduler()
    fired = []

    handle = scheduler.call_later(0.01, lambda: fired.append(scheduler.now()))
    await asyncio.sleep(0.05)

    assert len(fired) == 1
    assert handle.cancelled


@pytest.mark.asyncio
async def test_cancelled_timer_never_fires():
    scheduler = AsyncioScheduler()
    fired = []

    handle = scheduler.call_later(0.01, lambda: fired.append(1))
    handle.cancel()
    await asyncio.sleep(0.05)

    assert fired == []


@pytest.mark.asyncio
async def test_call_every_repeats_until_cancelled():
    scheduler = AsyncioScheduler()
    fired = []

    handle = scheduler.call_every(0.01, lambda: fired.append(1))
    await asyncio.sleep(0.055)
    handle.cancel()
    count = len(fired)
    await asyncio.sleep(0.03)

    assert count >= 3
    assert len(fired) == count


@pytest.mark.asyncio
async def test_callback_may_cancel_its_own_repeating_timer():
    scheduler = AsyncioScheduler()
    fired = []
    handles = []

    def _tick():
        fired.append(1)
        handles[0].cancel()

    handles.append(scheduler.call_every(0.01, _tick))
    await asyncio.sleep(0.05)

    assert fired == [1]


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_repeating_timer():
    scheduler = AsyncioScheduler()
    fired = []

    def _tick():
        fired.append(1)
        raise RuntimeError("boom")

    handle = scheduler.call_every(0.01, _tick)
    await asyncio.sleep(0.045)
    handle.cancel()

    assert len(fired) >= 2


def test_call_every_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        AsyncioScheduler().call_every(0, lambda: None)


@pytest.mark.asyncio
async def test_timer_group_cancel_all():
    scheduler = AsyncioScheduler()
    group = TimerGroup(scheduler)
    fired = []

    group.call_later(0.01, lambda: fired.append("once"))
    group.call_every(0.01, lambda: fired.append("tick"))
    assert group.active_count == 2

    group.cancel_all()
    await asyncio.sleep(0.04)

    assert fired == []
    assert group.active_count == 0


@pytest.mark.asyncio
async def test_aclose_cancels_spawned_tasks():
    scheduler = AsyncioScheduler()
    started = asyncio.Event()

    async def _forever():
        started.set()
        await asyncio.sleep(3600)

    task = scheduler.spawn(_forever())
    await started.wait()
    await scheduler.aclose()

    assert task.cancelled()
