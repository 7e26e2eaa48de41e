# tests/test_scheduler.py

from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from taskflow.controller import AppController
from taskflow.scheduler import AlarmScheduler
from taskflow.task_store import TaskStore

from .conftest import make_task
from .fakes import FakeClock, FakeDispatcher


@pytest.mark.asyncio
async def test_scheduler_fires_due_task_once(controller: AppController, store: TaskStore,
                                             dispatcher: FakeDispatcher) -> None:
    store.add(make_task())
    clock = FakeClock(datetime(2024, 1, 3, 9, 0, 1))
    scheduler = AlarmScheduler(controller, interval=0.01, clock=clock)

    handle = scheduler.start()
    assert scheduler.running
    assert scheduler.start() is handle

    await asyncio.sleep(0.05)
    clock.advance(seconds=20)
    await asyncio.sleep(0.05)

    await scheduler.stop()
    assert not scheduler.running
    assert handle.cancelled()
    assert len(dispatcher.played) == 1


@pytest.mark.asyncio
async def test_cancelling_the_handle_stops_polling(controller: AppController) -> None:
    calls = 0

    def clock() -> datetime:
        nonlocal calls
        calls += 1
        return datetime(2024, 1, 3, 12, 0)

    scheduler = AlarmScheduler(controller, interval=0.01, clock=clock)
    handle = scheduler.start()
    await asyncio.sleep(0.03)
    handle.cancel()
    with pytest.raises(asyncio.CancelledError):
        await handle

    seen = calls
    await asyncio.sleep(0.03)
    assert calls == seen > 0


def test_tick_swallows_errors(controller: AppController) -> None:
    def broken(now):
        raise RuntimeError("boom")

    controller.check_alarms = broken
    scheduler = AlarmScheduler(controller, clock=lambda: datetime(2024, 1, 3, 9, 0))
    assert scheduler.tick() == []


def test_tick_with_explicit_time(controller: AppController, store: TaskStore) -> None:
    task = store.add(make_task())
    scheduler = AlarmScheduler(controller)
    assert scheduler.tick(datetime(2024, 1, 3, 9, 0, 45)) == [task]
    assert scheduler.tick(datetime(2024, 1, 3, 9, 0, 46)) == []


@pytest.mark.asyncio
async def test_stop_without_start_is_a_noop(controller: AppController) -> None:
    scheduler = AlarmScheduler(controller)
    await scheduler.stop()
    assert not scheduler.running
