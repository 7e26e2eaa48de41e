# tests/conftest.py

from __future__ import annotations

from datetime import date, time
from pathlib import Path

import pytest

from taskflow.config import Settings
from taskflow.controller import AppController
from taskflow.models import Task
from taskflow.storage import JsonTaskStorage
from taskflow.task_store import TaskStore

from .fakes import FakeDispatcher, FakeNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every path at the per-test tmp dir."""
    return Settings(
        app_name="TaskFlow-test",
        log_level="DEBUG",
        log_dir=tmp_path / "logs",
        host="127.0.0.1",
        port=8000,
        data_dir=tmp_path,
        tasks_file=tmp_path / "tasks.json",
        sounds_dir=tmp_path / "sounds",
        poll_interval=0.01,
        alarm_timeout=30.0,
        tone_interval=1.0,
        notifications="denied",
        notified_policy="per_minute",
    )


@pytest.fixture()
def storage(tmp_path: Path) -> JsonTaskStorage:
    return JsonTaskStorage(tmp_path / "tasks.json")


@pytest.fixture()
def store(storage: JsonTaskStorage) -> TaskStore:
    return TaskStore(storage)


@pytest.fixture()
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def controller(store: TaskStore, dispatcher: FakeDispatcher, notifier: FakeNotifier) -> AppController:
    return AppController(store, dispatcher, notifier, alarm_timeout=30.0)


def make_task(**overrides) -> Task:
    fields = {
        "name": "Stand-up",
        "date": date(2024, 1, 3),   # a Wednesday
        "time": time(9, 0),
    }
    fields.update(overrides)
    return Task(**fields)
