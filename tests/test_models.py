# tests/test_models.py

from __future__ import annotations

from datetime import date, time

import pytest
from pydantic import ValidationError

from taskflow.models import Repeat, Ringtone, Task, TaskCreate, TaskType


def test_task_parses_form_strings() -> None:
    task = Task.model_validate({"name": "Pay rent", "date": "2024-01-03", "time": "09:05"})
    assert task.date == date(2024, 1, 3)
    assert task.time == time(9, 5)
    assert task.repeat == Repeat.NONE
    assert task.ringtone == Ringtone.DEFAULT
    assert task.type == TaskType.PERSONAL
    assert task.completed is False
    assert task.id


def test_ids_are_unique() -> None:
    a = Task(name="a", date=date(2024, 1, 1), time=time(8, 0))
    b = Task(name="b", date=date(2024, 1, 1), time=time(8, 0))
    assert a.id != b.id


@pytest.mark.parametrize("name", ["", "   "])
def test_blank_name_is_rejected(name: str) -> None:
    with pytest.raises(ValidationError):
        Task(name=name, date=date(2024, 1, 1), time=time(8, 0))


def test_seconds_are_dropped_and_time_serializes_as_hh_mm() -> None:
    task = Task(name="x", date=date(2024, 1, 1), time=time(8, 7, 33, 10))
    assert task.time == time(8, 7)
    dumped = task.model_dump(mode="json")
    assert dumped["time"] == "08:07"
    assert dumped["date"] == "2024-01-01"


def test_repeat_days_only_kept_for_custom() -> None:
    weekly = Task(name="x", date=date(2024, 1, 1), time=time(8, 0), repeat="weekly", repeat_days=[1, 2])
    assert weekly.repeat_days == []

    custom = Task(name="x", date=date(2024, 1, 1), time=time(8, 0), repeat="custom", repeat_days=[4, 0, 4])
    assert custom.repeat_days == [0, 4]


def test_repeat_day_out_of_range() -> None:
    with pytest.raises(ValidationError):
        Task(name="x", date=date(2024, 1, 1), time=time(8, 0), repeat="custom", repeat_days=[7])


def test_custom_audio_ref_only_kept_for_custom_ringtone() -> None:
    bell = Task(name="x", date=date(2024, 1, 1), time=time(8, 0), ringtone="bell", custom_audio_ref="a.mp3")
    assert bell.custom_audio_ref is None

    custom = Task(name="x", date=date(2024, 1, 1), time=time(8, 0), ringtone="custom", custom_audio_ref="a.mp3")
    assert custom.custom_audio_ref == "a.mp3"


def test_legacy_records_load() -> None:
    task = Task.model_validate({
        "name": "Report",
        "date": "2024-01-01",
        "time": "10:00",
        "type": "pa",
        "repeat": None,
        "description": None,
    })
    assert task.type == TaskType.WORK
    assert task.repeat == Repeat.NONE
    assert task.description == ""


def test_unknown_ringtone_rejected() -> None:
    with pytest.raises(ValidationError):
        Task(name="x", date=date(2024, 1, 1), time=time(8, 0), ringtone="siren")


def test_task_create_allows_incomplete_form() -> None:
    form = TaskCreate.model_validate({"name": ""})
    assert form.date is None and form.time is None
