"""
models.py
─────────
Shared Pydantic data models for the TaskFlow API.

A Task's `date` + `time` denote its first (or, without repeat, its only)
occurrence.  The date is never advanced for repeating tasks; the trigger
evaluator re-derives each occurrence from time-of-day and weekday.
"""

from __future__ import annotations

import uuid
from datetime import date as Date, time as Time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator


WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


class Repeat(str, Enum):
    NONE   = "none"
    DAILY  = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class Ringtone(str, Enum):
    DEFAULT      = "default"
    BELL         = "bell"
    CHIME        = "chime"
    BEEP         = "beep"
    NOTIFICATION = "notification"
    CUSTOM       = "custom"


class TaskType(str, Enum):
    PERSONAL = "personal"
    WORK     = "work"


def _truncate_minute(value: Time) -> Time:
    return value.replace(second=0, microsecond=0)


def _clean_repeat(value):
    if value is None or value == "":
        return Repeat.NONE
    return value


def _clean_type(value):
    # Older task lists stored the work tab as "pa".
    if value == "pa":
        return TaskType.WORK
    return value


def _clean_repeat_days(days: List[int]) -> List[int]:
    for d in days:
        if not 0 <= d <= 6:
            raise ValueError(f"repeat day out of range (Mon=0..Sun=6): {d}")
    return sorted(set(days))


class Task(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    description: str = ""
    date: Date                             # "YYYY-MM-DD"
    time: Time                             # "HH:MM"
    repeat: Repeat = Repeat.NONE
    repeat_days: List[int] = []            # Mon=0..Sun=6, only for repeat=custom
    ringtone: Ringtone = Ringtone.DEFAULT
    custom_audio_ref: Optional[str] = None
    completed: bool = False
    type: TaskType = TaskType.PERSONAL

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("task name must not be empty")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def _description_default(cls, v):
        return "" if v is None else v

    @field_validator("time")
    @classmethod
    def _time_minute(cls, v: Time) -> Time:
        return _truncate_minute(v)

    @field_validator("repeat", mode="before")
    @classmethod
    def _repeat_default(cls, v):
        return _clean_repeat(v)

    @field_validator("type", mode="before")
    @classmethod
    def _type_alias(cls, v):
        return _clean_type(v)

    @field_validator("repeat_days")
    @classmethod
    def _days_range(cls, v: List[int]) -> List[int]:
        return _clean_repeat_days(v)

    @model_validator(mode="after")
    def _drop_unused_fields(self) -> "Task":
        if self.repeat != Repeat.CUSTOM:
            self.repeat_days = []
        if self.ringtone != Ringtone.CUSTOM:
            self.custom_audio_ref = None
        return self

    @field_serializer("time", when_used="json")
    def _serialize_time(self, v: Time) -> str:
        return v.strftime("%H:%M")


class TaskCreate(BaseModel):
    """
    Form payload for a new task.

    Name, date and time are optional here so that an incomplete form reaches
    the controller, which drops it quietly instead of failing validation.
    """

    name: str = ""
    description: str = ""
    date: Optional[Date] = None
    time: Optional[Time] = None
    repeat: Repeat = Repeat.NONE
    repeat_days: List[int] = []
    ringtone: Ringtone = Ringtone.DEFAULT
    custom_audio_ref: Optional[str] = None
    type: TaskType = TaskType.PERSONAL

    @field_validator("type", mode="before")
    @classmethod
    def _type_alias(cls, v):
        return _clean_type(v)

    @field_validator("repeat", mode="before")
    @classmethod
    def _repeat_default(cls, v):
        return _clean_repeat(v)


class TaskUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    date: Optional[Date] = None
    time: Optional[Time] = None
    repeat: Optional[Repeat] = None
    repeat_days: Optional[List[int]] = None
    ringtone: Optional[Ringtone] = None
    custom_audio_ref: Optional[str] = None
    completed: Optional[bool] = None
    type: Optional[TaskType] = None

    @field_validator("type", mode="before")
    @classmethod
    def _type_alias(cls, v):
        return _clean_type(v)
