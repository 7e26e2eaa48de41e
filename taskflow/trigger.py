"""
trigger.py
──────────
Due-task evaluation.

`should_trigger` decides whether a task is due at a given local wall-clock
moment.  The match window is the whole minute of the task's time-of-day; the
polling loop calls this about once per second, so a due task is seen ~60
times and the caller's notified markers keep it from firing more than once.

Callers must skip completed tasks and tasks already notified for the current
minute; this function does not look at either.
"""

from __future__ import annotations

from datetime import datetime

from .models import Repeat, Task


def task_moment(task: Task) -> datetime:
    """The task's first occurrence, truncated to the minute."""
    return datetime.combine(task.date, task.time).replace(second=0, microsecond=0)


def should_trigger(task: Task, now: datetime) -> bool:
    moment = task_moment(task)

    time_matches = now.hour == moment.hour and now.minute == moment.minute
    if not time_matches:
        return False

    repeat = task.repeat or Repeat.NONE

    if repeat == Repeat.NONE:
        return now.date() == task.date

    if repeat == Repeat.DAILY:
        return True

    if repeat == Repeat.WEEKLY:
        return moment.weekday() == now.weekday()

    if repeat == Repeat.CUSTOM:
        # datetime.weekday() is already Mon=0..Sun=6
        return now.weekday() in task.repeat_days

    return False
