"""
controller.py
─────────────
The application state and everything that mutates it.

One AppController owns the task store, the notified markers, the active
(visible) alarm and the alarm collaborators.  The HTTP layer and the polling
scheduler both go through it; nothing here is a module-level singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from .models import Task, TaskCreate, TaskUpdate
from .notifier import DesktopNotifier
from .sound_engine import AlarmDispatcher
from .task_store import TaskStore
from .trigger import should_trigger

logger = logging.getLogger(__name__)

AlarmListener = Callable[[dict], None]


class NotifiedPolicy(str, Enum):
    # Markers expire when their minute is over: repeating tasks fire every occurrence.
    PER_MINUTE = "per_minute"
    # Markers never expire: every task fires at most once per process lifetime.
    ONCE = "once"


@dataclass
class ActiveAlarm:
    task: Task
    started_at: datetime

    def to_dict(self) -> dict:
        return {
            "task": self.task.model_dump(mode="json"),
            "started_at": self.started_at.isoformat(timespec="seconds"),
        }


def _minute(now: datetime) -> datetime:
    return now.replace(second=0, microsecond=0)


class AppController:

    def __init__(
        self,
        store: TaskStore,
        dispatcher: AlarmDispatcher,
        notifier: DesktopNotifier,
        *,
        alarm_timeout: float = 30.0,
        notified_policy: NotifiedPolicy = NotifiedPolicy.PER_MINUTE,
    ):
        self.store           = store
        self.dispatcher      = dispatcher
        self.notifier        = notifier
        self.alarm_timeout   = timedelta(seconds=alarm_timeout)
        self.notified_policy = NotifiedPolicy(notified_policy)

        # task id -> minute the alarm fired in
        self.notified: Dict[str, datetime] = {}
        self.active_alarm: Optional[ActiveAlarm] = None
        self._listeners: List[AlarmListener] = []

    def add_listener(self, listener: AlarmListener) -> None:
        self._listeners.append(listener)

    # ── Task operations ───────────────────────────────────────────────────────

    def create_task(self, payload: TaskCreate) -> Optional[Task]:
        """Create a task from form data.  Returns None for an incomplete form."""
        if not payload.name.strip() or payload.date is None or payload.time is None:
            logger.debug("Ignoring incomplete task form (name/date/time missing)")
            return None
        try:
            task = Task(**payload.model_dump())
        except ValidationError as e:
            logger.debug("Ignoring invalid task form: %s", e)
            return None
        self.store.add(task)
        logger.info("Created task %s (%s at %s %s)", task.id, task.name, task.date, task.time)
        return task

    def edit_task(self, task_id: str, changes: TaskUpdate) -> Optional[Task]:
        """Apply an edit.  Raises ValidationError if the result is not a valid task."""
        task = self.store.update(task_id, **changes.model_dump(exclude_unset=True))
        if task is not None and self.active_alarm and self.active_alarm.task.id == task_id:
            self.active_alarm.task = task
        return task

    def delete_task(self, task_id: str) -> bool:
        if not self.store.remove(task_id):
            return False
        self.notified.pop(task_id, None)
        if self.active_alarm and self.active_alarm.task.id == task_id:
            self._clear_alarm("deleted")
        return True

    def toggle_complete(self, task_id: str) -> Optional[Task]:
        return self.store.toggle_completed(task_id)

    # ── Alarm evaluation ──────────────────────────────────────────────────────

    def due_tasks(self, now: datetime) -> List[Task]:
        return [
            t for t in self.store.list()
            if not t.completed and t.id not in self.notified and should_trigger(t, now)
        ]

    def check_alarms(self, now: datetime) -> List[Task]:
        """One polling pass: expire stale state, then fire every due task."""
        self._expire_markers(now)
        self._expire_alarm(now)

        fired = self.due_tasks(now)
        for task in fired:
            self.fire(task, now)
        return fired

    def fire(self, task: Task, now: datetime) -> None:
        logger.info("Alarm: %s (%s)", task.name, task.id)

        try:
            self.dispatcher.play(task.ringtone, task.custom_audio_ref)
        except Exception:
            logger.exception("Alarm audio failed for task %s", task.id)

        self.active_alarm = ActiveAlarm(task=task, started_at=now)
        self.notifier.notify(task)
        self.notified[task.id] = _minute(now)

        self._emit({"event": "task_alarm", **self.active_alarm.to_dict()})

    def dismiss_alarm(self) -> Optional[Task]:
        if self.active_alarm is None:
            return None
        task = self.active_alarm.task
        self._clear_alarm("dismissed")
        return task

    def complete_alarm(self) -> Optional[Task]:
        """Stop the alarm and flip the alarmed task's completion state."""
        if self.active_alarm is None:
            return None
        task_id = self.active_alarm.task.id
        self._clear_alarm("completed")
        return self.toggle_complete(task_id)

    def shutdown(self) -> None:
        self.dispatcher.stop()

    # ── Internal ──────────────────────────────────────────────────────────────

    def _expire_markers(self, now: datetime) -> None:
        if self.notified_policy != NotifiedPolicy.PER_MINUTE:
            return
        current = _minute(now)
        stale = [tid for tid, minute in self.notified.items() if minute != current]
        for tid in stale:
            del self.notified[tid]

    def _expire_alarm(self, now: datetime) -> None:
        if self.active_alarm is None:
            return
        if now - self.active_alarm.started_at >= self.alarm_timeout:
            self._clear_alarm("timeout")

    def _clear_alarm(self, reason: str) -> None:
        alarm, self.active_alarm = self.active_alarm, None
        self.dispatcher.stop()
        if alarm is not None:
            logger.info("Alarm for %s cleared (%s)", alarm.task.id, reason)
            self._emit({"event": "alarm_cleared", "task_id": alarm.task.id, "reason": reason})

    def _emit(self, event: dict) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Alarm listener failed for %s", event.get("event"))
