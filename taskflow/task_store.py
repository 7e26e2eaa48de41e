"""
task_store.py
─────────────
In-memory ordered task list backed by JsonTaskStorage.

Every mutation is persisted immediately.  Insertion order is the list order,
and survives a save/load round-trip.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from pydantic import ValidationError

from .models import Task
from .storage import JsonTaskStorage

logger = logging.getLogger(__name__)


class TaskStore:

    def __init__(self, storage: JsonTaskStorage):
        self._storage = storage
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()

    # ── Queries ───────────────────────────────────────────────────────────────

    def list(self) -> List[Task]:
        with self._lock:
            return list(self._tasks.values())

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def __len__(self) -> int:
        return len(self._tasks)

    # ── CRUD ──────────────────────────────────────────────────────────────────

    def add(self, task: Task) -> Task:
        with self._lock:
            self._tasks[task.id] = task
        self.save()
        return task

    def update(self, task_id: str, **fields) -> Optional[Task]:
        """
        Merge `fields` into the task and re-validate it.

        The id is immutable and silently kept.  Raises ValidationError if the
        merged task is invalid (e.g. a blank name); the stored task is then
        left untouched.
        """
        fields.pop("id", None)
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            merged = Task.model_validate({**task.model_dump(), **fields})
            self._tasks[task_id] = merged
        self.save()
        return merged

    def remove(self, task_id: str) -> bool:
        with self._lock:
            if task_id not in self._tasks:
                return False
            del self._tasks[task_id]
        self.save()
        return True

    def set_completed(self, task_id: str, completed: bool) -> Optional[Task]:
        return self.update(task_id, completed=completed)

    def toggle_completed(self, task_id: str) -> Optional[Task]:
        task = self.get(task_id)
        if task is None:
            return None
        return self.set_completed(task_id, not task.completed)

    # ── Persistence ───────────────────────────────────────────────────────────

    def load(self) -> None:
        rows = self._storage.load()
        loaded: Dict[str, Task] = {}
        for row in rows:
            try:
                t = Task.model_validate(row)
            except ValidationError as e:
                logger.warning("Skipping invalid stored task %r: %s", row.get("id") if isinstance(row, dict) else row, e)
                continue
            loaded[t.id] = t
        with self._lock:
            self._tasks = loaded
        logger.info("Loaded %d task(s) from %s", len(loaded), self._storage.path)

    def save(self) -> None:
        with self._lock:
            data = [t.model_dump(mode="json") for t in self._tasks.values()]
        self._storage.save(data)
