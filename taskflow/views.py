"""
views.py
────────
Stateless filter / sort transforms over the task list.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from .models import Task, TaskType


class StatusFilter(str, Enum):
    ALL       = "all"
    PENDING   = "pending"
    COMPLETED = "completed"


class SortKey(str, Enum):
    TIME = "time"
    NAME = "name"


def filter_tasks(
    tasks: Iterable[Task],
    *,
    category: Optional[TaskType] = None,
    status: StatusFilter = StatusFilter.ALL,
    search: str = "",
) -> List[Task]:
    out = list(tasks)

    if category is not None:
        out = [t for t in out if t.type == category]

    if status == StatusFilter.COMPLETED:
        out = [t for t in out if t.completed]
    elif status == StatusFilter.PENDING:
        out = [t for t in out if not t.completed]

    needle = (search or "").lower()
    if needle:
        out = [
            t for t in out
            if needle in t.name.lower() or needle in (t.description or "").lower()
        ]

    return out


def sort_tasks(tasks: Iterable[Task], by: SortKey = SortKey.TIME) -> List[Task]:
    if by == SortKey.NAME:
        return sorted(tasks, key=lambda t: t.name.casefold())
    return sorted(tasks, key=lambda t: datetime.combine(t.date, t.time))


def task_view(
    tasks: Iterable[Task],
    *,
    category: Optional[TaskType] = None,
    status: StatusFilter = StatusFilter.ALL,
    search: str = "",
    sort: SortKey = SortKey.TIME,
) -> List[Task]:
    """Category tab, then completion state, then search, then sort."""
    return sort_tasks(
        filter_tasks(tasks, category=category, status=status, search=search),
        by=sort,
    )
