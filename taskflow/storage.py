"""
storage.py
──────────
JSON file persistence for the task list.

The whole list lives under a single file, read once at startup and rewritten
in full on every mutation:

    {"tasks": [ {...}, {...} ]}

Writes are atomic: the payload goes to a `.tmp` sibling which is then
renamed over the old file with os.replace().
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


def _read(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable task file %s", path)
            return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring malformed task file %s", path)
        return {}
    return data


def _write(path: Path, data: Dict[str, Any]) -> None:
    """Atomic write: write to a tmp file then rename (os.replace)."""
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    os.replace(tmp, path)


class JsonTaskStorage:
    """Reads and writes the serialized task list at one durable key (a file)."""

    def __init__(self, path: str | Path):
        self.path  = Path(path)
        self._lock = threading.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> List[Dict[str, Any]]:
        with self._lock:
            data = _read(self.path)
        tasks = data.get("tasks", [])
        if not isinstance(tasks, list):
            logger.warning("Task file %s has no task list", self.path)
            return []
        return list(tasks)

    def save(self, tasks: List[Dict[str, Any]]) -> None:
        with self._lock:
            _write(self.path, {"tasks": tasks})
