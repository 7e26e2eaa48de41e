"""
config.py
─────────
Settings loaded from TASKFLOW_* environment variables (+ optional .env file).

Invalid values fall back to their defaults rather than failing start-up.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKFLOW"

_NOTIFICATION_CHOICES = {"default", "granted", "denied"}
_POLICY_CHOICES       = {"per_minute", "once"}


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None or v.strip() == "" else v.strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(_env(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        value = float(_env(name, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default


def _env_choice(name: str, default: str, choices: set[str]) -> str:
    v = _env(name, default).lower()
    return v if v in choices else default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    log_dir: Path

    # ---- HTTP ----
    host: str
    port: int

    # ---- Local data ----
    data_dir: Path
    tasks_file: Path
    sounds_dir: Path

    # ---- Alarms ----
    poll_interval: float        # seconds between alarm checks
    alarm_timeout: float        # auto-stop ceiling for a ringing alarm
    tone_interval: float        # seconds between built-in tone bursts
    notifications: str          # default | granted | denied
    notified_policy: str        # per_minute | once

    @staticmethod
    def from_env() -> "Settings":
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskflow"))

        return Settings(
            app_name=_env(_k("APP_NAME"), "TaskFlow"),
            log_level=_env(_k("LOG_LEVEL"), "INFO").upper(),
            log_dir=_env_path(_k("LOG_DIR"), data_dir / "logs"),
            host=_env(_k("HOST"), "127.0.0.1"),
            port=_env_int(_k("PORT"), 8000),
            data_dir=data_dir,
            tasks_file=_env_path(_k("TASKS_FILE"), data_dir / "tasks.json"),
            sounds_dir=_env_path(_k("SOUNDS_DIR"), data_dir / "sounds"),
            poll_interval=_env_float(_k("POLL_INTERVAL"), 1.0),
            alarm_timeout=_env_float(_k("ALARM_TIMEOUT"), 30.0),
            tone_interval=_env_float(_k("TONE_INTERVAL"), 1.0),
            notifications=_env_choice(_k("NOTIFICATIONS"), "default", _NOTIFICATION_CHOICES),
            notified_policy=_env_choice(_k("NOTIFIED_POLICY"), "per_minute", _POLICY_CHOICES),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process settings, read once (after loading .env if present)."""
    load_dotenv(override=False)
    return Settings.from_env()
