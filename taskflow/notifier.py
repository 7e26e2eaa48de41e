"""
notifier.py
───────────
Best-effort desktop notifications for fired alarms.

Notifications are permission-gated like the browser Notification API:

  granted  -> every alarm raises a desktop notification
  default  -> the first alarm asks for permission and shows nothing itself
  denied   -> never notify; the alarm stays visual + audio only

On the desktop "asking" means checking that the host has a notification
backend (notify-send / osascript / PowerShell).  Nothing here ever raises.
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
from enum import Enum
from typing import Callable, List, Optional

from .models import Task

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED  = "denied"


_PS_QUOTES = "'\u2018\u2019\u201a\u201b"


def _ps_literal(text: str) -> str:
    """PowerShell single-quoted literal: no expansion, quote chars doubled."""
    return "'" + "".join(c * 2 if c in _PS_QUOTES else c for c in text) + "'"


def _notification_command(title: str, body: str) -> Optional[List[str]]:
    """Build the OS command that shows a notification, or None if unsupported."""
    system = platform.system()
    if system == "Linux":
        if not shutil.which("notify-send"):
            return None
        return ["notify-send", "--icon=dialog-information", "--urgency=critical", "--", title, body]
    if system == "Darwin":
        # Text goes in as argv, never into the script source.
        return [
            "osascript",
            "-e", "on run argv",
            "-e", 'display notification (item 2 of argv) with title (item 1 of argv) sound name "Glass"',
            "-e", "end run",
            "--", title, body,
        ]
    if system == "Windows":
        ps_cmd = (
            "Add-Type -AssemblyName System.Windows.Forms; "
            "$n = New-Object System.Windows.Forms.NotifyIcon; "
            "$n.Icon = [System.Drawing.SystemIcons]::Information; "
            "$n.Visible = $true; "
            f"$n.ShowBalloonTip(10000, {_ps_literal(title)}, {_ps_literal(body)}, "
            "[System.Windows.Forms.ToolTipIcon]::Info)"
        )
        return ["powershell", "-WindowStyle", "Hidden", "-Command", ps_cmd]
    return None


def _send_os_notification(title: str, body: str) -> bool:
    cmd = _notification_command(title, body)
    if cmd is None:
        return False
    subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    return True


def _backend_available() -> bool:
    return _notification_command("", "") is not None


class DesktopNotifier:

    def __init__(
        self,
        permission: Permission = Permission.DEFAULT,
        *,
        send: Callable[[str, str], bool] = _send_os_notification,
        request: Callable[[], bool] = _backend_available,
    ):
        self.permission = Permission(permission)
        self._send      = send
        self._request   = request

    def request_permission(self) -> Permission:
        if self.permission != Permission.DEFAULT:
            return self.permission
        try:
            granted = self._request()
        except Exception:
            logger.debug("Notification permission request failed", exc_info=True)
            granted = False
        self.permission = Permission.GRANTED if granted else Permission.DENIED
        logger.info("Desktop notification permission: %s", self.permission.value)
        return self.permission

    def notify(self, task: Task) -> bool:
        """Show a notification for `task`.  Returns True if one was sent."""
        if self.permission == Permission.DEFAULT:
            # Permission arrives too late for this alarm; later ones will notify.
            self.request_permission()
            return False
        if self.permission != Permission.GRANTED:
            return False

        title = f"🚨 Task Due: {task.name}"
        body  = task.description or "No description"
        try:
            return bool(self._send(title, body))
        except Exception:
            logger.debug("Desktop notification failed for task %s", task.id, exc_info=True)
            return False
