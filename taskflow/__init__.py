"""TaskFlow: personal task list with due-time alarms."""

__version__ = "1.0.0"
