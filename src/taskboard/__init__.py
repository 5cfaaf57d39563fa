"""Taskboard: task management REST service with composable search filters."""

__version__ = "1.0.0"
