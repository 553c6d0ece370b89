# src/taskmaster/core/errors.py

from __future__ import annotations

"""
Error taxonomy shared by the store, the reminder scheduler and the task manager.

- ValidationError: user input rejected before anything is persisted.
- AuthorizationDenied: the notification service refused to deliver alerts.
- SchedulingFailure: registering a reminder failed; no reminder exists.
- StoreFailure: fetch/commit/rollback against the store failed.
"""


class TaskMasterError(Exception):
    """Base class for all domain errors."""


class ValidationError(TaskMasterError):
    pass


class AuthorizationDenied(TaskMasterError):
    pass


class SchedulingFailure(TaskMasterError):
    pass


class StoreFailure(TaskMasterError):
    pass
