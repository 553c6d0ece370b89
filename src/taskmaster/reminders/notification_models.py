# src/taskmaster/reminders/notification_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .triggers import CalendarTrigger


class AuthorizationStatus(StrEnum):
    NOT_DETERMINED = "not_determined"
    AUTHORIZED = "authorized"
    DENIED = "denied"


@dataclass(frozen=True, slots=True)
class NotificationContent:
    title: str
    body: str
    user_info: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class NotificationRequest:
    """A pending entry in the notification service, keyed by identifier."""

    identifier: str
    content: NotificationContent
    trigger: CalendarTrigger
