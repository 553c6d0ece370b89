# src/taskmaster/reminders/notification_center.py

from __future__ import annotations

"""
In-process notification service.

Holds the pending-entry table (identifier -> request), answers authorization
requests, and runs a small polling loop that delivers due entries:

- one-shot entries are removed once delivered,
- repeating entries are re-armed for their next matching minute,
- the delivery handler receives the entry's user_info payload.

Adding an entry under an existing identifier replaces it.
"""

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..core.ports import DeliveryHandler
from .notification_models import AuthorizationStatus, NotificationRequest

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class NotificationNotAuthorized(RuntimeError):
    pass


@dataclass(slots=True)
class _PendingEntry:
    request: NotificationRequest
    fire_at: datetime | None


class LocalNotificationCenter:
    def __init__(
        self,
        *,
        grant_on_request: bool = True,
        status: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
        clock: Clock = datetime.now,
    ) -> None:
        self._grant_on_request = grant_on_request
        self._status = status
        self._clock = clock
        self._pending: dict[str, _PendingEntry] = {}
        self._handler: DeliveryHandler | None = None
        self.delivered: list[NotificationRequest] = []

    # ---- authorization ----

    async def request_authorization(self) -> bool:
        if self._status == AuthorizationStatus.NOT_DETERMINED:
            self._status = (
                AuthorizationStatus.AUTHORIZED
                if self._grant_on_request
                else AuthorizationStatus.DENIED
            )
            logger.info("Notification authorization resolved: %s", self._status.value)
        return self._status == AuthorizationStatus.AUTHORIZED

    async def authorization_status(self) -> AuthorizationStatus:
        return self._status

    # ---- pending table ----

    async def add(self, request: NotificationRequest) -> None:
        if self._status != AuthorizationStatus.AUTHORIZED:
            raise NotificationNotAuthorized(
                f"cannot add {request.identifier!r}: authorization is {self._status.value}"
            )

        fire_at = request.trigger.next_fire_date(self._clock())
        replaced = request.identifier in self._pending
        self._pending[request.identifier] = _PendingEntry(request=request, fire_at=fire_at)
        logger.debug(
            "Notification %s id=%s fire_at=%s repeats=%s",
            "replaced" if replaced else "added",
            request.identifier,
            fire_at,
            request.trigger.repeats,
        )

    async def remove(self, identifiers: Iterable[str]) -> None:
        for ident in identifiers:
            if self._pending.pop(ident, None) is not None:
                logger.debug("Notification removed id=%s", ident)

    async def remove_all(self) -> None:
        n = len(self._pending)
        self._pending.clear()
        logger.debug("Notification table cleared (%s entries)", n)

    async def list_pending(self) -> list[NotificationRequest]:
        return [e.request for e in self._pending.values()]

    def next_fire_date(self, identifier: str) -> datetime | None:
        entry = self._pending.get(identifier)
        return entry.fire_at if entry is not None else None

    # ---- delivery ----

    def set_delivery_handler(self, handler: DeliveryHandler | None) -> None:
        self._handler = handler

    async def deliver(self, identifier: str) -> bool:
        """
        Deliver one pending entry now (as if the user acted on it).

        Returns False if nothing is pending under `identifier`.
        """
        entry = self._pending.get(identifier)
        if entry is None:
            return False

        request = entry.request
        if request.trigger.repeats:
            entry.fire_at = request.trigger.next_fire_date(
                max(self._clock(), entry.fire_at or self._clock())
            )
        else:
            del self._pending[identifier]

        self.delivered.append(request)
        logger.info("Notification delivered id=%s", identifier)

        handler = self._handler
        if handler is None:
            return True
        try:
            result = handler(dict(request.content.user_info))
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Delivery handler failed id=%s", identifier)
        return True

    async def deliver_due(self, now: datetime | None = None) -> list[str]:
        now = now or self._clock()
        due = [
            ident
            for ident, entry in self._pending.items()
            if entry.fire_at is not None and entry.fire_at <= now
        ]
        due.sort(key=lambda i: self._pending[i].fire_at or now)
        for ident in due:
            await self.deliver(ident)
        return due


async def run_delivery_loop(
        center: LocalNotificationCenter,
        *,
        interval_seconds: float = 15.0,
) -> None:
    """
    Polling delivery loop.

    Every interval_seconds, deliver every pending entry whose fire time has
    passed. To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        try:
            delivered = await center.deliver_due()
            if delivered:
                logger.debug("Delivery tick: %s delivered", len(delivered))
        except Exception:
            logger.exception("deliver_due failed")

        await asyncio.sleep(sleep_s)


def describe_pending(request: NotificationRequest) -> dict[str, Any]:
    return {
        "identifier": request.identifier,
        "title": request.content.title,
        "body": request.content.body,
        "repeats": request.trigger.repeats,
        "components": request.trigger.components.as_dict(),
    }
