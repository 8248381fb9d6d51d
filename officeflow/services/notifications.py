from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from officeflow.core.feature_flags import features
from officeflow.db.store import RemoteStore
from officeflow.schemas.demand_schema import Demand
from officeflow.schemas.employee_schema import Employee
from officeflow.utils.email import send_notification_email

logger = logging.getLogger(__name__)

EMAIL_PREFIX = "mailto:"


def _mask(token: str) -> str:
    return token if len(token) <= 12 else f"{token[:8]}..."


class NotificationDispatcher:
    """Fire-and-forget delivery of notifications to device tokens.

    ``mailto:`` tokens are sent by e-mail; every other token is queued in
    the ``notifications`` collection for the push gateway. Delivery errors
    are logged and never reach the caller.
    """

    def __init__(self, store: RemoteStore, send_email: Callable[..., None] = send_notification_email) -> None:
        self.store = store
        self._send_email = send_email
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, token: str, title: str, body: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._deliver(token, title, body))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def notify_demand_done(self, owner: Employee, demand: Demand) -> list[asyncio.Task]:
        if not features.notifications:
            return []
        title = "Demand completed"
        body = f'The demand "{demand.title}" was completed.'
        return [self.dispatch(token, title, body) for token in owner.notification_tokens]

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _deliver(self, token: str, title: str, body: str) -> bool:
        try:
            if token.startswith(EMAIL_PREFIX):
                await asyncio.to_thread(self._send_email, to=token[len(EMAIL_PREFIX):], title=title, body=body)
            else:
                await self.store.create(
                    "notifications",
                    {
                        "token": token,
                        "title": title,
                        "body": body,
                        "read": False,
                        "created_at": datetime.utcnow(),
                    },
                )
        except Exception as exc:
            logger.warning("Notification to %s failed: %s", _mask(token), exc)
            return False
        logger.debug("Notification sent to %s", _mask(token))
        return True
