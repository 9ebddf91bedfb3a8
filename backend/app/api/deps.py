"""Route-level dependencies for notification delivery."""

from functools import lru_cache

from fastapi import BackgroundTasks, Depends

from app.core.db import SessionLocal
from app.services.email_gateway import HttpEmailGateway
from app.services.notifications import BackgroundNotifier, NotificationDispatcher, Notifier


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(SessionLocal, HttpEmailGateway())


def get_notifier(
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> Notifier:
    """Fan-out runs after the response is sent."""

    return BackgroundNotifier(dispatcher, background_tasks)
