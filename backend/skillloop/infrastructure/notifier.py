"""Notification Dispatch — post-commit, at-least-once delivery of outbox events.

Invariants:
    - Runs AFTER the originating transaction committed (FastAPI background task)
    - Each event is retried up to max_attempts; a delivery failure is logged, never raised
    - Uses its own DB session — the request session is already closed when this runs

Design Decisions:
    - DatabaseNotificationSender is the default collaborator: the inbox table doubles as the
      transport until a push/email transport exists behind the same Protocol
    - Retry loop without backoff: delivery is a single local INSERT; a persistent failure is
      a store outage, which readiness probes surface separately
"""

import logging
from typing import Any

from skillloop.config import get_settings
from skillloop.core.domain_types import WalletAddress
from skillloop.core.notification_events import NotificationEvent
from skillloop.core.repository_protocols import NotificationSender
from skillloop.infrastructure.database import DatabaseSessionManager
from skillloop.models.notification import Notification

logger = logging.getLogger(__name__)


class DatabaseNotificationSender:
    """NotificationSender that writes to the notifications inbox table."""

    def __init__(self, manager: DatabaseSessionManager):
        self._manager = manager

    async def notify(
        self,
        user: WalletAddress,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any],
    ) -> None:
        async with self._manager.session() as db:
            db.add(Notification(
                recipient_address=user, type=type, title=title,
                message=message, data=data, read=False,
            ))
            await db.commit()


async def dispatch_notifications(
    events: list[NotificationEvent],
    sender: NotificationSender,
    max_attempts: int = 3,
) -> int:
    """Deliver events through sender. Returns the number delivered."""
    delivered = 0
    for event in events:
        for attempt in range(1, max_attempts + 1):
            try:
                await sender.notify(
                    event.recipient, event.type.value, event.title,
                    event.message, event.data,
                )
                delivered += 1
                break
            except Exception as e:
                logger.warning(
                    f"Notification delivery failed: {e}",
                    extra={"wallet": event.recipient, "attempt": attempt},
                )
        else:
            logger.error(
                f"Notification {event.type.value} dropped after {max_attempts} attempts",
                extra={"wallet": event.recipient},
            )
    return delivered


async def deliver_in_background(events: list[NotificationEvent]) -> None:
    """Background task entry point: resolve the sender and dispatch."""
    from skillloop.infrastructure import database

    if not events:
        return
    if not database.db_manager:
        logger.error(f"Cannot deliver {len(events)} notifications: database not initialized")
        return
    await dispatch_notifications(
        events,
        DatabaseNotificationSender(database.db_manager),
        get_settings().notification_max_attempts,
    )
