"""Notification inbox — reads and read-receipts for delivered notifications."""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillloop.core.domain_types import WalletAddress
from skillloop.core.errors import AuthorizationError, ResourceNotFoundError
from skillloop.infrastructure.database import atomic
from skillloop.models.notification import Notification


class NotificationInbox:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_notifications(
        self,
        recipient: WalletAddress,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Notification]:
        query = (
            select(Notification)
            .where(Notification.recipient_address == recipient)
            .order_by(Notification.created_at.desc())
        )
        if unread_only:
            query = query.where(Notification.read.is_(False))
        result = await self.db.execute(query.limit(limit).offset(offset))
        return list(result.scalars().all())

    async def mark_read(
        self, notification_id: UUID, recipient: WalletAddress,
    ) -> Notification:
        result = await self.db.execute(
            select(Notification).where(Notification.id == notification_id),
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise ResourceNotFoundError("Notification", str(notification_id))
        if notification.recipient_address != recipient:
            raise AuthorizationError("read this notification")
        async with atomic(self.db):
            await self.db.execute(
                update(Notification)
                .where(Notification.id == notification_id)
                .values(read=True)
            )
        return notification
