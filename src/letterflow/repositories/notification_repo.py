"""Notification repository."""

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from letterflow.db.models.notification import NotificationRow
from letterflow.repositories.base import BaseRepository


class NotificationRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, NotificationRow)

    async def list_for_recipient(self, recipient_id: str, unread_only: bool = False, limit: int = 50) -> list[NotificationRow]:
        criteria = [NotificationRow.recipient_id == recipient_id]
        if unread_only:
            criteria.append(NotificationRow.read.is_(False))
        return await self.list_where(*criteria, order_by=NotificationRow.created_at.desc(), limit=limit)

    async def mark_read(self, notification_id: str, recipient_id: str) -> bool:
        stmt = (
            update(NotificationRow)
            .where(
                NotificationRow.notification_id == notification_id,
                NotificationRow.recipient_id == recipient_id,
            )
            .values(read=True)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
