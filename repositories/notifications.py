"""Repository for owner notifications."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Notification


class NotificationRepository:
    """Encapsulates CRUD operations for in-app notifications."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_notification(
        self,
        *,
        owner_id: str,
        listing_id: Optional[int],
        kind: str,
        title: str,
        message: Optional[str],
    ) -> Notification:
        notification = Notification(
            owner_id=owner_id,
            listing_id=listing_id,
            kind=kind,
            title=title,
            message=message,
            is_read=False,
        )
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def list_for_owner(
        self,
        owner_id: str,
        *,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Notification]:
        stmt = select(Notification).where(Notification.owner_id == owner_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_unread(self, owner_id: str) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.owner_id == owner_id,
            Notification.is_read.is_(False),
        )
        return (await self.session.execute(stmt)).scalar_one()

    async def get_by_id(self, notification_id: int) -> Optional[Notification]:
        return await self.session.get(Notification, notification_id)

    async def mark_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        await self.session.flush()
        return notification
