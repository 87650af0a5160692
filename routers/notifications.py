"""API endpoints for lender notifications."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_session
from repositories import NotificationRepository
from schemas import NotificationPage, NotificationResponse

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/{owner_id}", response_model=NotificationPage)
async def list_notifications(
    owner_id: str,
    *,
    session: AsyncSession = Depends(get_session),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
) -> NotificationPage:
    repo = NotificationRepository(session)
    notifications = await repo.list_for_owner(owner_id, unread_only=unread_only, limit=limit)
    return NotificationPage(
        unread_count=await repo.count_unread(owner_id),
        items=[NotificationResponse.model_validate(item) for item in notifications],
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    session: AsyncSession = Depends(get_session),
) -> NotificationResponse:
    repo = NotificationRepository(session)
    notification = await repo.get_by_id(notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    await repo.mark_read(notification)
    await session.commit()
    return NotificationResponse.model_validate(notification)
