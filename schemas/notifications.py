"""Pydantic schemas for owner notifications."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class NotificationResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    owner_id: str
    listing_id: Optional[int] = None
    kind: str
    title: str
    message: Optional[str] = None
    is_read: bool
    created_at: datetime


class NotificationPage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    unread_count: int
    items: List[NotificationResponse]
