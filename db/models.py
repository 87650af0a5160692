"""SQLAlchemy models for rental listings under moderation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON, Boolean


class Base(DeclarativeBase):
    """Base declarative class for SQLAlchemy models."""


JSONType = JSONB().with_variant(JSON(), "sqlite")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Listing(Base):
    """A rentable clothing item and its moderation state.

    The document columns keep the camelCase field names of the listing
    documents (``originalPrice``, ``allergenFree`` ...) so that snapshots
    can be handed to the scorer and the automated checks unchanged.
    """

    __tablename__ = "listings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(32), index=True, default="draft", nullable=False)

    details: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    photos: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, default=list, nullable=False)
    pricing: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    safety_info: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    photo_quality_checks: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    description_checks: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    maintenance: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    automated_checks: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    quality_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    moderator_review: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    submission_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # every UPDATE is guarded by ``WHERE version = <loaded version>``
    __mapper_args__ = {"version_id_col": version}

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def touch(self) -> None:
        """Stamp the update time."""
        self.updated_at = _utcnow()

    def snapshot(self) -> Dict[str, Any]:
        """Return the listing as a plain document for scoring and checks."""
        return {
            "id": self.id,
            "status": self.status,
            "details": dict(self.details or {}),
            "photos": list(self.photos or []),
            "pricing": dict(self.pricing or {}),
            "safetyInfo": dict(self.safety_info or {}),
            "photoQualityChecks": self.photo_quality_checks,
            "descriptionChecks": self.description_checks,
            "maintenance": self.maintenance,
        }


class Notification(Base):
    """In-app notification addressed to a listing owner."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    listing_id: Mapped[Optional[int]] = mapped_column(Integer, index=True, nullable=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
