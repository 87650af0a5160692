"""Repository for rental listing persistence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Listing

DOCUMENT_FIELDS = (
    "details",
    "pricing",
    "safety_info",
    "photo_quality_checks",
    "description_checks",
    "maintenance",
)


@dataclass(slots=True)
class ListingChange:
    """Result metadata for a status write."""

    listing: Listing
    previous_status: str


def _merge_document(current: Optional[Mapping[str, Any]], updates: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(current or {})
    for key, value in updates.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge_document(merged[key], value)
        else:
            merged[key] = value
    return merged


def _escape_like(term: str) -> str:
    """Treat ``%`` and ``_`` in a search term as literal characters."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ListingRepository:
    """Encapsulates persistence logic for listings.

    The repository never commits; the calling service owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_listing(
        self,
        *,
        owner_id: str,
        details: Optional[Dict[str, Any]] = None,
        photos: Optional[List[Dict[str, Any]]] = None,
        pricing: Optional[Dict[str, Any]] = None,
        safety_info: Optional[Dict[str, Any]] = None,
        photo_quality_checks: Optional[Dict[str, Any]] = None,
        description_checks: Optional[Dict[str, Any]] = None,
        maintenance: Optional[Dict[str, Any]] = None,
        status: str = "draft",
    ) -> Listing:
        now = datetime.now(timezone.utc)
        listing = Listing(
            owner_id=owner_id,
            status=status,
            details=dict(details or {}),
            photos=list(photos or []),
            pricing=dict(pricing or {}),
            safety_info=dict(safety_info or {}),
            photo_quality_checks=photo_quality_checks,
            description_checks=description_checks,
            maintenance=maintenance,
            submission_count=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(listing)
        await self.session.flush()
        logger.debug("Created listing", listing_id=listing.id, owner_id=owner_id)
        return listing

    async def get_by_id(self, listing_id: int) -> Optional[Listing]:
        stmt = select(Listing).where(Listing.id == listing_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_listings(
        self,
        *,
        limit: int,
        offset: int,
        status: Optional[str] = None,
        owner_id: Optional[str] = None,
        category: Optional[str] = None,
        search_term: Optional[str] = None,
    ) -> Tuple[List[Listing], int]:
        filters = []
        if status:
            filters.append(Listing.status == status)
        if owner_id:
            filters.append(Listing.owner_id == owner_id)
        if category:
            filters.append(Listing.details["category"].as_string() == category)
        if search_term:
            pattern = f"%{_escape_like(search_term.lower())}%"
            title = func.lower(func.coalesce(Listing.details["title"].as_string(), ""))
            description = func.lower(func.coalesce(Listing.details["description"].as_string(), ""))
            filters.append(title.like(pattern, escape="\\") | description.like(pattern, escape="\\"))

        stmt = select(Listing)
        count_stmt = select(func.count(Listing.id))
        if filters:
            stmt = stmt.where(*filters)
            count_stmt = count_stmt.where(*filters)
        stmt = stmt.order_by(Listing.updated_at.desc(), Listing.id.desc())

        total = (await self.session.execute(count_stmt)).scalar_one()
        result = await self.session.execute(stmt.offset(offset).limit(limit))
        return list(result.scalars().all()), total

    async def list_review_queue(self, *, limit: int, offset: int) -> Tuple[List[Listing], int]:
        """Listings waiting for a moderator, oldest submission first."""

        filters = [Listing.status == "in_review"]
        stmt = (
            select(Listing)
            .where(*filters)
            .order_by(Listing.submitted_at.asc(), Listing.id.asc())
            .offset(offset)
            .limit(limit)
        )
        total = (await self.session.execute(select(func.count(Listing.id)).where(*filters))).scalar_one()
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def merge_fields(self, listing: Listing, updates: Mapping[str, Any]) -> Listing:
        """Write-with-merge: nested documents are merged key by key, photos replaced."""

        for name in DOCUMENT_FIELDS:
            if name in updates and updates[name] is not None:
                setattr(listing, name, _merge_document(getattr(listing, name), updates[name]))
        if updates.get("photos") is not None:
            listing.photos = [dict(photo) for photo in updates["photos"]]
        listing.touch()
        await self.session.flush()
        return listing

    async def add_photo(self, listing: Listing, photo: Mapping[str, Any]) -> Listing:
        listing.photos = [*(listing.photos or []), dict(photo)]
        listing.touch()
        await self.session.flush()
        return listing

    async def record_submission(
        self,
        listing: Listing,
        *,
        status: str,
        automated_checks: Dict[str, Any],
        quality_score: int,
    ) -> ListingChange:
        previous = listing.status
        now = datetime.now(timezone.utc)
        listing.status = status
        listing.automated_checks = automated_checks
        listing.quality_score = quality_score
        listing.submission_count = (listing.submission_count or 0) + 1
        listing.submitted_at = now
        listing.touch()
        await self.session.flush()
        return ListingChange(listing=listing, previous_status=previous)

    async def record_decision(
        self,
        listing: Listing,
        *,
        status: str,
        moderator_review: Dict[str, Any],
        publish: bool = False,
    ) -> ListingChange:
        previous = listing.status
        listing.status = status
        listing.moderator_review = moderator_review
        if publish:
            listing.published_at = datetime.now(timezone.utc)
        listing.touch()
        await self.session.flush()
        return ListingChange(listing=listing, previous_status=previous)
