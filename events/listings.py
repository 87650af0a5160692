"""Listing domain events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


@dataclass(slots=True)
class ListingStatusChanged:
    """Emitted after a review operation wrote a new status."""

    listing_id: int
    owner_id: str
    previous_status: str
    status: str
    actor: str
    quality_score: Optional[int] = None
    failed_checks: List[str] = field(default_factory=list)
    notes: Optional[str] = None
    occurred_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

