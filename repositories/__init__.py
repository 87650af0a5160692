"""Repository helpers for database interactions."""

from .listings import ListingChange, ListingRepository
from .notifications import NotificationRepository

__all__ = ["ListingRepository", "ListingChange", "NotificationRepository"]
