"""Event type definitions for inter-service communication."""

from .listings import ListingStatusChanged

__all__ = ["ListingStatusChanged"]
