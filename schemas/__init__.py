"""Pydantic schemas for API requests and responses."""

from .content import ContentScanRequest, ContentScanResponse
from .listings import (
    ListingCreate,
    ListingPage,
    ListingResponse,
    ListingUpdate,
    ModeratorReviewPayload,
    PhotoCreate,
    QualityReportResponse,
    ReviewQueueItem,
    ReviewQueuePage,
    SubmissionResponse,
)
from .notifications import NotificationPage, NotificationResponse

__all__ = [
    "ContentScanRequest",
    "ContentScanResponse",
    "ListingCreate",
    "ListingUpdate",
    "ListingResponse",
    "ListingPage",
    "PhotoCreate",
    "SubmissionResponse",
    "QualityReportResponse",
    "ModeratorReviewPayload",
    "ReviewQueueItem",
    "ReviewQueuePage",
    "NotificationResponse",
    "NotificationPage",
]
