"""
Error categorisation for the listing review workflow.

Data problems inside a listing never raise: the scorer degrades and the
automated checks report failures. The exceptions below cover the cases where
an operation cannot be carried out at all. Each one carries an
``ErrorCategory`` that the API layer maps onto an HTTP status. Store errors
are not wrapped and reach the caller unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """
    NOT_FOUND: the listing or notification does not exist
    VALIDATION: the request is well-formed but violates a review rule
    CONFLICT: the listing changed or is in a state that forbids the operation
    """

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFLICT = "conflict"


HTTP_STATUS_BY_CATEGORY = {
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.VALIDATION: 422,
    ErrorCategory.CONFLICT: 409,
}


@dataclass
class ErrorContext:
    operation: str
    listing_id: Optional[int] = None
    status: Optional[str] = None
    additional_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "listing_id": self.listing_id,
            "status": self.status,
            "additional_data": self.additional_data,
        }


class ReviewError(Exception):
    """Base class for review operations that cannot proceed."""

    category: ErrorCategory = ErrorCategory.VALIDATION

    def __init__(self, message: str, context: Optional[ErrorContext] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CATEGORY[self.category]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "category": self.category.value,
            "context": self.context.to_dict() if self.context else None,
        }


class ListingNotFoundError(ReviewError):
    category = ErrorCategory.NOT_FOUND


class NotificationNotFoundError(ReviewError):
    category = ErrorCategory.NOT_FOUND


class ReviewIncompleteError(ReviewError):
    """Moderator review without a fully ticked checklist or without notes."""

    category = ErrorCategory.VALIDATION


class PhotoRejectedError(ReviewError):
    category = ErrorCategory.VALIDATION


class InvalidTransitionError(ReviewError):
    category = ErrorCategory.CONFLICT


class SubmissionLimitError(ReviewError):
    category = ErrorCategory.CONFLICT


class ConcurrencyConflictError(ReviewError):
    """The stored listing moved past the version the caller loaded or expected."""

    category = ErrorCategory.CONFLICT
