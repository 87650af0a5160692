"""Moderation workflow for rental listings.

States: draft, submitted, in_review, needs_changes, approved, rejected.

``submit_for_review`` runs the automated battery and the weighted quality
score and routes the listing to ``in_review`` or ``needs_changes``. The three
moderator decisions store the review record and set ``approved``,
``rejected`` or ``needs_changes``. Listings in ``needs_changes`` may be
resubmitted without limit unless the policy says otherwise.

By default the workflow trusts the moderator UI: it does not check the
review checklist and allows resubmission from terminal states, with last
write winning. ``ReviewPolicy`` turns each of these guards on.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from loguru import logger
from prometheus_client import Counter
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from db.models import Listing
from events import ListingStatusChanged
from repositories import ListingChange, ListingRepository
from services.event_bus import EventBus
from services.listing_checks import missing_detail_fields, run_automated_checks
from services.photo_inspection import PhotoInspector
from services.quality_scorer import calculate_quality_score
from utils.error_handling import (
    ConcurrencyConflictError,
    ErrorContext,
    InvalidTransitionError,
    ListingNotFoundError,
    PhotoRejectedError,
    ReviewIncompleteError,
    SubmissionLimitError,
)

T = TypeVar("T")

DRAFT = "draft"
SUBMITTED = "submitted"
IN_REVIEW = "in_review"
NEEDS_CHANGES = "needs_changes"
APPROVED = "approved"
REJECTED = "rejected"

STATUSES = (DRAFT, SUBMITTED, IN_REVIEW, NEEDS_CHANGES, APPROVED, REJECTED)
TERMINAL_STATUSES = frozenset({APPROVED, REJECTED})
EDITABLE_STATUSES = frozenset({DRAFT, SUBMITTED, NEEDS_CHANGES})

REVIEW_TRANSITIONS = Counter(
    "listing_review_transitions_total",
    "Count of listing status writes by operation and resulting status",
    labelnames=["operation", "status"],
)
SUBMISSION_CHECK_FAILURES = Counter(
    "listing_submission_check_failures_total",
    "Count of failed automated checks on submission",
    labelnames=["check"],
)


@dataclass(slots=True)
class ReviewChecklist:
    photo_authenticity: bool = False
    item_condition: bool = False
    price_fairness: bool = False
    description_accuracy: bool = False
    safety_compliance: bool = False

    @property
    def is_complete(self) -> bool:
        return all(
            (
                self.photo_authenticity,
                self.item_condition,
                self.price_fairness,
                self.description_accuracy,
                self.safety_compliance,
            )
        )

    def to_dict(self) -> Dict[str, bool]:
        return {
            "photoAuthenticity": self.photo_authenticity,
            "itemCondition": self.item_condition,
            "priceFairness": self.price_fairness,
            "descriptionAccuracy": self.description_accuracy,
            "safetyCompliance": self.safety_compliance,
        }


@dataclass(slots=True)
class ModeratorReview:
    notes: str = ""
    checklist: ReviewChecklist = field(default_factory=ReviewChecklist)
    moderator_id: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.checklist.is_complete and bool(self.notes.strip())

    def to_record(self, decision: str, timestamp: datetime) -> Dict[str, Any]:
        return {
            "notes": self.notes,
            "checklist": self.checklist.to_dict(),
            "moderatorId": self.moderator_id,
            "decision": decision,
            "timestamp": timestamp.isoformat(),
        }


@dataclass(slots=True)
class ReviewPolicy:
    enforce_checklist: bool = False
    block_terminal_resubmit: bool = False
    max_submissions: int = 0


@dataclass(slots=True)
class SubmissionResult:
    status: str
    checks: Dict[str, Any]
    quality_score: int
    listing: Listing

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "checks": self.checks, "qualityScore": self.quality_score}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in {"1", "true", "yes", "on"}


def load_review_policy() -> ReviewPolicy:
    raw_limit = os.getenv("REVIEW_MAX_SUBMISSIONS", "0")
    try:
        max_submissions = max(int(raw_limit), 0)
    except ValueError:
        logger.warning("Invalid REVIEW_MAX_SUBMISSIONS; submissions stay unlimited", value=raw_limit)
        max_submissions = 0
    return ReviewPolicy(
        enforce_checklist=_env_flag("REVIEW_ENFORCE_CHECKLIST"),
        block_terminal_resubmit=_env_flag("REVIEW_BLOCK_TERMINAL_RESUBMIT"),
        max_submissions=max_submissions,
    )


class ReviewWorkflow:
    """Drives a listing through moderation inside one database session."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        event_bus: EventBus | None = None,
        policy: ReviewPolicy | None = None,
    ) -> None:
        self._session = session
        self._repo = ListingRepository(session)
        self._event_bus = event_bus
        self._policy = policy or ReviewPolicy()

    async def submit_for_review(
        self,
        listing_id: int,
        *,
        expected_version: Optional[int] = None,
    ) -> SubmissionResult:
        async def apply(listing: Listing):
            if self._policy.block_terminal_resubmit and listing.status in TERMINAL_STATUSES:
                raise InvalidTransitionError(
                    f"Listing {listing_id} is {listing.status} and cannot be resubmitted",
                    ErrorContext("submit_for_review", listing_id=listing_id, status=listing.status),
                )
            limit = self._policy.max_submissions
            if limit and (listing.submission_count or 0) >= limit:
                raise SubmissionLimitError(
                    f"Listing {listing_id} reached the limit of {limit} submissions",
                    ErrorContext(
                        "submit_for_review",
                        listing_id=listing_id,
                        status=listing.status,
                        additional_data={"submission_count": listing.submission_count},
                    ),
                )

            snapshot = listing.snapshot()
            checks = run_automated_checks(snapshot)
            quality_score = calculate_quality_score(snapshot)
            status = IN_REVIEW if checks.passed else NEEDS_CHANGES
            change = await self._repo.record_submission(
                listing,
                status=status,
                automated_checks=checks.to_dict(),
                quality_score=quality_score,
            )
            return change, checks, quality_score, snapshot

        change, checks, quality_score, snapshot = await self._write(
            "submit_for_review", listing_id, expected_version, apply
        )
        status = change.listing.status

        failed = checks.failed_checks()
        REVIEW_TRANSITIONS.labels(operation="submit", status=status).inc()
        for name in failed:
            SUBMISSION_CHECK_FAILURES.labels(check=name).inc()
        logger.info(
            "Listing submitted for review",
            listing_id=listing_id,
            status=status,
            quality_score=quality_score,
            failed_checks=failed,
            missing_fields=missing_detail_fields(snapshot["details"]),
        )
        await self._publish(change, actor="system", quality_score=quality_score, failed_checks=failed)

        return SubmissionResult(
            status=status,
            checks=checks.to_dict(),
            quality_score=quality_score,
            listing=change.listing,
        )

    async def update_listing(
        self,
        listing_id: int,
        updates: Dict[str, Any],
        *,
        expected_version: Optional[int] = None,
    ) -> Listing:
        """Merge lender edits into a listing that is not under review or decided."""

        async def apply(listing: Listing) -> Listing:
            self._ensure_editable(listing, "update_listing")
            return await self._repo.merge_fields(listing, updates)

        listing = await self._write("update_listing", listing_id, expected_version, apply)
        logger.info("Listing updated", listing_id=listing_id, fields=sorted(updates), version=listing.version)
        return listing

    async def attach_photo(
        self,
        listing_id: int,
        photo: Dict[str, Any],
        *,
        inspector: Optional[PhotoInspector] = None,
        expected_version: Optional[int] = None,
    ) -> Listing:
        """Attach a photo to an editable listing.

        With an ``inspector`` the photo is fetched and measured only after the
        listing is known to accept edits at the expected version; a photo that
        fails the quality rules raises ``PhotoRejectedError``.
        """

        measured: Dict[str, Any] = {}

        async def apply(listing: Listing) -> Listing:
            self._ensure_editable(listing, "attach_photo")
            if inspector is not None and not measured:
                inspection = await inspector.inspect(photo["url"])
                if not inspection.passed:
                    raise PhotoRejectedError(
                        "; ".join(inspection.failure_messages()),
                        ErrorContext(
                            "attach_photo",
                            listing_id=listing_id,
                            status=listing.status,
                            additional_data={"url": photo["url"]},
                        ),
                    )
                measured.update(inspection.photo_metadata())
            return await self._repo.add_photo(listing, {**photo, **measured})

        listing = await self._write("attach_photo", listing_id, expected_version, apply)
        logger.info("Photo attached", listing_id=listing_id, photo_count=len(listing.photos))
        return listing

    def _ensure_editable(self, listing: Listing, operation: str) -> None:
        if listing.status not in EDITABLE_STATUSES:
            raise InvalidTransitionError(
                f"Listing {listing.id} is {listing.status} and cannot be edited",
                ErrorContext(operation, listing_id=listing.id, status=listing.status),
            )

    async def approve_listing(
        self,
        listing_id: int,
        review: ModeratorReview,
        *,
        expected_version: Optional[int] = None,
    ) -> Listing:
        return await self._decide(listing_id, review, APPROVED, "approve", expected_version)

    async def reject_listing(
        self,
        listing_id: int,
        review: ModeratorReview,
        *,
        expected_version: Optional[int] = None,
    ) -> Listing:
        return await self._decide(listing_id, review, REJECTED, "reject", expected_version)

    async def request_changes(
        self,
        listing_id: int,
        review: ModeratorReview,
        *,
        expected_version: Optional[int] = None,
    ) -> Listing:
        return await self._decide(listing_id, review, NEEDS_CHANGES, "request_changes", expected_version)

    async def _decide(
        self,
        listing_id: int,
        review: ModeratorReview,
        status: str,
        operation: str,
        expected_version: Optional[int],
    ) -> Listing:
        async def apply(listing: Listing) -> ListingChange:
            if self._policy.enforce_checklist and not review.is_complete:
                raise ReviewIncompleteError(
                    "Please complete all checklist items and add review notes",
                    ErrorContext(
                        operation,
                        listing_id=listing_id,
                        status=listing.status,
                        additional_data={"checklist": review.checklist.to_dict()},
                    ),
                )
            record = review.to_record(status, datetime.now(timezone.utc))
            return await self._repo.record_decision(
                listing,
                status=status,
                moderator_review=record,
                publish=status == APPROVED,
            )

        change = await self._write(operation, listing_id, expected_version, apply)

        REVIEW_TRANSITIONS.labels(operation=operation, status=status).inc()
        logger.info(
            "Moderator decision recorded",
            listing_id=listing_id,
            previous_status=change.previous_status,
            status=status,
            moderator_id=review.moderator_id,
            checklist_complete=review.checklist.is_complete,
        )
        await self._publish(change, actor=review.moderator_id or "moderator", notes=review.notes)
        return change.listing

    async def _write(
        self,
        operation: str,
        listing_id: int,
        expected_version: Optional[int],
        apply: Callable[[Listing], Awaitable[T]],
    ) -> T:
        """Load the listing, run one write against it and commit.

        The flushed UPDATE only matches the version that was loaded, so a
        commit from another session in between raises ``StaleDataError``.
        A caller holding ``expected_version`` gets a conflict; otherwise the
        write is replayed once on the fresh row and the last write wins.
        """

        attempt = 0
        while True:
            attempt += 1
            listing = await self._load(listing_id, operation, expected_version)
            try:
                result = await apply(listing)
                await self._session.commit()
                return result
            except StaleDataError as exc:
                await self._session.rollback()
                if expected_version is None and attempt == 1:
                    logger.info(
                        "Listing changed concurrently; replaying write",
                        listing_id=listing_id,
                        operation=operation,
                    )
                    continue
                raise ConcurrencyConflictError(
                    f"Listing {listing_id} was changed by a concurrent write",
                    ErrorContext(
                        operation,
                        listing_id=listing_id,
                        additional_data={"expected_version": expected_version},
                    ),
                ) from exc

    async def _load(self, listing_id: int, operation: str, expected_version: Optional[int]) -> Listing:
        listing = await self._repo.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFoundError(
                f"Listing {listing_id} not found",
                ErrorContext(operation, listing_id=listing_id),
            )
        if expected_version is not None and listing.version != expected_version:
            raise ConcurrencyConflictError(
                f"Listing {listing_id} changed since version {expected_version}",
                ErrorContext(
                    operation,
                    listing_id=listing_id,
                    status=listing.status,
                    additional_data={"current_version": listing.version},
                ),
            )
        return listing

    async def _publish(
        self,
        change: ListingChange,
        *,
        actor: str,
        quality_score: Optional[int] = None,
        failed_checks: Optional[list[str]] = None,
        notes: Optional[str] = None,
    ) -> None:
        if self._event_bus is None:
            return
        listing = change.listing
        await self._event_bus.publish(
            ListingStatusChanged(
                listing_id=listing.id,
                owner_id=listing.owner_id,
                previous_status=change.previous_status,
                status=listing.status,
                actor=actor,
                quality_score=quality_score,
                failed_checks=list(failed_checks or []),
                notes=notes,
            )
        )
