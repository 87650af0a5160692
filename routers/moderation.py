"""API endpoints for moderators working the review queue."""

from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Listing
from db.session import get_session
from repositories import ListingRepository
from routers.dependencies import http_error, review_workflow
from schemas import (
    ListingResponse,
    ModeratorReviewPayload,
    QualityReportResponse,
    ReviewQueueItem,
    ReviewQueuePage,
)
from services.content_filter import scan_listing_text
from services.quality_scorer import ScoringScheme, score_listing
from services.review_workflow import ModeratorReview, ReviewChecklist
from utils.error_handling import ReviewError

router = APIRouter(prefix="/moderation", tags=["moderation"])


def _queue_item(listing: Listing) -> ReviewQueueItem:
    report = score_listing(listing.snapshot(), ScoringScheme.BALANCED)
    return ReviewQueueItem(
        listing=ListingResponse.model_validate(listing),
        quality=QualityReportResponse.model_validate(report.to_dict()),
        content_warnings=scan_listing_text(listing.details),
    )


def _to_review(payload: ModeratorReviewPayload) -> ModeratorReview:
    checklist = payload.checklist
    return ModeratorReview(
        notes=payload.notes,
        checklist=ReviewChecklist(
            photo_authenticity=checklist.photo_authenticity,
            item_condition=checklist.item_condition,
            price_fairness=checklist.price_fairness,
            description_accuracy=checklist.description_accuracy,
            safety_compliance=checklist.safety_compliance,
        ),
        moderator_id=payload.moderator_id,
    )


@router.get("/queue", response_model=ReviewQueuePage)
async def review_queue(
    *,
    session: AsyncSession = Depends(get_session),
    limit: int = Query(25, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ReviewQueuePage:
    listings, total = await ListingRepository(session).list_review_queue(limit=limit, offset=offset)
    return ReviewQueuePage(
        total=total,
        limit=limit,
        offset=offset,
        items=[_queue_item(listing) for listing in listings],
    )


@router.get("/listings/{listing_id}", response_model=ReviewQueueItem)
async def get_listing_for_review(
    listing_id: int,
    session: AsyncSession = Depends(get_session),
) -> ReviewQueueItem:
    listing = await ListingRepository(session).get_by_id(listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return _queue_item(listing)


async def _decide(
    decision: Callable[..., Awaitable[Listing]],
    listing_id: int,
    payload: ModeratorReviewPayload,
) -> ListingResponse:
    try:
        listing = await decision(
            listing_id,
            _to_review(payload),
            expected_version=payload.expected_version,
        )
    except ReviewError as exc:
        raise http_error(exc) from exc
    return ListingResponse.model_validate(listing)


@router.post("/listings/{listing_id}/approve", response_model=ListingResponse)
async def approve_listing(
    listing_id: int,
    payload: ModeratorReviewPayload,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    return await _decide(review_workflow(request, session).approve_listing, listing_id, payload)


@router.post("/listings/{listing_id}/reject", response_model=ListingResponse)
async def reject_listing(
    listing_id: int,
    payload: ModeratorReviewPayload,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    return await _decide(review_workflow(request, session).reject_listing, listing_id, payload)


@router.post("/listings/{listing_id}/request-changes", response_model=ListingResponse)
async def request_changes(
    listing_id: int,
    payload: ModeratorReviewPayload,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    return await _decide(review_workflow(request, session).request_changes, listing_id, payload)
