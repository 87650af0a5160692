"""API endpoints for lenders: create, edit, submit and browse rental listings."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import get_session
from repositories import ListingRepository
from routers.dependencies import get_photo_inspector, http_error, review_workflow
from schemas import (
    ListingCreate,
    ListingPage,
    ListingResponse,
    ListingUpdate,
    PhotoCreate,
    QualityReportResponse,
    SubmissionResponse,
)
from services.quality_scorer import ScoringScheme, score_listing
from services.review_workflow import APPROVED
from utils.error_handling import ReviewError

router = APIRouter(prefix="/listings", tags=["listings"])


async def _get_listing_or_404(session: AsyncSession, listing_id: int):
    listing = await ListingRepository(session).get_by_id(listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return listing


@router.post("", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    payload: ListingCreate,
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    repo = ListingRepository(session)
    listing = await repo.create_listing(owner_id=payload.owner_id, **payload.to_documents())
    await session.commit()
    return ListingResponse.model_validate(listing)


@router.get("", response_model=ListingPage)
async def browse_listings(
    *,
    session: AsyncSession = Depends(get_session),
    limit: int = Query(25, ge=1, le=100),
    offset: int = Query(0, ge=0),
    category: str | None = Query(None, description="Filter by clothing category"),
    search: str | None = Query(None, description="Search in title and description"),
) -> ListingPage:
    """Public catalogue; only approved listings are visible."""

    listings, total = await ListingRepository(session).list_listings(
        limit=limit,
        offset=offset,
        status=APPROVED,
        category=category,
        search_term=search,
    )
    items = [ListingResponse.model_validate(listing) for listing in listings]
    return ListingPage(total=total, limit=limit, offset=offset, items=items)


@router.get("/owners/{owner_id}", response_model=ListingPage)
async def list_owner_listings(
    owner_id: str,
    *,
    session: AsyncSession = Depends(get_session),
    limit: int = Query(25, ge=1, le=100),
    offset: int = Query(0, ge=0),
    listing_status: str | None = Query(None, alias="status"),
) -> ListingPage:
    listings, total = await ListingRepository(session).list_listings(
        limit=limit,
        offset=offset,
        owner_id=owner_id,
        status=listing_status,
    )
    items = [ListingResponse.model_validate(listing) for listing in listings]
    return ListingPage(total=total, limit=limit, offset=offset, items=items)


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: int,
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    listing = await _get_listing_or_404(session, listing_id)
    if listing.status != APPROVED:
        raise HTTPException(status_code=404, detail="Listing not found")
    return ListingResponse.model_validate(listing)


@router.patch("/{listing_id}", response_model=ListingResponse)
async def update_listing(
    listing_id: int,
    payload: ListingUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    try:
        listing = await review_workflow(request, session).update_listing(
            listing_id,
            payload.to_documents(partial=True),
            expected_version=payload.expected_version,
        )
    except ReviewError as exc:
        raise http_error(exc) from exc
    return ListingResponse.model_validate(listing)


@router.post("/{listing_id}/photos", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def add_photo(
    listing_id: int,
    payload: PhotoCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ListingResponse:
    """Measure the photo and attach it with its dimensions and file size."""

    inspector = get_photo_inspector(request)
    try:
        listing = await review_workflow(request, session).attach_photo(
            listing_id,
            {"url": payload.url, "type": payload.type.value},
            inspector=inspector,
            expected_version=payload.expected_version,
        )
    except ReviewError as exc:
        raise http_error(exc) from exc
    return ListingResponse.model_validate(listing)


@router.post("/{listing_id}/submit", response_model=SubmissionResponse)
async def submit_listing(
    listing_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    expected_version: int | None = Query(None, ge=1),
) -> SubmissionResponse:
    try:
        result = await review_workflow(request, session).submit_for_review(
            listing_id,
            expected_version=expected_version,
        )
    except ReviewError as exc:
        raise http_error(exc) from exc
    return SubmissionResponse(
        status=result.status,
        checks=result.checks,
        quality_score=result.quality_score,
        listing=ListingResponse.model_validate(result.listing),
    )


@router.get("/{listing_id}/quality", response_model=QualityReportResponse)
async def get_listing_quality(
    listing_id: int,
    session: AsyncSession = Depends(get_session),
    scheme: ScoringScheme = Query(ScoringScheme.BALANCED),
) -> QualityReportResponse:
    listing = await _get_listing_or_404(session, listing_id)
    report = score_listing(listing.snapshot(), scheme)
    return QualityReportResponse.model_validate(report.to_dict())
