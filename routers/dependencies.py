"""Helpers shared by the lender and moderator routers."""

from __future__ import annotations

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from services.photo_inspection import PhotoInspector
from services.review_workflow import ReviewWorkflow
from utils.error_handling import ReviewError


def review_workflow(request: Request, session: AsyncSession) -> ReviewWorkflow:
    return ReviewWorkflow(
        session,
        event_bus=getattr(request.app.state, "event_bus", None),
        policy=getattr(request.app.state, "review_policy", None),
    )


def get_photo_inspector(request: Request) -> PhotoInspector:
    inspector = getattr(request.app.state, "photo_inspector", None)
    if inspector is None:
        raise HTTPException(status_code=503, detail="Photo inspection is not available")
    return inspector


def http_error(exc: ReviewError) -> HTTPException:
    """Map a domain error onto its HTTP status with the structured detail body."""
    return HTTPException(status_code=exc.http_status, detail=exc.to_dict())
