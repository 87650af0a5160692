"""Contact-information scan for lender-written text."""

from __future__ import annotations

from fastapi import APIRouter

from schemas import ContentScanRequest, ContentScanResponse
from services.content_filter import detect_personal_info, redact_personal_info

router = APIRouter(prefix="/content", tags=["content"])


@router.post("/scan", response_model=ContentScanResponse)
async def scan_content(payload: ContentScanRequest) -> ContentScanResponse:
    result = detect_personal_info(payload.text)
    return ContentScanResponse(
        has_personal_info=result.has_personal_info,
        type=result.kind,
        match=result.match,
        warning=result.warning,
        redacted=redact_personal_info(payload.text),
    )
