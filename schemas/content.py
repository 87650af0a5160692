"""Pydantic schemas for the contact-information scan."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ContentScanRequest(BaseModel):
    text: str = Field(..., max_length=20000)


class ContentScanResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    has_personal_info: bool
    type: Optional[str] = None
    match: Optional[str] = None
    warning: Optional[str] = None
    redacted: str
