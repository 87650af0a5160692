"""Pydantic schemas for rental listings and their review."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from services.quality_scorer import ScoringScheme

CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _money_to_number(value: Decimal) -> Union[int, float]:
    return int(value) if value == value.to_integral_value() else float(value)


# stored documents keep prices as JSON numbers, never as strings
Money = Annotated[Decimal, PlainSerializer(_money_to_number, when_used="json")]


class Condition(str, Enum):
    NEW = "new"
    LIKE_NEW = "like_new"
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"


class PhotoType(str, Enum):
    FRONT = "front"
    BACK = "back"
    DETAIL = "detail"
    OTHER = "other"


class ListingDetails(BaseModel):
    model_config = CAMEL_CONFIG

    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    fabric: Optional[str] = None
    condition: Optional[Condition] = None
    original_price: Optional[Money] = Field(None, ge=0)
    care_instructions: Optional[str] = None
    measurements: Optional[Union[str, Dict[str, Any]]] = None


class Photo(BaseModel):
    model_config = CAMEL_CONFIG

    url: str = Field(..., min_length=1)
    type: PhotoType = PhotoType.OTHER
    width: Optional[int] = Field(None, ge=0)
    height: Optional[int] = Field(None, ge=0)
    size: Optional[int] = Field(None, ge=0)


class Pricing(BaseModel):
    model_config = CAMEL_CONFIG

    daily_rate: Optional[Money] = Field(None, ge=0)
    weekly_rate: Optional[Money] = Field(None, ge=0)
    event_rate: Optional[Money] = Field(None, ge=0)
    security_deposit: Optional[Money] = Field(None, ge=0)
    cleaning_fee: Optional[Money] = Field(None, ge=0)


class SafetyInfo(BaseModel):
    model_config = CAMEL_CONFIG

    allergen_free: Optional[bool] = None
    storage_method: Optional[str] = None


class PhotoQualityChecks(BaseModel):
    model_config = CAMEL_CONFIG

    has_white_background: Optional[bool] = None
    has_good_lighting: Optional[bool] = None
    has_multiple_angles: Optional[bool] = None
    is_well_pressed: Optional[bool] = None


class DescriptionChecks(BaseModel):
    model_config = CAMEL_CONFIG

    has_size_info: Optional[bool] = None
    has_material_info: Optional[bool] = None
    has_care_instructions: Optional[bool] = None


class Maintenance(BaseModel):
    model_config = CAMEL_CONFIG

    is_dry_cleaned: Optional[bool] = None
    is_pressed: Optional[bool] = None
    has_recent_cleaning: Optional[bool] = None


DOCUMENT_SECTIONS = (
    "details",
    "pricing",
    "safety_info",
    "photo_quality_checks",
    "description_checks",
    "maintenance",
)


def _document(model: Optional[BaseModel], *, partial: bool) -> Optional[Dict[str, Any]]:
    if model is None:
        return None
    return model.model_dump(mode="json", by_alias=True, exclude_none=not partial, exclude_unset=partial)


class ListingBase(BaseModel):
    model_config = CAMEL_CONFIG

    details: Optional[ListingDetails] = None
    photos: Optional[List[Photo]] = None
    pricing: Optional[Pricing] = None
    safety_info: Optional[SafetyInfo] = None
    photo_quality_checks: Optional[PhotoQualityChecks] = None
    description_checks: Optional[DescriptionChecks] = None
    maintenance: Optional[Maintenance] = None

    def to_documents(self, *, partial: bool = False) -> Dict[str, Any]:
        """Convert the payload into the camelCase documents stored on the listing."""

        fields_set = self.model_fields_set
        documents: Dict[str, Any] = {}
        for name in DOCUMENT_SECTIONS:
            if partial and name not in fields_set:
                continue
            documents[name] = _document(getattr(self, name), partial=partial)
        if not partial or "photos" in fields_set:
            if self.photos is not None:
                documents["photos"] = [
                    photo.model_dump(mode="json", by_alias=True, exclude_none=True) for photo in self.photos
                ]
        return documents


class ListingCreate(ListingBase):
    """Payload for creating a draft listing."""

    owner_id: str = Field(..., min_length=1, max_length=64)


class ListingUpdate(ListingBase):
    """Partial lender edit; nested documents are merged key by key."""

    expected_version: Optional[int] = Field(None, ge=1)


class PhotoCreate(BaseModel):
    model_config = CAMEL_CONFIG

    url: str = Field(..., min_length=1)
    type: PhotoType = PhotoType.OTHER
    expected_version: Optional[int] = Field(None, ge=1)


class ListingResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    owner_id: str
    status: str
    details: Dict[str, Any] = Field(default_factory=dict)
    photos: List[Dict[str, Any]] = Field(default_factory=list)
    pricing: Dict[str, Any] = Field(default_factory=dict)
    safety_info: Dict[str, Any] = Field(default_factory=dict)
    photo_quality_checks: Optional[Dict[str, Any]] = None
    description_checks: Optional[Dict[str, Any]] = None
    maintenance: Optional[Dict[str, Any]] = None
    automated_checks: Optional[Dict[str, Any]] = None
    quality_score: Optional[int] = None
    moderator_review: Optional[Dict[str, Any]] = None
    version: int
    submission_count: int = 0
    created_at: datetime
    updated_at: datetime
    submitted_at: Optional[datetime] = None
    published_at: Optional[datetime] = None


class ListingPage(BaseModel):
    total: int
    limit: int
    offset: int
    items: List[ListingResponse]


class SubmissionResponse(BaseModel):
    model_config = CAMEL_CONFIG

    status: str
    checks: Dict[str, Any]
    quality_score: int
    listing: ListingResponse


class QualityReportResponse(BaseModel):
    model_config = CAMEL_CONFIG

    total_score: int = Field(..., ge=0, le=100)
    breakdown: Dict[str, float]
    improvements: List[str]
    scheme: ScoringScheme


class ReviewChecklistPayload(BaseModel):
    model_config = CAMEL_CONFIG

    photo_authenticity: bool = False
    item_condition: bool = False
    price_fairness: bool = False
    description_accuracy: bool = False
    safety_compliance: bool = False


class ModeratorReviewPayload(BaseModel):
    model_config = CAMEL_CONFIG

    notes: str = ""
    checklist: ReviewChecklistPayload = Field(default_factory=ReviewChecklistPayload)
    moderator_id: Optional[str] = Field(None, max_length=64)
    expected_version: Optional[int] = Field(None, ge=1)


class ReviewQueueItem(BaseModel):
    model_config = CAMEL_CONFIG

    listing: ListingResponse
    quality: QualityReportResponse
    content_warnings: List[str] = Field(default_factory=list)


class ReviewQueuePage(BaseModel):
    total: int
    limit: int
    offset: int
    items: List[ReviewQueueItem]
