"""Listing quality scoring.

Two weightings are in use. ``weighted`` (photos 40, description 30,
condition 20, safety 10) produces the ``qualityScore`` stored when a listing
is submitted. ``balanced`` (four categories of 25 points) drives the quality
panel shown to lenders and moderators. Both are pure and never raise: a
missing or malformed part of the listing scores zero in its category.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Tuple

from services.listing_checks import as_mapping, as_sequence


class ScoringScheme(str, Enum):
    WEIGHTED = "weighted"
    BALANCED = "balanced"


@dataclass(slots=True)
class QualityReport:
    total_score: int
    breakdown: Dict[str, float]
    improvements: List[str] = field(default_factory=list)
    scheme: ScoringScheme = ScoringScheme.WEIGHTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalScore": self.total_score,
            "breakdown": dict(self.breakdown),
            "improvements": list(self.improvements),
            "scheme": self.scheme.value,
        }


@dataclass(frozen=True, slots=True)
class CategoryRule:
    name: str
    maximum: float
    threshold: float
    suggestion: str
    scorer: Callable[[Mapping[str, Any]], float]


WEIGHTED_CONDITION_POINTS = {
    "new": 20,
    "like_new": 18,
    "excellent": 15,
    "good": 12,
    "fair": 8,
}

BALANCED_CONDITION_POINTS = {
    "new": 25,
    "like_new": 20,
    "excellent": 15,
    "good": 10,
}
BALANCED_CONDITION_DEFAULT = 5


def _flag(section: Mapping[str, Any], key: str) -> bool:
    return section.get(key) is True


def _description(listing: Mapping[str, Any]) -> str:
    value = as_mapping(listing.get("details")).get("description")
    return value if isinstance(value, str) else ""


def _condition(listing: Mapping[str, Any]) -> Any:
    return as_mapping(listing.get("details")).get("condition")


# weighted scheme

def _weighted_photos(listing: Mapping[str, Any]) -> float:
    return min(len(as_sequence(listing.get("photos"))) * 8, 40)


def _weighted_description(listing: Mapping[str, Any]) -> float:
    return min(len(_description(listing)) / 20, 30)


def _weighted_condition(listing: Mapping[str, Any]) -> float:
    condition = _condition(listing)
    if not isinstance(condition, str):
        return 0
    return WEIGHTED_CONDITION_POINTS.get(condition, 0)


def _weighted_safety(listing: Mapping[str, Any]) -> float:
    safety = as_mapping(listing.get("safetyInfo"))
    score = 0
    if _flag(safety, "allergenFree"):
        score += 5
    storage = safety.get("storageMethod")
    if isinstance(storage, str) and storage.strip():
        score += 5
    return score


# balanced scheme

def _balanced_photos(listing: Mapping[str, Any]) -> float:
    photos = listing.get("photos")
    if not isinstance(photos, (list, tuple)):
        return 0
    score = min(len(photos) * 2, 10)
    checks = as_mapping(listing.get("photoQualityChecks"))
    if _flag(checks, "hasWhiteBackground"):
        score += 4
    if _flag(checks, "hasGoodLighting"):
        score += 4
    if _flag(checks, "hasMultipleAngles"):
        score += 4
    if _flag(checks, "isWellPressed"):
        score += 3
    return score


def _balanced_description(listing: Mapping[str, Any]) -> float:
    description = _description(listing)
    if not description:
        return 0
    score = min(len(description.split(" ")) / 10, 10)
    checks = as_mapping(listing.get("descriptionChecks"))
    for key in ("hasSizeInfo", "hasMaterialInfo", "hasCareInstructions"):
        if _flag(checks, key):
            score += 5
    return score


def _balanced_condition(listing: Mapping[str, Any]) -> float:
    condition = _condition(listing)
    if not condition:
        return 0
    if not isinstance(condition, str):
        return BALANCED_CONDITION_DEFAULT
    return BALANCED_CONDITION_POINTS.get(condition, BALANCED_CONDITION_DEFAULT)


def _balanced_maintenance(listing: Mapping[str, Any]) -> float:
    maintenance = as_mapping(listing.get("maintenance"))
    score = 0
    if _flag(maintenance, "isDryCleaned"):
        score += 10
    if _flag(maintenance, "isPressed"):
        score += 10
    if _flag(maintenance, "hasRecentCleaning"):
        score += 5
    return score


PHOTO_SUGGESTION = "Add more high-quality photos with white background and multiple angles"
DESCRIPTION_SUGGESTION = (
    "Enhance description with size details, material information, and care instructions"
)
CONDITION_SUGGESTION = "Consider having the item professionally cleaned or repaired"

SCHEME_RULES: Dict[ScoringScheme, Tuple[CategoryRule, ...]] = {
    ScoringScheme.WEIGHTED: (
        CategoryRule("photos", 40, 32, PHOTO_SUGGESTION, _weighted_photos),
        CategoryRule("description", 30, 24, DESCRIPTION_SUGGESTION, _weighted_description),
        CategoryRule("condition", 20, 12, CONDITION_SUGGESTION, _weighted_condition),
        CategoryRule(
            "safety",
            10,
            8,
            "Confirm the item is allergen-free and describe how it is stored",
            _weighted_safety,
        ),
    ),
    ScoringScheme.BALANCED: (
        CategoryRule("photos", 25, 20, PHOTO_SUGGESTION, _balanced_photos),
        CategoryRule("description", 25, 20, DESCRIPTION_SUGGESTION, _balanced_description),
        CategoryRule("condition", 25, 15, CONDITION_SUGGESTION, _balanced_condition),
        CategoryRule(
            "maintenance",
            25,
            20,
            "Ensure item is freshly cleaned and pressed before listing",
            _balanced_maintenance,
        ),
    ),
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_listing(
    listing: Any,
    scheme: ScoringScheme | str = ScoringScheme.WEIGHTED,
) -> QualityReport:
    """Score a listing snapshot and list the improvements worth making."""
    scheme = ScoringScheme(scheme)
    snapshot = as_mapping(listing)

    breakdown: Dict[str, float] = {}
    improvements: List[str] = []
    for rule in SCHEME_RULES[scheme]:
        points = max(0.0, min(float(rule.scorer(snapshot)), float(rule.maximum)))
        breakdown[rule.name] = round(points, 2)
        if points < rule.threshold:
            improvements.append(rule.suggestion)

    total = _round_half_up(sum(breakdown.values()))
    return QualityReport(
        total_score=max(0, min(total, 100)),
        breakdown=breakdown,
        improvements=improvements,
        scheme=scheme,
    )


def calculate_quality_score(listing: Any) -> int:
    """Score stored on the listing at submission time."""
    return score_listing(listing, ScoringScheme.WEIGHTED).total_score
