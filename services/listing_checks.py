"""Automated checks run against a listing when it is submitted for review.

Every helper here is pure: it takes plain listing documents and returns
``CheckResult`` values. Missing or malformed fields make a check fail, they
never raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Sequence

MIN_PHOTO_COUNT = 4
MIN_DESCRIPTION_LENGTH = 100
MAX_DAILY_RENTAL_PERCENT = 15
MIN_PHOTO_WIDTH = 1920
MIN_PHOTO_HEIGHT = 1080
MAX_PHOTO_BYTES = 5 * 1024 * 1024

REQUIRED_DETAIL_FIELDS = (
    "title",
    "description",
    "category",
    "brand",
    "size",
    "color",
    "fabric",
    "measurements",
    "careInstructions",
    "originalPrice",
)
MONEY_DETAIL_FIELDS = frozenset({"originalPrice"})


@dataclass(slots=True)
class CheckResult:
    passed: bool
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"passed": self.passed, "message": self.message}


@dataclass(slots=True)
class AutomatedChecks:
    """Outcome of the full submission battery."""

    photo_count: CheckResult
    photo_quality: Dict[str, CheckResult] = field(default_factory=dict)
    description_quality: Dict[str, CheckResult] = field(default_factory=dict)
    pricing_validation: CheckResult = field(default_factory=lambda: CheckResult(False))

    @property
    def passed(self) -> bool:
        leaves = [self.photo_count, self.pricing_validation]
        leaves.extend(self.photo_quality.values())
        leaves.extend(self.description_quality.values())
        return all(leaf.passed for leaf in leaves)

    def failed_checks(self) -> list[str]:
        """Dotted names of every failing check, in battery order."""
        failed = []
        for name, group in self.to_dict().items():
            if "passed" in group:
                if not group["passed"]:
                    failed.append(name)
                continue
            failed.extend(f"{name}.{sub}" for sub, leaf in group.items() if not leaf["passed"])
        return failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "photoCount": self.photo_count.to_dict(),
            "photoQuality": {name: check.to_dict() for name, check in self.photo_quality.items()},
            "descriptionQuality": {
                name: check.to_dict() for name, check in self.description_quality.items()
            },
            "pricingValidation": self.pricing_validation.to_dict(),
        }


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def as_sequence(value: Any) -> Sequence[Any]:
    if isinstance(value, (list, tuple)):
        return value
    return ()


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def is_present(value: Any) -> bool:
    """A required field counts as filled when it carries a non-empty value."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, Mapping):
        return any(is_present(item) for item in value.values())
    if isinstance(value, (list, tuple, set)):
        return len(value) > 0
    return True


def check_photo_count(photos: Any) -> CheckResult:
    return CheckResult(
        passed=len(as_sequence(photos)) >= MIN_PHOTO_COUNT,
        message=f"Minimum {MIN_PHOTO_COUNT} photos required",
    )


def validate_image(
    width: Optional[int],
    height: Optional[int],
    file_size: Optional[int],
    *,
    min_width: int = MIN_PHOTO_WIDTH,
    min_height: int = MIN_PHOTO_HEIGHT,
    max_bytes: int = MAX_PHOTO_BYTES,
) -> Dict[str, CheckResult]:
    """Resolution and file size rules for a single image.

    Unknown dimensions or size fail the corresponding rule.
    """
    resolution_ok = (
        width is not None and height is not None and width >= min_width and height >= min_height
    )
    size_ok = file_size is not None and file_size <= max_bytes
    return {
        "resolution": CheckResult(
            passed=resolution_ok,
            message=f"Image must be at least {min_width}x{min_height} pixels",
        ),
        "fileSize": CheckResult(
            passed=size_ok,
            message=f"Image must be under {max_bytes // (1024 * 1024)}MB",
        ),
    }


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def check_lighting(photos: Sequence[Any]) -> CheckResult:
    # Stub: needs image-content analysis; always passes.
    return CheckResult(passed=True, message="")


def check_background(photos: Sequence[Any]) -> CheckResult:
    # Stub: needs image-content analysis; always passes.
    return CheckResult(passed=True, message="")


def check_photo_quality(photos: Any) -> Dict[str, CheckResult]:
    """Per-photo rules for the photos whose metadata was recorded at upload.

    Photos that carry no width/height/size were never measured and are not
    held against the listing; measured photos must satisfy ``validate_image``.
    """
    items = [as_mapping(photo) for photo in as_sequence(photos)]

    resolution_ok = True
    size_ok = True
    for photo in items:
        width = _int_or_none(photo.get("width"))
        height = _int_or_none(photo.get("height"))
        size = _int_or_none(photo.get("size"))
        if (width is not None or height is not None) and (
            width is None
            or height is None
            or width < MIN_PHOTO_WIDTH
            or height < MIN_PHOTO_HEIGHT
        ):
            resolution_ok = False
        if size is not None and size > MAX_PHOTO_BYTES:
            size_ok = False

    return {
        "resolution": CheckResult(
            passed=resolution_ok,
            message=f"Image must be at least {MIN_PHOTO_WIDTH}x{MIN_PHOTO_HEIGHT} pixels",
        ),
        "fileSize": CheckResult(
            passed=size_ok,
            message=f"Image must be under {MAX_PHOTO_BYTES // (1024 * 1024)}MB",
        ),
        "lighting": check_lighting(items),
        "background": check_background(items),
    }


def validate_description(details: Any) -> Dict[str, CheckResult]:
    data = as_mapping(details)
    description = data.get("description")
    length = len(description) if isinstance(description, str) else 0
    return {
        "length": CheckResult(
            passed=length >= MIN_DESCRIPTION_LENGTH,
            message=f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters",
        ),
        "requiredFields": CheckResult(
            passed=not missing_detail_fields(data),
            message="All required fields must be filled",
        ),
    }


def _detail_present(name: str, value: Any) -> bool:
    # money may arrive as a JSON number or a numeric string; "0" is no price
    if name in MONEY_DETAIL_FIELDS:
        number = to_decimal(value)
        return number is not None and number != 0
    return is_present(value)


def missing_detail_fields(details: Any) -> list[str]:
    data = as_mapping(details)
    return [name for name in REQUIRED_DETAIL_FIELDS if not _detail_present(name, data.get(name))]


def validate_pricing(pricing: Any, original_price: Any) -> CheckResult:
    message = f"Daily rental price cannot exceed {MAX_DAILY_RENTAL_PERCENT}% of original price"
    daily = to_decimal(as_mapping(pricing).get("dailyRate"))
    original = to_decimal(original_price)
    if daily is None or original is None:
        return CheckResult(passed=False, message=message)

    max_rental_price = original * MAX_DAILY_RENTAL_PERCENT / 100
    return CheckResult(passed=daily <= max_rental_price, message=message)


def run_automated_checks(listing: Mapping[str, Any]) -> AutomatedChecks:
    """Run the full submission battery on a listing snapshot."""
    snapshot = as_mapping(listing)
    details = as_mapping(snapshot.get("details"))
    photos = snapshot.get("photos")

    return AutomatedChecks(
        photo_count=check_photo_count(photos),
        photo_quality=check_photo_quality(photos),
        description_quality=validate_description(details),
        pricing_validation=validate_pricing(snapshot.get("pricing"), details.get("originalPrice")),
    )
