from decimal import Decimal

import pytest

from services.listing_checks import (
    REQUIRED_DETAIL_FIELDS,
    check_photo_count,
    check_photo_quality,
    is_present,
    missing_detail_fields,
    run_automated_checks,
    to_decimal,
    validate_description,
    validate_image,
    validate_pricing,
)


def complete_details(**overrides) -> dict:
    details = {
        "title": "Emerald silk evening gown",
        "description": "Floor-length bias-cut gown in emerald silk charmeuse. " * 3,
        "category": "dresses",
        "brand": "Reformation",
        "size": "M",
        "color": "emerald",
        "fabric": "silk",
        "condition": "like_new",
        "measurements": {"bust": 34, "waist": 28, "length": 58},
        "careInstructions": "Dry clean only",
        "originalPrice": 100,
    }
    details.update(overrides)
    return details


def make_listing(*, photo_count: int = 5, daily_rate=10, **details) -> dict:
    return {
        "details": complete_details(**details),
        "photos": [{"url": f"https://img.example.com/{i}.jpg", "type": "front"} for i in range(photo_count)],
        "pricing": {"dailyRate": daily_rate},
    }


def test_complete_listing_passes_every_check():
    checks = run_automated_checks(make_listing())

    assert checks.passed is True
    assert checks.failed_checks() == []
    payload = checks.to_dict()
    assert set(payload) == {"photoCount", "photoQuality", "descriptionQuality", "pricingValidation"}
    assert set(payload["photoQuality"]) == {"resolution", "fileSize", "lighting", "background"}
    assert set(payload["descriptionQuality"]) == {"length", "requiredFields"}


def test_weak_listing_reports_each_failure():
    listing = make_listing(photo_count=2, daily_rate=50, description="Pretty dress, worn 1x", condition="fair")

    checks = run_automated_checks(listing)

    assert checks.passed is False
    assert checks.failed_checks() == [
        "photoCount",
        "descriptionQuality.length",
        "pricingValidation",
    ]
    assert checks.photo_count.message == "Minimum 4 photos required"
    assert checks.pricing_validation.message == "Daily rental price cannot exceed 15% of original price"


@pytest.mark.parametrize("count, passed", [(0, False), (3, False), (4, True), (12, True)])
def test_photo_count_threshold(count, passed):
    assert check_photo_count([{"url": "x"}] * count).passed is passed


def test_photo_count_tolerates_missing_photos():
    assert check_photo_count(None).passed is False
    assert check_photo_count("photo.jpg").passed is False


@pytest.mark.parametrize(
    "daily, original, passed",
    [
        ("15", "100", True),
        ("15.01", "100", False),
        (Decimal("15.00"), 100, True),
        (0, 100, True),
        ("15", "99.99", False),
        (None, 100, False),
        ("abc", 100, False),
        (10, None, False),
        (10, "", False),
    ],
)
def test_pricing_validation_uses_exact_decimals(daily, original, passed):
    assert validate_pricing({"dailyRate": daily}, original).passed is passed


def test_description_length_boundary():
    assert validate_description(complete_details(description="d" * 99))["length"].passed is False
    assert validate_description(complete_details(description="d" * 100))["length"].passed is True


def test_required_fields_reject_blank_values():
    details = complete_details(brand="   ", measurements={}, originalPrice=0)

    result = validate_description(details)

    assert result["requiredFields"].passed is False
    assert missing_detail_fields(details) == ["brand", "measurements", "originalPrice"]


@pytest.mark.parametrize("name", REQUIRED_DETAIL_FIELDS)
def test_each_required_field_is_enforced_when_absent(name):
    details = complete_details()
    del details[name]

    assert validate_description(details)["requiredFields"].passed is False
    assert missing_detail_fields(details) == [name]
    assert run_automated_checks({**make_listing(), "details": details}).passed is False


@pytest.mark.parametrize("name", REQUIRED_DETAIL_FIELDS)
def test_each_required_field_is_enforced_when_blank(name):
    details = complete_details(**{name: ""})

    assert validate_description(details)["requiredFields"].passed is False
    assert missing_detail_fields(details) == [name]


@pytest.mark.parametrize("price", [0, "0", "0.00", " ", "n/a"])
def test_unusable_original_price_counts_as_missing(price):
    assert missing_detail_fields(complete_details(originalPrice=price)) == ["originalPrice"]


def test_zero_size_is_a_real_size():
    assert missing_detail_fields(complete_details(size="0")) == []


def test_missing_detail_fields_on_malformed_details():
    assert missing_detail_fields(None) == [
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
    ]


def test_photo_quality_ignores_unmeasured_photos():
    result = check_photo_quality([{"url": "a"}, {"url": "b"}])

    assert all(check.passed for check in result.values())


def test_photo_quality_fails_on_small_or_heavy_photos():
    photos = [
        {"url": "a", "width": 1920, "height": 1080, "size": 400_000},
        {"url": "b", "width": 640, "height": 480, "size": 6 * 1024 * 1024},
    ]

    result = check_photo_quality(photos)

    assert result["resolution"].passed is False
    assert result["resolution"].message == "Image must be at least 1920x1080 pixels"
    assert result["fileSize"].passed is False
    assert result["fileSize"].message == "Image must be under 5MB"
    assert result["lighting"].passed is True
    assert result["background"].passed is True


def test_measured_photos_feed_the_submission_battery():
    listing = make_listing()
    listing["photos"][0].update({"width": 800, "height": 600, "size": 120_000})

    checks = run_automated_checks(listing)

    assert checks.failed_checks() == ["photoQuality.resolution"]


def test_validate_image_thresholds():
    ok = validate_image(1920, 1080, 5 * 1024 * 1024)
    too_small = validate_image(1919, 1080, 1024)
    unknown = validate_image(None, None, None)

    assert ok["resolution"].passed and ok["fileSize"].passed
    assert too_small["resolution"].passed is False
    assert too_small["fileSize"].passed is True
    assert unknown["resolution"].passed is False
    assert unknown["fileSize"].passed is False


def test_custom_image_limits_appear_in_messages():
    result = validate_image(800, 600, 3 * 1024 * 1024, min_width=1024, min_height=768, max_bytes=2 * 1024 * 1024)

    assert result["resolution"].message == "Image must be at least 1024x768 pixels"
    assert result["fileSize"].message == "Image must be under 2MB"


@pytest.mark.parametrize(
    "value, present",
    [
        ("gown", True),
        ("", False),
        ("  ", False),
        (None, False),
        (0, False),
        (12.5, True),
        (False, False),
        ([], False),
        (["a"], True),
        ({"bust": None}, False),
        ({"bust": 34}, True),
    ],
)
def test_is_present(value, present):
    assert is_present(value) is present


def test_to_decimal_rejects_non_numbers():
    assert to_decimal("12.50") == Decimal("12.50")
    assert to_decimal(True) is None
    assert to_decimal("NaN") is None
    assert to_decimal("twelve") is None
