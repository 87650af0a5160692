import io
import os
from typing import Optional

import pytest

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

pytest.importorskip("sqlalchemy")
httpx = pytest.importorskip("httpx")

from PIL import Image  # noqa: E402

from db import init_db, get_session_factory, reset_database_state  # noqa: E402
from main import app  # noqa: E402
from repositories import NotificationRepository  # noqa: E402
from services.listing_checks import run_automated_checks  # noqa: E402
from services.photo_inspection import PhotoInspector  # noqa: E402
from services.review_workflow import ReviewPolicy  # noqa: E402

DESCRIPTION = (
    "Floor-length bias-cut gown in emerald silk charmeuse with a cowl neckline "
    "and low back, worn once to a summer wedding"
)

FULL_CHECKLIST = {
    "photoAuthenticity": True,
    "itemCondition": True,
    "priceFairness": True,
    "descriptionAccuracy": True,
    "safetyCompliance": True,
}


def create_image_bytes(width: int, height: int) -> bytes:
    image = Image.new("RGB", (width, height), color="white")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


IMAGES = {
    "https://img.example.com/hd.png": create_image_bytes(1920, 1080),
    "https://img.example.com/small.png": create_image_bytes(640, 480),
}


async def fetch_image(url: str) -> Optional[bytes]:
    return IMAGES.get(url)


def listing_payload(*, photo_count: int = 5, description: str = DESCRIPTION, daily_rate=10, condition="like_new"):
    return {
        "ownerId": "lender-1",
        "details": {
            "title": "Emerald silk evening gown",
            "description": description,
            "category": "dresses",
            "brand": "Reformation",
            "size": "M",
            "color": "emerald",
            "fabric": "silk",
            "condition": condition,
            "originalPrice": 100,
            "careInstructions": "Dry clean only",
            "measurements": {"bust": 34, "waist": 28, "length": 58},
        },
        "photos": [{"url": f"https://img.example.com/{i}.jpg", "type": "front"} for i in range(photo_count)],
        "pricing": {"dailyRate": daily_rate, "securityDeposit": 50},
        "safetyInfo": {"allergenFree": True, "storageMethod": "Garment bag"},
    }


@pytest.fixture()
async def client():
    await reset_database_state()
    await init_db()
    app.state.review_policy = ReviewPolicy()
    app.state.photo_inspector = PhotoInspector(image_fetcher=fetch_image)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


async def create_listing(client, **kwargs) -> dict:
    response = await client.post("/listings", json=listing_payload(**kwargs))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_listing_lifecycle_from_draft_to_public(client):
    created = await create_listing(client)
    listing_id = created["id"]
    assert created["status"] == "draft"
    assert created["version"] == 1
    assert created["ownerId"] == "lender-1"
    assert created["details"]["originalPrice"] == 100
    assert created["safetyInfo"] == {"allergenFree": True, "storageMethod": "Garment bag"}

    browse = await client.get("/listings")
    assert browse.json()["total"] == 0
    assert (await client.get(f"/listings/{listing_id}")).status_code == 404

    owned = await client.get("/listings/owners/lender-1")
    assert owned.json()["total"] == 1

    submitted = await client.post(f"/listings/{listing_id}/submit")
    assert submitted.status_code == 200
    body = submitted.json()
    assert body["status"] == "in_review"
    assert body["qualityScore"] == 74
    assert body["checks"]["pricingValidation"]["passed"] is True
    assert body["listing"]["version"] == 2

    queue = await client.get("/moderation/queue")
    assert queue.status_code == 200
    items = queue.json()["items"]
    assert [item["listing"]["id"] for item in items] == [listing_id]
    assert items[0]["quality"]["scheme"] == "balanced"
    assert items[0]["contentWarnings"] == []

    approved = await client.post(
        f"/moderation/listings/{listing_id}/approve",
        json={"notes": "Verified", "checklist": FULL_CHECKLIST, "moderatorId": "mod-1", "expectedVersion": 2},
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["moderatorReview"]["decision"] == "approved"
    assert approved.json()["publishedAt"] is not None

    browse = await client.get("/listings", params={"category": "dresses"})
    assert browse.json()["total"] == 1
    public = await client.get(f"/listings/{listing_id}")
    assert public.status_code == 200
    assert public.json()["status"] == "approved"

    edit = await client.patch(f"/listings/{listing_id}", json={"details": {"brand": "Rixo"}})
    assert edit.status_code == 409
    assert edit.json()["detail"]["category"] == "conflict"


@pytest.mark.asyncio
async def test_weak_listing_needs_changes(client):
    created = await create_listing(client, photo_count=2, description="Pretty dress, worn 1x", daily_rate=50, condition="fair")

    response = await client.post(f"/listings/{created['id']}/submit")

    body = response.json()
    assert body["status"] == "needs_changes"
    assert body["checks"]["photoCount"] == {"passed": False, "message": "Minimum 4 photos required"}
    assert body["checks"]["descriptionQuality"]["length"]["passed"] is False
    assert body["checks"]["pricingValidation"]["passed"] is False
    assert (await client.get("/moderation/queue")).json()["total"] == 0


@pytest.mark.asyncio
async def test_owner_can_edit_draft_with_version_check(client):
    created = await create_listing(client)
    listing_id = created["id"]

    edited = await client.patch(
        f"/listings/{listing_id}",
        json={"details": {"brand": "Rixo"}, "pricing": {"weeklyRate": 45}, "expectedVersion": 1},
    )
    assert edited.status_code == 200
    body = edited.json()
    assert body["version"] == 2
    assert body["details"]["brand"] == "Rixo"
    assert body["details"]["title"] == "Emerald silk evening gown"
    assert body["pricing"]["dailyRate"] == 10
    assert body["pricing"]["weeklyRate"] == 45

    stale = await client.patch(f"/listings/{listing_id}", json={"details": {"brand": "Ganni"}, "expectedVersion": 1})
    assert stale.status_code == 409


@pytest.mark.asyncio
async def test_stale_moderator_decision_is_refused(client):
    created = await create_listing(client)
    listing_id = created["id"]
    await client.post(f"/listings/{listing_id}/submit")

    response = await client.post(
        f"/moderation/listings/{listing_id}/reject",
        json={"notes": "Stained", "expectedVersion": 1},
    )
    assert response.status_code == 409

    current = await client.get(f"/moderation/listings/{listing_id}")
    assert current.json()["listing"]["status"] == "in_review"
    assert current.json()["listing"]["moderatorReview"] is None


@pytest.mark.asyncio
async def test_request_changes_and_enforced_checklist(client):
    created = await create_listing(client)
    listing_id = created["id"]
    await client.post(f"/listings/{listing_id}/submit")

    app.state.review_policy = ReviewPolicy(enforce_checklist=True)
    incomplete = await client.post(
        f"/moderation/listings/{listing_id}/request-changes",
        json={"notes": "", "checklist": {"photoAuthenticity": True}},
    )
    assert incomplete.status_code == 422
    assert incomplete.json()["detail"]["category"] == "validation"

    complete = await client.post(
        f"/moderation/listings/{listing_id}/request-changes",
        json={"notes": "Please add a label photo", "checklist": FULL_CHECKLIST, "moderatorId": "mod-2"},
    )
    assert complete.status_code == 200
    assert complete.json()["status"] == "needs_changes"
    assert complete.json()["moderatorReview"]["notes"] == "Please add a label photo"


@pytest.mark.asyncio
async def test_unknown_listing_returns_404(client):
    assert (await client.post("/listings/999/submit")).status_code == 404
    assert (await client.get("/listings/999/quality")).status_code == 404
    assert (await client.get("/moderation/listings/999")).status_code == 404
    response = await client.post("/moderation/listings/999/approve", json={"notes": "ok"})
    assert response.status_code == 404
    assert response.json()["detail"]["category"] == "not_found"


@pytest.mark.asyncio
async def test_invalid_payload_is_rejected(client):
    payload = listing_payload(condition="ruined")
    assert (await client.post("/listings", json=payload)).status_code == 422

    payload = listing_payload()
    payload["pricing"]["dailyRate"] = -5
    assert (await client.post("/listings", json=payload)).status_code == 422


@pytest.mark.asyncio
async def test_photo_upload_is_measured(client):
    created = await create_listing(client, photo_count=0)
    listing_id = created["id"]

    rejected = await client.post(
        f"/listings/{listing_id}/photos", json={"url": "https://img.example.com/small.png"}
    )
    assert rejected.status_code == 422
    assert "1920x1080" in rejected.json()["detail"]["message"]

    missing = await client.post(
        f"/listings/{listing_id}/photos", json={"url": "https://img.example.com/gone.png"}
    )
    assert missing.status_code == 422

    accepted = await client.post(
        f"/listings/{listing_id}/photos", json={"url": "https://img.example.com/hd.png", "type": "back"}
    )
    assert accepted.status_code == 201
    photo = accepted.json()["photos"][0]
    assert photo["type"] == "back"
    assert photo["width"] == 1920
    assert photo["height"] == 1080
    assert photo["size"] > 0



@pytest.mark.asyncio
async def test_zero_original_price_fails_required_fields(client):
    payload = listing_payload()
    payload["details"]["originalPrice"] = 0
    created = (await client.post("/listings", json=payload)).json()
    assert created["details"]["originalPrice"] == 0

    response = await client.post(f"/listings/{created['id']}/submit")

    body = response.json()
    assert body["status"] == "needs_changes"
    assert body["checks"]["descriptionQuality"]["requiredFields"]["passed"] is False
    assert body["checks"]["pricingValidation"]["passed"] is False

    stored = body["listing"]
    assert run_automated_checks(stored).description_quality["requiredFields"].passed is False


@pytest.mark.asyncio
async def test_fractional_prices_are_stored_as_numbers(client):
    created = await create_listing(client, daily_rate=12.5)

    assert created["pricing"]["dailyRate"] == 12.5
    assert created["pricing"]["securityDeposit"] == 50


@pytest.mark.asyncio
async def test_photo_is_not_fetched_for_locked_or_stale_listing(client):
    fetched = []

    async def counting_fetcher(url: str) -> Optional[bytes]:
        fetched.append(url)
        return IMAGES.get(url)

    app.state.photo_inspector = PhotoInspector(image_fetcher=counting_fetcher)
    draft = await create_listing(client, photo_count=0)
    submitted = await create_listing(client)
    await client.post(f"/listings/{submitted['id']}/submit")

    locked = await client.post(
        f"/listings/{submitted['id']}/photos", json={"url": "https://img.example.com/hd.png"}
    )
    assert locked.status_code == 409
    assert locked.json()["detail"]["category"] == "conflict"

    stale = await client.post(
        f"/listings/{draft['id']}/photos",
        json={"url": "https://img.example.com/hd.png", "expectedVersion": 7},
    )
    assert stale.status_code == 409

    missing = await client.post("/listings/999/photos", json={"url": "https://img.example.com/hd.png"})
    assert missing.status_code == 404

    assert fetched == []

@pytest.mark.asyncio
async def test_photo_upload_without_inspector(client):
    created = await create_listing(client)
    app.state.photo_inspector = None

    response = await client.post(
        f"/listings/{created['id']}/photos", json={"url": "https://img.example.com/hd.png"}
    )
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_quality_panel(client):
    created = await create_listing(client)
    listing_id = created["id"]

    balanced = await client.get(f"/listings/{listing_id}/quality")
    assert balanced.status_code == 200
    assert balanced.json()["scheme"] == "balanced"
    assert set(balanced.json()["breakdown"]) == {"photos", "description", "condition", "maintenance"}

    weighted = await client.get(f"/listings/{listing_id}/quality", params={"scheme": "weighted"})
    assert weighted.json()["totalScore"] == 74

    assert (await client.get(f"/listings/{listing_id}/quality", params={"scheme": "generous"})).status_code == 422


@pytest.mark.asyncio
async def test_content_scan(client):
    response = await client.post("/content/scan", json={"text": "Email me at jane@example.com"})

    body = response.json()
    assert body["hasPersonalInfo"] is True
    assert body["type"] == "email"
    assert body["warning"].startswith("Email addresses are not allowed")
    assert "jane@example.com" not in body["redacted"]

    clean = await client.post("/content/scan", json={"text": "Emerald gown, worn once"})
    assert clean.json()["hasPersonalInfo"] is False


@pytest.mark.asyncio
async def test_notifications_endpoints(client):
    session_factory = get_session_factory()
    async with session_factory() as session:
        repo = NotificationRepository(session)
        notification = await repo.add_notification(
            owner_id="lender-1", listing_id=1, kind="approved", title="Your listing is live", message="Live"
        )
        await session.commit()
        notification_id = notification.id

    listed = await client.get("/notifications/lender-1")
    assert listed.json()["unreadCount"] == 1
    assert listed.json()["items"][0]["title"] == "Your listing is live"

    marked = await client.post(f"/notifications/{notification_id}/read")
    assert marked.status_code == 200
    assert marked.json()["isRead"] is True

    unread = await client.get("/notifications/lender-1", params={"unread_only": True})
    assert unread.json() == {"unreadCount": 0, "items": []}
    assert (await client.post("/notifications/999/read")).status_code == 404


@pytest.mark.asyncio
async def test_health_and_metrics(client):
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["database"] is True

    metrics = await client.get("/metrics")
    assert metrics.status_code == 200
    assert "listing_review_transitions_total" in metrics.text
