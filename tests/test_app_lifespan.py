import os

import pytest

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

pytest.importorskip("sqlalchemy")
pytest.importorskip("fastapi")

from db import init_db, get_session_factory, reset_database_state  # noqa: E402
from events import ListingStatusChanged  # noqa: E402
from main import app, lifespan  # noqa: E402
from repositories import NotificationRepository  # noqa: E402


@pytest.fixture()
async def file_database(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'lifespan.db'}")
    await reset_database_state()
    yield
    await reset_database_state()
    for name in ("event_bus", "notification_service", "photo_inspector", "review_policy"):
        if hasattr(app.state, name):
            delattr(app.state, name)


@pytest.mark.asyncio
async def test_shutdown_delivers_events_published_before_exit(file_database):
    async with lifespan(app):
        await app.state.event_bus.publish(
            ListingStatusChanged(
                listing_id=1,
                owner_id="lender-9",
                previous_status="in_review",
                status="approved",
                actor="mod-1",
            )
        )

    # the lifespan disposed the engine; reopen the same file
    await init_db()
    async with get_session_factory()() as session:
        notifications = await NotificationRepository(session).list_for_owner("lender-9")

    assert [item.kind for item in notifications] == ["approved"]
    assert notifications[0].title == "Your listing is live"
