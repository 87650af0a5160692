from contextlib import asynccontextmanager
from fastapi import FastAPI
from routers import (
    listings,
    moderation,
    notifications,
    content,
    health,
)
from db import init_db, close_db, get_session_factory
from services.event_bus import EventBus
from services.notifications import ReviewNotificationService
from services.photo_inspection import InspectionConfig, PhotoInspector
from services.review_workflow import load_review_policy
import logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown events"""
    logger = logging.getLogger(__name__)

    event_bus: EventBus | None = None
    notification_service: ReviewNotificationService | None = None
    photo_inspector: PhotoInspector | None = None

    try:
        logger.info("Initializing database...")
        await init_db()
        session_factory = get_session_factory()
        event_bus = EventBus()
        await event_bus.start()
        notification_service = ReviewNotificationService(
            session_factory=session_factory,
            event_bus=event_bus,
        )
        await notification_service.start()
        photo_inspector = PhotoInspector(InspectionConfig.from_env())
        await photo_inspector.start()
        review_policy = load_review_policy()
        logger.info(
            "Review policy: enforce_checklist=%s block_terminal_resubmit=%s max_submissions=%s",
            review_policy.enforce_checklist,
            review_policy.block_terminal_resubmit,
            review_policy.max_submissions,
        )

        app.state.event_bus = event_bus
        app.state.notification_service = notification_service
        app.state.photo_inspector = photo_inspector
        app.state.review_policy = review_policy

        logger.info("Application startup completed successfully")

        yield

    except Exception as e:
        logger.error(f"Application startup failed: {e}")
        raise
    finally:
        logger.info("Application shutdown initiated...")

        inspector = getattr(app.state, "photo_inspector", None) or photo_inspector
        if inspector:
            try:
                await inspector.stop()
                logger.info("Photo inspector stopped successfully")
            except Exception as e:
                logger.error(f"Error stopping photo inspector: {e}")

        # the bus flushes into the notification queue, so it stops first
        bus = getattr(app.state, "event_bus", None) or event_bus
        if bus:
            try:
                await bus.stop()
                logger.info("Event bus stopped successfully")
            except Exception as e:
                logger.error(f"Error stopping event bus: {e}")

        service = getattr(app.state, "notification_service", None) or notification_service
        if service:
            try:
                await service.stop()
                logger.info("Notification service stopped successfully")
            except Exception as e:
                logger.error(f"Error stopping notification service: {e}")

        try:
            await close_db()
            logger.info("Database connections closed successfully")
        except Exception as e:
            logger.error(f"Error closing database: {e}")

        logger.info("Application shutdown completed")


app = FastAPI(title="Listing Review API", version="1.0.0", lifespan=lifespan)


@app.get("/")
async def root():
    return {
        "message": "Welcome to the Listing Review API",
        "endpoints": [
            "/listings",
            "/listings/{id}/submit",
            "/listings/{id}/quality",
            "/moderation/queue",
            "/notifications/{owner_id}",
            "/content/scan",
            "/health",
            "/metrics",
        ],
        "status": "operational",
    }


app.include_router(listings.router)
app.include_router(moderation.router)
app.include_router(notifications.router)
app.include_router(content.router)
app.include_router(health.router)
