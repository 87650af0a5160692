"""Background service turning listing status changes into owner notifications."""

from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional, Tuple

from loguru import logger
from prometheus_client import Counter, Histogram
from sqlalchemy.ext.asyncio import async_sessionmaker

from events import ListingStatusChanged
from repositories import ListingRepository, NotificationRepository
from services.event_bus import EventBus

NOTIFICATION_DURATION = Histogram(
    "review_notification_duration_seconds",
    "Time spent storing a review notification",
    labelnames=["status"],
)
NOTIFICATION_COUNTER = Counter(
    "review_notifications_total",
    "Count of processed review notification events",
    labelnames=["status"],
)

MESSAGES: Dict[str, Tuple[str, str]] = {
    "in_review": (
        "Listing submitted for review",
        "\"{title}\" passed the automated checks and is waiting for a moderator.",
    ),
    "needs_changes": (
        "Changes requested for your listing",
        "\"{title}\" needs a few changes before it can go live.",
    ),
    "approved": (
        "Your listing is live",
        "\"{title}\" was approved and can now be booked.",
    ),
    "rejected": (
        "Listing was not approved",
        "\"{title}\" was rejected by our moderation team.",
    ),
}


def build_message(event: ListingStatusChanged, title: Optional[str]) -> Optional[Tuple[str, str]]:
    """Title and body for a status change, or ``None`` when nobody needs telling."""

    template = MESSAGES.get(event.status)
    if template is None:
        return None

    heading, body = template
    message = body.format(title=title or f"Listing #{event.listing_id}")
    if event.status == "needs_changes" and event.failed_checks:
        message += " Failing checks: " + ", ".join(event.failed_checks) + "."
    if event.notes and event.actor != "system":
        message += f" Moderator notes: {event.notes}"
    return heading, message


class ReviewNotificationService:
    """Consumes ``ListingStatusChanged`` events and stores in-app notifications."""

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker,
        event_bus: EventBus,
    ) -> None:
        self._session_factory = session_factory
        self._event_bus = event_bus
        self._queue: asyncio.Queue[ListingStatusChanged | None] = asyncio.Queue()
        self._worker_task: asyncio.Task | None = None
        self._started = False

        self._event_bus.subscribe(ListingStatusChanged, self._enqueue_event)

    async def start(self) -> None:
        if self._started:
            return

        self._started = True
        self._worker_task = asyncio.create_task(self._process_events())
        logger.info("ReviewNotificationService started")

    async def stop(self) -> None:
        if not self._started:
            return

        self._started = False
        await self._queue.put(None)
        if self._worker_task:
            await self._worker_task
            self._worker_task = None
        logger.info("ReviewNotificationService stopped")

    async def _enqueue_event(self, event: ListingStatusChanged) -> None:
        await self._queue.put(event)

    async def _process_events(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                self._queue.task_done()
                break

            status_label = "success"
            started = time.perf_counter()
            try:
                await self._handle_event(event)
            except Exception:
                status_label = "error"
                logger.exception(
                    "Storing review notification failed",
                    listing_id=event.listing_id,
                    status=event.status,
                )
            finally:
                NOTIFICATION_COUNTER.labels(status=status_label).inc()
                NOTIFICATION_DURATION.labels(status=status_label).observe(time.perf_counter() - started)
                self._queue.task_done()

    async def _handle_event(self, event: ListingStatusChanged) -> None:
        async with self._session_factory() as session:
            listing = await ListingRepository(session).get_by_id(event.listing_id)
            title = (listing.details or {}).get("title") if listing is not None else None

            content = build_message(event, title)
            if content is None:
                logger.debug("No notification for status", listing_id=event.listing_id, status=event.status)
                return

            heading, message = content
            await NotificationRepository(session).add_notification(
                owner_id=event.owner_id,
                listing_id=event.listing_id,
                kind=event.status,
                title=heading,
                message=message,
            )
            await session.commit()
            logger.debug(
                "Stored review notification",
                listing_id=event.listing_id,
                owner_id=event.owner_id,
                status=event.status,
            )
