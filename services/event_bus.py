"""In-process event bus fanning listing review events out to background services."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Type, TypeVar

from loguru import logger
from prometheus_client import Counter

EventT = TypeVar("EventT")
EventHandler = Callable[[EventT], Awaitable[None]]

EVENT_HANDLER_FAILURES = Counter(
    "review_event_handler_failures_total",
    "Count of event handlers that raised while processing a review event",
    labelnames=["event_type"],
)


class EventBus:
    """Queue-backed asynchronous event bus with a single dispatcher task.

    Handlers run concurrently per event; a failing handler is logged and
    counted but never stops delivery to the others.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._subscribers: Dict[Type[object], List[EventHandler]] = defaultdict(list)
        self._dispatcher: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._dispatcher is not None and not self._dispatcher.done()

    def subscribe(self, event_type: Type[EventT], handler: EventHandler[EventT]) -> None:
        self._subscribers[event_type].append(handler)  # type: ignore[arg-type]

    async def start(self) -> None:
        if self.running:
            return
        self._dispatcher = asyncio.create_task(self._dispatch_loop())

    async def stop(self) -> None:
        """Deliver what is already queued, then stop the dispatcher."""

        if self._dispatcher is None:
            return

        await self._queue.put(None)
        try:
            await self._dispatcher
        except asyncio.CancelledError:
            pass
        finally:
            self._dispatcher = None

    async def publish(self, event: object) -> None:
        await self._queue.put(event)

    async def wait_until_idle(self) -> None:
        """Block until every published event has been handled."""

        await self._queue.join()

    async def _dispatch_loop(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                self._queue.task_done()
                break

            try:
                handlers = list(self._subscribers.get(type(event), []))
                if not handlers:
                    logger.debug("No subscribers for event", event_type=type(event).__name__)
                    continue
                await asyncio.gather(*(self._invoke_handler(handler, event) for handler in handlers))
            finally:
                self._queue.task_done()

    async def _invoke_handler(self, handler: EventHandler, event: object) -> None:
        try:
            await handler(event)  # type: ignore[arg-type]
        except Exception:
            EVENT_HANDLER_FAILURES.labels(event_type=type(event).__name__).inc()
            logger.exception(
                "Event handler failed",
                handler=getattr(handler, "__name__", repr(handler)),
                event_type=type(event).__name__,
            )
