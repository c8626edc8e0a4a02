"""In-process realtime change feed.

Lifecycle operations publish row-level INSERT/UPDATE events here. Consumers
(the notification router, WebSocket clients) subscribe with a role scope and
read the events as an async iterator.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from foodshare.core.config import settings
from foodshare.core.rbac import UserRole
from foodshare.models.food_report import FoodReport

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
FOOD_REPORTS = "food_reports"


def report_row(report: FoodReport) -> Dict[str, Any]:
    """Serialize a food report the way the change feed carries it."""
    return {
        "id": report.id,
        "hotel_id": report.hotel_id,
        "assigned_agent_id": report.assigned_agent_id,
        "food_type": report.food_type.value,
        "food_name": report.food_name,
        "quantity": report.quantity,
        "status": report.status.value,
        "pickup_time": report.pickup_time.isoformat() if report.pickup_time else None,
        "expiry_time": report.expiry_time.isoformat() if report.expiry_time else None,
    }


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str
    new: Dict[str, Any]
    old: Optional[Dict[str, Any]] = None
    actor_role: Optional[UserRole] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def record_id(self) -> Any:
        return self.new.get("id")

    def to_message(self) -> Dict[str, Any]:
        return {
            "event": "change",
            "table": self.table,
            "type": self.event_type,
            "new": self.new,
            "old": self.old,
            "timestamp": self.occurred_at.isoformat(),
        }


@dataclass(frozen=True)
class FeedScope:
    """Which change events a viewer may see.

    Agents see report inserts and updates to reports assigned to them (before
    or after the change). Hotels see updates to their own reports. Admins see
    everything.
    """

    role: UserRole
    hotel_id: Optional[int] = None
    agent_id: Optional[int] = None

    def matches(self, event: ChangeEvent) -> bool:
        if self.role == UserRole.ADMIN:
            return True
        if event.table != FOOD_REPORTS:
            return False
        if self.role == UserRole.AGENT:
            if event.event_type == INSERT:
                return True
            old = event.old or {}
            return self.agent_id is not None and self.agent_id in (
                event.new.get("assigned_agent_id"),
                old.get("assigned_agent_id"),
            )
        if self.role == UserRole.HOTEL:
            return (
                event.event_type == UPDATE
                and self.hotel_id is not None
                and event.new.get("hotel_id") == self.hotel_id
            )
        return False


_CLOSED = object()


class Subscription:
    """Lazy, restartable stream of scoped change events.

    Nothing is buffered until iteration starts. ``close()`` ends the current
    iteration; iterating again re-attaches to the feed with a fresh queue.
    """

    def __init__(self, feed: "ChangeFeed", scope: FeedScope, maxsize: int):
        self._feed = feed
        self.scope = scope
        self._maxsize = maxsize
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ChangeEvent]:
        self._loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._maxsize)
        self._queue = queue
        self._feed._attach(self)
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            self._feed._detach(self)
            if self._queue is queue:
                self._queue = None

    @property
    def active(self) -> bool:
        return self._queue is not None

    def offer(self, event: ChangeEvent) -> None:
        """Hand an event to the subscriber, from any thread."""
        if not self.scope.matches(event):
            return
        self._put(event)

    def close(self) -> None:
        self._put(_CLOSED)

    def _put(self, item: Any) -> None:
        queue, loop = self._queue, self._loop
        if queue is None or loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._put_nowait(queue, item)
        else:
            loop.call_soon_threadsafe(self._put_nowait, queue, item)

    def _put_nowait(self, queue: asyncio.Queue, item: Any) -> None:
        try:
            queue.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning(f"Change feed subscriber for {self.scope.role.value} is full, dropping event")


class ChangeFeed:
    """Fan-out publisher of change events."""

    def __init__(self, maxsize: Optional[int] = None):
        self._maxsize = maxsize or settings.realtime_queue_size
        self._subscribers: List[Subscription] = []

    def subscribe(self, scope: FeedScope) -> Subscription:
        return Subscription(self, scope, self._maxsize)

    def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscribers):
            subscription.offer(event)

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _attach(self, subscription: Subscription) -> None:
        if subscription not in self._subscribers:
            self._subscribers.append(subscription)

    def _detach(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
