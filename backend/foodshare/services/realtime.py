"""Realtime event router.

Consumes food report change events, turns each logical change into a
dispatch event, and forwards the resulting intents to the notification
service. The realtime transport may redeliver, so identical
(report, transition) pairs seen inside the de-duplication window are
dropped.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import AsyncIterable, Callable, Dict, Hashable, List, Optional, Tuple

from sqlalchemy.orm import Session

from foodshare.core.config import settings
from foodshare.models.food_report import FoodReport, ReportStatus
from foodshare.models.partner import DeliveryAgent, Hotel
from foodshare.services.change_feed import FOOD_REPORTS, INSERT, UPDATE, ChangeEvent
from foodshare.services.expiry_reminders import ExpiryReminderScheduler, as_utc, utcnow
from foodshare.services.notification_rules import (
    REMINDER_STATUSES,
    ExpiryApproaching,
    NotificationIntent,
    ReportCreated,
    ReportSnapshot,
    TransitionOccurred,
    dispatch,
)
from foodshare.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

CREATED = "created"


def _parse_time(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return as_utc(value)


class ReportDirectory:
    """Read-side lookups the router needs: hotels, agents, current report state."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def snapshot_from_row(self, row: Dict) -> ReportSnapshot:
        """Build a snapshot from a change-feed row plus hotel and agent details."""
        db = self.session_factory()
        try:
            hotel = db.get(Hotel, row["hotel_id"])
            agent_user_id = None
            if row.get("assigned_agent_id") is not None:
                agent = db.get(DeliveryAgent, row["assigned_agent_id"])
                agent_user_id = agent.user_id if agent else None
            return ReportSnapshot(
                id=row["id"],
                hotel_id=row["hotel_id"],
                hotel_user_id=hotel.user_id if hotel else None,
                hotel_name=hotel.name if hotel else "",
                city=hotel.city if hotel else "",
                food_name=row["food_name"],
                quantity=row["quantity"],
                status=ReportStatus(row["status"]),
                assigned_agent_id=row.get("assigned_agent_id"),
                assigned_agent_user_id=agent_user_id,
                expiry_time=_parse_time(row.get("expiry_time")),
                hotel_contact=hotel.contact if hotel else None,
                latitude=hotel.latitude if hotel else None,
                longitude=hotel.longitude if hotel else None,
            )
        finally:
            db.close()

    def current(self, report_id: int) -> Optional[ReportSnapshot]:
        """Snapshot of the report as it is stored right now."""
        db = self.session_factory()
        try:
            report = db.get(FoodReport, report_id)
            if report is None:
                return None
            row = {
                "id": report.id,
                "hotel_id": report.hotel_id,
                "assigned_agent_id": report.assigned_agent_id,
                "food_name": report.food_name,
                "quantity": report.quantity,
                "status": report.status.value,
                "expiry_time": report.expiry_time,
            }
        finally:
            db.close()
        return self.snapshot_from_row(row)

    def agent_user_id(self, agent_id: Optional[int]) -> Optional[int]:
        if agent_id is None:
            return None
        db = self.session_factory()
        try:
            agent = db.get(DeliveryAgent, agent_id)
            return agent.user_id if agent else None
        finally:
            db.close()

    def eligible_agent_user_ids(self, city: str) -> Tuple[int, ...]:
        """User ids of active agents whose area or zone covers ``city``."""
        db = self.session_factory()
        try:
            agents = db.query(DeliveryAgent).filter(DeliveryAgent.is_active.is_(True)).all()
            return tuple(sorted(a.user_id for a in agents if a.serves(city)))
        finally:
            db.close()


class RealtimeRouter:
    """Change events in, notification intents out."""

    def __init__(
        self,
        directory: ReportDirectory,
        notifications: NotificationService,
        dedup_window: Optional[float] = None,
        monotonic: Callable[[], float] = time.monotonic,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.directory = directory
        self.notifications = notifications
        self.dedup_window = settings.realtime_dedup_window_seconds if dedup_window is None else dedup_window
        self._monotonic = monotonic
        self._clock = clock
        self._seen: Dict[Hashable, float] = {}
        self.reminders: Optional[ExpiryReminderScheduler] = None

    def attach_reminders(self, reminders: ExpiryReminderScheduler) -> None:
        self.reminders = reminders

    async def run(self, events: AsyncIterable[ChangeEvent]) -> None:
        """Route every event until the sequence ends."""
        logger.info("Realtime router started")
        try:
            async for event in events:
                try:
                    await self.handle(event)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(
                        f"Realtime router failed on {event.event_type} for record {event.record_id}: {e}",
                        exc_info=True,
                    )
        finally:
            logger.info("Realtime router stopped")

    async def handle(self, event: ChangeEvent) -> List[NotificationIntent]:
        """Route one change event. Returns the intents that were forwarded."""
        if event.table != FOOD_REPORTS:
            return []

        key = self._transition_key(event)
        if key is None:
            return []
        if self._is_duplicate(key):
            logger.debug(f"Dropping duplicate realtime event {key}")
            return []

        try:
            snapshot = self.directory.snapshot_from_row(event.new)
            if event.event_type == INSERT:
                dispatch_event = ReportCreated(
                    report=snapshot,
                    eligible_agent_user_ids=self.directory.eligible_agent_user_ids(snapshot.city),
                )
            else:
                old = event.old or {}
                dispatch_event = TransitionOccurred(
                    report=snapshot,
                    from_status=ReportStatus(old["status"]),
                    to_status=snapshot.status,
                    initiated_by=event.actor_role,
                    previous_agent_user_id=self.directory.agent_user_id(old.get("assigned_agent_id")),
                )

            self._track_reminder(snapshot)

            intents = dispatch(dispatch_event)
            if intents:
                await self.notifications.dispatch(intents)
        except Exception:
            # Forget the key so a redelivery of this event is handled again.
            self._seen.pop(key, None)
            raise
        return intents

    async def remind(self, report_id: int) -> List[NotificationIntent]:
        """Expiry timer callback: re-check the report, then notify."""
        snapshot = self.directory.current(report_id)
        if snapshot is None or snapshot.status not in REMINDER_STATUSES:
            logger.debug(f"Expiry reminder for food report {report_id} suppressed")
            return []

        eligible: Tuple[int, ...] = ()
        if snapshot.assigned_agent_user_id is None:
            eligible = self.directory.eligible_agent_user_ids(snapshot.city)
        intents = dispatch(ExpiryApproaching(report=snapshot, now=self._clock(), eligible_agent_user_ids=eligible))
        if intents:
            await self.notifications.dispatch(intents)
        return intents

    def _transition_key(self, event: ChangeEvent) -> Optional[Tuple]:
        report_id = event.record_id
        if event.event_type == INSERT:
            return (report_id, CREATED)
        if event.event_type == UPDATE:
            old_status = (event.old or {}).get("status")
            new_status = event.new.get("status")
            if old_status is None or old_status == new_status:
                return None
            return (report_id, old_status, new_status)
        return None

    def _is_duplicate(self, key: Hashable) -> bool:
        now = self._monotonic()
        cutoff = now - self.dedup_window
        self._seen = {k: seen_at for k, seen_at in self._seen.items() if seen_at > cutoff}
        if key in self._seen:
            return True
        self._seen[key] = now
        return False

    def _track_reminder(self, snapshot: ReportSnapshot) -> None:
        if self.reminders is None:
            return
        if snapshot.status in REMINDER_STATUSES and snapshot.expiry_time is not None:
            self.reminders.schedule(snapshot.id, snapshot.expiry_time)
        else:
            self.reminders.cancel(snapshot.id)
