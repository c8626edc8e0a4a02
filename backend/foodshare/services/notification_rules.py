"""Who gets told what when a food report changes.

``dispatch`` is a pure function of its event: no I/O, no clock reads, no
randomness. Delivery is the notification service's job.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from foodshare.core.config import settings
from foodshare.core.rbac import UserRole
from foodshare.models.food_report import ReportStatus
from foodshare.services.push import (
    ACCEPT,
    DISMISS,
    VIEW,
    Coordinates,
    PushData,
    PushPayload,
    actions,
    task_url,
)

HOTEL_DASHBOARD_URL = "/hotel/dashboard"

HOTEL_MESSAGES = {
    ReportStatus.ASSIGNED: "An agent has accepted your food donation",
    ReportStatus.PICKED: "Your food has been picked up by the agent",
    ReportStatus.DELIVERED: "Your food has been successfully delivered!",
    ReportStatus.CANCELLED: "The food pickup has been cancelled",
}

AGENT_MESSAGES = {
    ReportStatus.ASSIGNED: "You have been assigned a new pickup task",
    ReportStatus.CANCELLED: "Task has been cancelled",
}

REMINDER_STATUSES = frozenset({ReportStatus.NEW, ReportStatus.ASSIGNED})


class Urgency(str, Enum):
    NORMAL = "normal"
    HIGH = "high"


class IntentKind(str, Enum):
    NEW_TASK = "new_task"
    STATUS_UPDATE = "status_update"
    EXPIRY_REMINDER = "expiry_reminder"


@dataclass(frozen=True)
class ReportSnapshot:
    """The report fields notification rules look at."""

    id: int
    hotel_id: int
    hotel_user_id: Optional[int]
    hotel_name: str
    city: str
    food_name: str
    quantity: int
    status: ReportStatus
    assigned_agent_id: Optional[int] = None
    assigned_agent_user_id: Optional[int] = None
    expiry_time: Optional[datetime] = None
    hotel_contact: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class ReportCreated:
    report: ReportSnapshot
    eligible_agent_user_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class TransitionOccurred:
    report: ReportSnapshot
    from_status: ReportStatus
    to_status: ReportStatus
    initiated_by: Optional[UserRole] = None
    previous_agent_user_id: Optional[int] = None


@dataclass(frozen=True)
class ExpiryApproaching:
    report: ReportSnapshot
    now: datetime
    eligible_agent_user_ids: Tuple[int, ...] = ()


DispatchEvent = Union[ReportCreated, TransitionOccurred, ExpiryApproaching]


@dataclass(frozen=True)
class NotificationIntent:
    kind: IntentKind
    recipient_role: UserRole
    recipient_user_ids: Tuple[int, ...]
    payload: PushPayload
    urgency: Urgency = Urgency.NORMAL
    impact: Dict[str, Any] = field(default_factory=dict)


def dispatch(event: DispatchEvent) -> List[NotificationIntent]:
    """Map a lifecycle event to the notifications it should produce."""
    if isinstance(event, ReportCreated):
        return _on_created(event)
    if isinstance(event, TransitionOccurred):
        return _on_transition(event)
    if isinstance(event, ExpiryApproaching):
        return _on_expiry(event)
    raise TypeError(f"Unsupported dispatch event: {type(event).__name__}")


def reminder_due_at(expiry_time: datetime) -> datetime:
    return expiry_time - timedelta(minutes=settings.expiry_reminder_lead_minutes)


def _on_created(event: ReportCreated) -> List[NotificationIntent]:
    report = event.report
    recipients = tuple(event.eligible_agent_user_ids)
    if not recipients:
        return []
    payload = PushPayload(
        title="New Food Available!",
        body=f"{report.food_name} - {report.quantity} servings at {report.hotel_name}",
        tag=f"task-{report.id}",
        data=_task_data(report, type="new_task"),
        actions=actions(ACCEPT, VIEW),
    )
    return [NotificationIntent(IntentKind.NEW_TASK, UserRole.AGENT, recipients, payload)]


def _on_transition(event: TransitionOccurred) -> List[NotificationIntent]:
    report = event.report
    to = event.to_status
    if event.from_status == to:
        return []

    intents: List[NotificationIntent] = []

    if to == ReportStatus.ASSIGNED:
        intents += _hotel_update(report, to)
        intents += _agent_update(report, to, report.assigned_agent_user_id)
    elif to == ReportStatus.PICKED:
        intents += _hotel_update(report, to)
    elif to == ReportStatus.DELIVERED:
        intents += _hotel_update(report, to, impact={"quantity_saved": report.quantity})
    elif to == ReportStatus.CANCELLED:
        agent_user_id = event.previous_agent_user_id or report.assigned_agent_user_id
        if event.initiated_by == UserRole.HOTEL:
            intents += _agent_update(report, to, agent_user_id)
        elif event.initiated_by == UserRole.ADMIN:
            intents += _hotel_update(report, to)
            intents += _agent_update(report, to, agent_user_id)
        else:
            intents += _hotel_update(report, to)

    return intents


def _on_expiry(event: ExpiryApproaching) -> List[NotificationIntent]:
    """Remind once the lead time before expiry has begun.

    Food that has already expired is not reminded about.
    """
    report = event.report
    if report.expiry_time is None or report.status not in REMINDER_STATUSES:
        return []
    if event.now < reminder_due_at(report.expiry_time) or event.now >= report.expiry_time:
        return []

    if report.assigned_agent_user_id is not None:
        recipients: Tuple[int, ...] = (report.assigned_agent_user_id,)
        buttons = actions(VIEW, DISMISS)
    else:
        recipients = tuple(event.eligible_agent_user_ids)
        buttons = actions(ACCEPT, DISMISS)
    if not recipients:
        return []

    remaining = report.expiry_time - event.now
    hours, rest = divmod(int(remaining.total_seconds()), 3600)
    minutes = rest // 60
    payload = PushPayload(
        title="URGENT: Food Expiring Soon!",
        body=f"{report.food_name} expires in {hours}h {minutes}m!",
        tag=f"urgent-{report.id}",
        data=_task_data(report, type="expiry_reminder"),
        require_interaction=True,
        actions=buttons,
    )
    return [
        NotificationIntent(
            IntentKind.EXPIRY_REMINDER, UserRole.AGENT, recipients, payload, urgency=Urgency.HIGH
        )
    ]


def _hotel_update(report: ReportSnapshot, to: ReportStatus, impact=None) -> List[NotificationIntent]:
    if report.hotel_user_id is None:
        return []
    data = PushData(task_id=report.id, url=HOTEL_DASHBOARD_URL, type="status_update")
    if impact:
        data.quantity_saved = impact["quantity_saved"]
    payload = PushPayload(
        title="Food Donation Update",
        body=f"{report.food_name}: {HOTEL_MESSAGES[to]}",
        tag=f"hotel-{report.id}-{to.value}",
        data=data,
    )
    return [
        NotificationIntent(
            IntentKind.STATUS_UPDATE, UserRole.HOTEL, (report.hotel_user_id,), payload, impact=dict(impact or {})
        )
    ]


def _agent_update(report: ReportSnapshot, to: ReportStatus, agent_user_id: Optional[int]) -> List[NotificationIntent]:
    if agent_user_id is None:
        return []
    payload = PushPayload(
        title="Task Update",
        body=f"{report.food_name}: {AGENT_MESSAGES[to]}",
        tag=f"agent-{report.id}-{to.value}",
        data=_task_data(report, type="status_update"),
    )
    return [NotificationIntent(IntentKind.STATUS_UPDATE, UserRole.AGENT, (agent_user_id,), payload)]


def _task_data(report: ReportSnapshot, type: str) -> PushData:
    coordinates = None
    if report.latitude is not None and report.longitude is not None:
        coordinates = Coordinates(lat=report.latitude, lng=report.longitude)
    return PushData(
        task_id=report.id,
        url=task_url(report.id),
        phone=report.hotel_contact,
        coordinates=coordinates,
        type=type,
    )
