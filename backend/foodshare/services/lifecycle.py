"""Food report lifecycle.

State machine::

    new --claim/assign--> assigned --mark_picked--> picked --mark_delivered--> delivered
     |                       |                        |
     +-----------------------+-------- cancel --------+--> cancelled

Preconditions are checked locally before anything is written. The write
itself is a conditional update on the expected status, so two agents racing
for the same report cannot both win.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from foodshare.core.exceptions import (
    ClaimConflict,
    InactiveAgent,
    InvalidTransition,
    NotReportOwner,
    ResourceNotFound,
    RoleMismatch,
    ValidationError,
)
from foodshare.core.rbac import TokenData, UserRole
from foodshare.models.food_report import FoodReport, ReportStatus
from foodshare.models.partner import DeliveryAgent, Hotel
from foodshare.schemas.food_report import FoodReportCreate
from foodshare.services.change_feed import (
    FOOD_REPORTS,
    INSERT,
    UPDATE,
    ChangeEvent,
    ChangeFeed,
    report_row,
)
from foodshare.services.expiry_reminders import as_utc
from foodshare.services.report_store import ReportStore, UpdateResult

logger = logging.getLogger(__name__)


CLAIM = "claim"
ASSIGN = "assign"
MARK_PICKED = "mark_picked"
MARK_DELIVERED = "mark_delivered"
CANCEL = "cancel"


@dataclass(frozen=True)
class Transition:
    sources: FrozenSet[ReportStatus]
    target: ReportStatus
    actors: FrozenSet[UserRole]


TRANSITIONS: Dict[str, Transition] = {
    CLAIM: Transition(
        frozenset({ReportStatus.NEW}), ReportStatus.ASSIGNED, frozenset({UserRole.AGENT})
    ),
    ASSIGN: Transition(
        frozenset({ReportStatus.NEW}), ReportStatus.ASSIGNED, frozenset({UserRole.ADMIN})
    ),
    MARK_PICKED: Transition(
        frozenset({ReportStatus.ASSIGNED}), ReportStatus.PICKED, frozenset({UserRole.AGENT})
    ),
    MARK_DELIVERED: Transition(
        frozenset({ReportStatus.PICKED}), ReportStatus.DELIVERED, frozenset({UserRole.AGENT})
    ),
    CANCEL: Transition(
        frozenset({ReportStatus.NEW, ReportStatus.ASSIGNED, ReportStatus.PICKED}),
        ReportStatus.CANCELLED,
        frozenset({UserRole.HOTEL, UserRole.ADMIN}),
    ),
}

_TAKEN = frozenset({ReportStatus.ASSIGNED, ReportStatus.PICKED, ReportStatus.DELIVERED})


def next_status(report_id: int, current: ReportStatus, event: str) -> ReportStatus:
    """Return the status ``event`` leads to from ``current`` or raise InvalidTransition."""
    transition = TRANSITIONS.get(event)
    if transition is None or current not in transition.sources:
        raise InvalidTransition(report_id, current.value, event)
    return transition.target


def allowed_events(current: ReportStatus) -> List[str]:
    """Events that may be applied to a report in ``current``."""
    return [name for name, t in TRANSITIONS.items() if current in t.sources]


def validate_report_fields(quantity: int, pickup_time, expiry_time) -> None:
    """Naive times are taken as UTC, so mixed naive and aware input compares cleanly."""
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be a positive number of servings", field="quantity")
    if expiry_time is not None and pickup_time is not None and as_utc(expiry_time) < as_utc(pickup_time):
        raise ValidationError("Expiry time cannot be before the pickup time", field="expiry_time")


class FoodReportLifecycle:
    """Creates food reports and moves them through their lifecycle."""

    def __init__(self, store: ReportStore, feed: Optional[ChangeFeed] = None):
        self.store = store
        self.feed = feed

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_report(self, actor: TokenData, data: FoodReportCreate) -> FoodReport:
        self._require_role(actor, roles={UserRole.HOTEL})
        validate_report_fields(data.quantity, data.pickup_time, data.expiry_time)

        hotel = hotel_for_user(self.store, actor.user_id)

        report = FoodReport(
            hotel_id=hotel.id,
            assigned_agent_id=None,
            food_type=data.food_type,
            food_name=data.food_name,
            quantity=data.quantity,
            description=data.description,
            image_url=data.image_url,
            pickup_time=as_utc(data.pickup_time),
            expiry_time=as_utc(data.expiry_time) if data.expiry_time else None,
            status=ReportStatus.NEW,
        )
        report = self.store.add(report)
        logger.info(f"Hotel {hotel.id} reported food {report.id} ({report.food_name} x{report.quantity})")
        self._publish(ChangeEvent(FOOD_REPORTS, INSERT, report_row(report), actor_role=UserRole.HOTEL))
        return report

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def claim(self, report_id: int, actor: TokenData) -> FoodReport:
        """An agent takes ownership of a new report."""
        self._require_role(actor, CLAIM)
        agent = self.agent_for(actor)
        if not agent.is_active:
            raise InactiveAgent(agent.id)
        return self._assign_to(report_id, agent, CLAIM, UserRole.AGENT)

    def assign(self, report_id: int, agent_id: int, actor: TokenData) -> FoodReport:
        """An admin hands a new report to a specific agent."""
        self._require_role(actor, ASSIGN)
        agent = self.store.get_agent(agent_id)
        if not agent.is_active:
            raise InactiveAgent(agent.id)
        return self._assign_to(report_id, agent, ASSIGN, UserRole.ADMIN)

    def mark_picked(self, report_id: int, actor: TokenData) -> FoodReport:
        self._require_role(actor, MARK_PICKED)
        agent = self.agent_for(actor)
        report = self.store.get(report_id)
        next_status(report.id, report.status, MARK_PICKED)
        self._require_assigned_agent(report, agent)
        return self._apply(report, MARK_PICKED, {}, UserRole.AGENT)

    def mark_delivered(self, report_id: int, actor: TokenData) -> FoodReport:
        self._require_role(actor, MARK_DELIVERED)
        agent = self.agent_for(actor)
        report = self.store.get(report_id)
        next_status(report.id, report.status, MARK_DELIVERED)
        self._require_assigned_agent(report, agent)

        def credit_impact(before: Dict) -> None:
            self.store.add_food_saved(before["hotel_id"], before["quantity"])
            self.store.add_delivery(agent.id)

        return self._apply(report, MARK_DELIVERED, {}, UserRole.AGENT, after_update=credit_impact)

    def cancel(self, report_id: int, actor: TokenData) -> FoodReport:
        """Cancel a non-terminal report. The assigned agent, if any, is cleared."""
        self._require_role(actor, CANCEL)
        report = self.store.get(report_id)
        if actor.role == UserRole.HOTEL:
            hotel = hotel_for_user(self.store, actor.user_id)
            if hotel.id != report.hotel_id:
                raise NotReportOwner(report_id, "Only the hotel that reported this food can cancel it")
        return self._apply(report, CANCEL, {"assigned_agent_id": None}, actor.role)

    def clear_reports(self, actor: TokenData, statuses: Optional[List[ReportStatus]] = None) -> int:
        """Admin maintenance: remove reports in the given statuses, or every report."""
        self._require_role(actor, roles={UserRole.ADMIN})
        removed = self.store.delete_reports(statuses)
        self.store.commit()
        scope = ", ".join(s.value for s in statuses) if statuses else "all"
        logger.warning(f"Admin {actor.user_id} cleared {removed} food reports ({scope})")
        return removed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _assign_to(self, report_id: int, agent: DeliveryAgent, event: str, actor_role: UserRole) -> FoodReport:
        report = self.store.get(report_id)
        # A report someone already took is a lost race, not a bad transition.
        if report.status in _TAKEN:
            logger.info(f"Agent {agent.id} lost the claim race for food report {report_id}")
            raise ClaimConflict(report_id)
        try:
            return self._apply(report, event, {"assigned_agent_id": agent.id}, actor_role)
        except _LostRace:
            fresh = self.store.get(report_id)
            if fresh.status is ReportStatus.CANCELLED:
                raise InvalidTransition(report_id, fresh.status.value, event)
            logger.info(f"Agent {agent.id} lost the claim race for food report {report_id}")
            raise ClaimConflict(report_id)

    def _apply(self, report: FoodReport, event: str, fields: Dict, actor_role: UserRole, after_update=None) -> FoodReport:
        current = report.status
        target = next_status(report.id, current, event)
        before = report_row(report)

        result = self.store.conditional_update(report.id, current, {"status": target, **fields})
        if result is UpdateResult.NOT_APPLIED:
            self.store.rollback()
            if event in (CLAIM, ASSIGN):
                raise _LostRace()
            fresh = self.store.get(report.id)
            raise InvalidTransition(report.id, fresh.status.value, event)

        if after_update is not None:
            after_update(before)
        self.store.commit()

        updated = self.store.get(report.id)
        logger.info(f"Food report {report.id}: {current.value} -> {target.value} ({event} by {actor_role.value})")
        self._publish(ChangeEvent(FOOD_REPORTS, UPDATE, report_row(updated), old=before, actor_role=actor_role))
        return updated

    def _require_role(self, actor: TokenData, event: Optional[str] = None, roles=None) -> None:
        allowed = roles or TRANSITIONS[event].actors
        if actor.role not in allowed:
            role = actor.role.value if actor.role else "unresolved"
            raise RoleMismatch(role, [r.value for r in allowed])

    def agent_for(self, actor: TokenData) -> DeliveryAgent:
        agent = self.store.get_agent_for_user(actor.user_id)
        if agent is None:
            raise ResourceNotFound("Delivery agent profile", actor.user_id)
        return agent

    def _require_assigned_agent(self, report: FoodReport, agent: DeliveryAgent) -> None:
        if report.assigned_agent_id != agent.id:
            raise NotReportOwner(report.id, "This pickup is assigned to another agent")

    def _publish(self, event: ChangeEvent) -> None:
        if self.feed is not None:
            self.feed.publish(event)


class _LostRace(Exception):
    """Conditional claim update matched no row."""


def hotel_for_user(store: ReportStore, user_id: int) -> Hotel:
    hotel = store.get_hotel_for_user(user_id)
    if hotel is None:
        raise ResourceNotFound("Hotel profile", user_id)
    return hotel
