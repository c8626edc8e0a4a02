"""Food report lifecycle tests: transitions, preconditions and the claim race."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from foodshare.core.exceptions import (
    ClaimConflict,
    InactiveAgent,
    InvalidTransition,
    NotReportOwner,
    RoleMismatch,
    ValidationError,
)
from foodshare.core.rbac import UserRole
from foodshare.models.food_report import FoodReport, FoodType, ReportStatus
from foodshare.models.partner import DeliveryAgent, Hotel
from foodshare.models.user import User
from foodshare.schemas.food_report import FoodReportCreate
from foodshare.services.change_feed import INSERT, UPDATE, ChangeFeed
from foodshare.services.lifecycle import (
    CANCEL,
    CLAIM,
    MARK_DELIVERED,
    MARK_PICKED,
    FoodReportLifecycle,
    allowed_events,
    next_status,
)
from foodshare.services.report_store import ReportStore, UpdateResult
from helpers import identity


class RecordingFeed(ChangeFeed):
    def __init__(self):
        super().__init__(maxsize=10)
        self.events = []

    def publish(self, event):
        self.events.append(event)
        super().publish(event)


@pytest.fixture
def feed():
    return RecordingFeed()


@pytest.fixture
def lifecycle(db_session, feed):
    return FoodReportLifecycle(ReportStore(db_session), feed)


def _agent_identity(db_session, agent: DeliveryAgent):
    return identity(db_session.get(User, agent.user_id))


def _report_data(**overrides) -> FoodReportCreate:
    now = datetime.now(timezone.utc)
    data = {
        "food_type": FoodType.VEG,
        "food_name": "Dal",
        "quantity": 30,
        "pickup_time": now + timedelta(minutes=30),
        "expiry_time": now + timedelta(hours=4),
    }
    data.update(overrides)
    return FoodReportCreate(**data)


def _assert_agent_invariant(report: FoodReport):
    has_agent = report.assigned_agent_id is not None
    assert has_agent == (
        report.status in (ReportStatus.ASSIGNED, ReportStatus.PICKED, ReportStatus.DELIVERED)
    )


class TestTransitionTable:
    """The pure transition table."""

    def test_happy_path(self):
        assert next_status(1, ReportStatus.NEW, CLAIM) == ReportStatus.ASSIGNED
        assert next_status(1, ReportStatus.ASSIGNED, MARK_PICKED) == ReportStatus.PICKED
        assert next_status(1, ReportStatus.PICKED, MARK_DELIVERED) == ReportStatus.DELIVERED

    @pytest.mark.parametrize("status", [ReportStatus.NEW, ReportStatus.ASSIGNED, ReportStatus.PICKED])
    def test_cancel_from_any_active_state(self, status):
        assert next_status(1, status, CANCEL) == ReportStatus.CANCELLED

    @pytest.mark.parametrize("status", [ReportStatus.DELIVERED, ReportStatus.CANCELLED])
    def test_terminal_states_accept_nothing(self, status):
        assert allowed_events(status) == []
        for event in (CLAIM, MARK_PICKED, MARK_DELIVERED, CANCEL):
            with pytest.raises(InvalidTransition):
                next_status(1, status, event)

    def test_skipping_a_step_is_rejected(self):
        with pytest.raises(InvalidTransition):
            next_status(1, ReportStatus.NEW, MARK_DELIVERED)

    def test_unknown_event_is_rejected(self):
        with pytest.raises(InvalidTransition):
            next_status(1, ReportStatus.NEW, "teleport")

    def test_targets_stay_inside_state_set(self):
        for status in ReportStatus:
            for event in allowed_events(status):
                assert next_status(1, status, event) in set(ReportStatus)


class TestCreateReport:

    def test_create_publishes_insert(self, lifecycle, feed, hotel, hotel_user):
        report = lifecycle.create_report(identity(hotel_user), _report_data())

        assert report.status == ReportStatus.NEW
        assert report.hotel_id == hotel.id
        assert report.assigned_agent_id is None
        assert [e.event_type for e in feed.events] == [INSERT]
        assert feed.events[0].new["food_name"] == "Dal"

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_non_positive_quantity_rejected(self, lifecycle, db_session, hotel, hotel_user, quantity):
        with pytest.raises(ValidationError) as exc:
            lifecycle.create_report(identity(hotel_user), _report_data(quantity=quantity))
        assert exc.value.field == "quantity"
        assert db_session.query(FoodReport).count() == 0

    def test_expiry_before_pickup_rejected(self, lifecycle, db_session, hotel, hotel_user):
        now = datetime.now(timezone.utc)
        data = _report_data(pickup_time=now + timedelta(hours=2), expiry_time=now + timedelta(hours=1))
        with pytest.raises(ValidationError) as exc:
            lifecycle.create_report(identity(hotel_user), data)
        assert exc.value.field == "expiry_time"
        assert db_session.query(FoodReport).count() == 0

    def test_naive_and_aware_times_compare_as_utc(self, lifecycle, db_session, hotel, hotel_user):
        pickup = datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)
        data = _report_data(pickup_time=pickup.replace(tzinfo=None), expiry_time=pickup + timedelta(hours=2))
        report = lifecycle.create_report(identity(hotel_user), data)
        assert report.status == ReportStatus.NEW

        with pytest.raises(ValidationError) as exc:
            lifecycle.create_report(
                identity(hotel_user), _report_data(pickup_time=pickup, expiry_time=datetime(2030, 1, 1, 9, 0))
            )
        assert exc.value.field == "expiry_time"

    def test_agent_cannot_create(self, lifecycle, db_session, hotel, agent):
        with pytest.raises(RoleMismatch):
            lifecycle.create_report(_agent_identity(db_session, agent), _report_data())


class TestClaim:

    def test_claim_assigns_agent(self, lifecycle, feed, db_session, make_report, agent):
        report = make_report()
        claimed = lifecycle.claim(report.id, _agent_identity(db_session, agent))

        assert claimed.status == ReportStatus.ASSIGNED
        assert claimed.assigned_agent_id == agent.id
        _assert_agent_invariant(claimed)
        event = feed.events[-1]
        assert event.event_type == UPDATE
        assert event.old["status"] == "new"
        assert event.new["status"] == "assigned"
        assert event.actor_role == UserRole.AGENT

    def test_inactive_agent_cannot_claim(self, lifecycle, db_session, make_report, make_agent):
        report = make_report()
        idle = make_agent(is_active=False)
        with pytest.raises(InactiveAgent):
            lifecycle.claim(report.id, _agent_identity(db_session, idle))
        db_session.refresh(report)
        assert report.status == ReportStatus.NEW

    @pytest.mark.parametrize("status", [ReportStatus.ASSIGNED, ReportStatus.PICKED, ReportStatus.DELIVERED])
    def test_claim_of_taken_report_conflicts(self, lifecycle, db_session, make_report, make_agent, status):
        first = make_agent(name="First")
        second = make_agent(name="Second")
        report = make_report(status=status, assigned_agent_id=first.id)

        with pytest.raises(ClaimConflict) as exc:
            lifecycle.claim(report.id, _agent_identity(db_session, second))
        assert exc.value.details["retryable"] is True
        db_session.refresh(report)
        assert report.assigned_agent_id == first.id

    def test_claim_of_cancelled_report_is_invalid(self, lifecycle, db_session, make_report, agent):
        report = make_report(status=ReportStatus.CANCELLED)

        with pytest.raises(InvalidTransition):
            lifecycle.claim(report.id, _agent_identity(db_session, agent))
        db_session.refresh(report)
        assert report.assigned_agent_id is None

    def test_hotel_cannot_claim(self, lifecycle, make_report, hotel_user):
        report = make_report()
        with pytest.raises(RoleMismatch):
            lifecycle.claim(report.id, identity(hotel_user))


class TestClaimRace:
    """Two agents claim the same new report; the store resolves the race."""

    def test_loser_gets_claim_conflict(self, db_session, make_report, make_agent, feed):
        a = make_agent(name="A")
        b = make_agent(name="B")
        report = make_report()

        class RacingStore(ReportStore):
            """Lets agent A's claim commit between B's read and B's update."""

            def conditional_update(self, report_id, expected_status, fields):
                self.db.execute(
                    text("UPDATE food_reports SET status = 'assigned', assigned_agent_id = :agent WHERE id = :id"),
                    {"agent": a.id, "id": report_id},
                )
                self.db.commit()
                return super().conditional_update(report_id, expected_status, fields)

        racing = FoodReportLifecycle(RacingStore(db_session), feed)
        with pytest.raises(ClaimConflict) as exc:
            racing.claim(report.id, _agent_identity(db_session, b))

        assert exc.value.details["retryable"] is True
        db_session.expire_all()
        stored = db_session.get(FoodReport, report.id)
        assert stored.status == ReportStatus.ASSIGNED
        assert stored.assigned_agent_id == a.id
        assert feed.events == []

    def test_claim_after_winner_committed_conflicts(self, lifecycle, db_session, make_report, make_agent):
        a = make_agent(name="A")
        b = make_agent(name="B")
        report = make_report()

        lifecycle.claim(report.id, _agent_identity(db_session, a))
        with pytest.raises(ClaimConflict) as exc:
            lifecycle.claim(report.id, _agent_identity(db_session, b))
        assert exc.value.details["retryable"] is True

        db_session.refresh(report)
        assert report.assigned_agent_id == a.id

    def test_conditional_update_only_applies_once(self, db_session, make_report, make_agent):
        a = make_agent(name="A")
        b = make_agent(name="B")
        report = make_report()
        store = ReportStore(db_session)

        first = store.conditional_update(
            report.id, ReportStatus.NEW, {"status": ReportStatus.ASSIGNED, "assigned_agent_id": a.id}
        )
        store.commit()
        second = store.conditional_update(
            report.id, ReportStatus.NEW, {"status": ReportStatus.ASSIGNED, "assigned_agent_id": b.id}
        )
        store.commit()

        assert first is UpdateResult.APPLIED
        assert second is UpdateResult.NOT_APPLIED
        assert store.get(report.id).assigned_agent_id == a.id

    def test_cancel_committed_mid_claim_is_invalid(self, db_session, make_report, agent, feed):
        report = make_report()

        class CancellingStore(ReportStore):
            """The hotel cancels between the agent's read and update."""

            def conditional_update(self, report_id, expected_status, fields):
                self.db.execute(text("UPDATE food_reports SET status = 'cancelled' WHERE id = :id"), {"id": report_id})
                self.db.commit()
                return super().conditional_update(report_id, expected_status, fields)

        racing = FoodReportLifecycle(CancellingStore(db_session), feed)
        with pytest.raises(InvalidTransition):
            racing.claim(report.id, _agent_identity(db_session, agent))
        assert feed.events == []


class TestPickAndDeliver:

    def test_full_delivery_credits_hotel_and_agent(self, lifecycle, db_session, hotel, make_report, agent):
        report = make_report(quantity=30)
        actor = _agent_identity(db_session, agent)

        lifecycle.claim(report.id, actor)
        lifecycle.mark_picked(report.id, actor)
        delivered = lifecycle.mark_delivered(report.id, actor)

        assert delivered.status == ReportStatus.DELIVERED
        _assert_agent_invariant(delivered)
        db_session.expire_all()
        assert db_session.get(Hotel, hotel.id).total_food_saved == 30
        assert db_session.get(DeliveryAgent, agent.id).total_deliveries == 1

    def test_other_agent_cannot_pick(self, lifecycle, db_session, make_report, make_agent):
        owner = make_agent(name="Owner")
        other = make_agent(name="Other")
        report = make_report(status=ReportStatus.ASSIGNED, assigned_agent_id=owner.id)

        with pytest.raises(NotReportOwner):
            lifecycle.mark_picked(report.id, _agent_identity(db_session, other))
        db_session.refresh(report)
        assert report.status == ReportStatus.ASSIGNED

    def test_deliver_before_pick_is_invalid(self, lifecycle, db_session, hotel, make_report, agent):
        report = make_report(status=ReportStatus.ASSIGNED, assigned_agent_id=agent.id)
        with pytest.raises(InvalidTransition):
            lifecycle.mark_delivered(report.id, _agent_identity(db_session, agent))
        db_session.expire_all()
        assert db_session.get(Hotel, hotel.id).total_food_saved == 0


class TestCancel:

    @pytest.mark.parametrize("status", [ReportStatus.ASSIGNED, ReportStatus.PICKED])
    def test_cancel_clears_agent(self, lifecycle, feed, make_report, agent, hotel_user, status):
        report = make_report(status=status, assigned_agent_id=agent.id)
        cancelled = lifecycle.cancel(report.id, identity(hotel_user))

        assert cancelled.status == ReportStatus.CANCELLED
        assert cancelled.assigned_agent_id is None
        _assert_agent_invariant(cancelled)
        assert feed.events[-1].old["assigned_agent_id"] == agent.id
        assert feed.events[-1].actor_role == UserRole.HOTEL

    def test_cancel_delivered_report_is_invalid(self, lifecycle, db_session, make_report, agent, hotel_user):
        report = make_report(status=ReportStatus.DELIVERED, assigned_agent_id=agent.id)
        before = report.updated_at

        with pytest.raises(InvalidTransition):
            lifecycle.cancel(report.id, identity(hotel_user))

        db_session.refresh(report)
        assert report.status == ReportStatus.DELIVERED
        assert report.assigned_agent_id == agent.id
        assert report.updated_at == before

    def test_other_hotel_cannot_cancel(self, lifecycle, db_session, make_report, make_user):
        report = make_report()
        other_user = make_user(UserRole.HOTEL)
        db_session.add(Hotel(user_id=other_user.id, name="Other", contact="1", street="s", city="Pune"))
        db_session.commit()

        with pytest.raises(NotReportOwner):
            lifecycle.cancel(report.id, identity(other_user))

    def test_admin_can_cancel(self, lifecycle, make_report, admin_user, feed):
        report = make_report()
        cancelled = lifecycle.cancel(report.id, identity(admin_user))
        assert cancelled.status == ReportStatus.CANCELLED
        assert feed.events[-1].actor_role == UserRole.ADMIN

    def test_agent_cannot_cancel(self, lifecycle, db_session, make_report, agent):
        report = make_report(status=ReportStatus.ASSIGNED, assigned_agent_id=agent.id)
        with pytest.raises(RoleMismatch):
            lifecycle.cancel(report.id, _agent_identity(db_session, agent))


class TestAdminOperations:

    def test_admin_assigns_agent(self, lifecycle, make_report, agent, admin_user, feed):
        report = make_report()
        assigned = lifecycle.assign(report.id, agent.id, identity(admin_user))

        assert assigned.status == ReportStatus.ASSIGNED
        assert assigned.assigned_agent_id == agent.id
        assert feed.events[-1].actor_role == UserRole.ADMIN

    def test_cannot_assign_inactive_agent(self, lifecycle, make_report, make_agent, admin_user):
        report = make_report()
        idle = make_agent(is_active=False)
        with pytest.raises(InactiveAgent):
            lifecycle.assign(report.id, idle.id, identity(admin_user))

    def test_clear_terminal_reports(self, lifecycle, db_session, make_report, agent, admin_user):
        make_report()
        make_report(status=ReportStatus.DELIVERED, assigned_agent_id=agent.id)
        make_report(status=ReportStatus.CANCELLED)

        removed = lifecycle.clear_reports(
            identity(admin_user), [ReportStatus.DELIVERED, ReportStatus.CANCELLED]
        )

        assert removed == 2
        remaining = db_session.query(FoodReport).all()
        assert [r.status for r in remaining] == [ReportStatus.NEW]

    def test_hotel_cannot_clear(self, lifecycle, hotel_user):
        with pytest.raises(RoleMismatch):
            lifecycle.clear_reports(identity(hotel_user))
