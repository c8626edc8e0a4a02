"""HTTP tests for food reports, distributions, dashboards and the notification inbox."""

from datetime import datetime, timedelta, timezone

import pytest

from foodshare.core.rbac import UserRole
from foodshare.models.food_report import ReportStatus
from foodshare.models.notification import Notification
from foodshare.models.partner import DeliveryAgent, Hotel
from foodshare.models.user import User

from helpers import API, auth_headers

REPORTS = f"{API}/food-reports"


def _report_body(**overrides):
    pickup = datetime.now(timezone.utc) + timedelta(hours=1)
    body = {
        "food_type": "veg",
        "food_name": "Vegetable Biryani",
        "quantity": 40,
        "description": "Packed in foil trays",
        "pickup_time": pickup.isoformat(),
        "expiry_time": (pickup + timedelta(hours=4)).isoformat(),
    }
    body.update(overrides)
    return body


# ============== Creation ==============

class TestCreate:
    def test_hotel_creates_new_report(self, client, hotel_headers, hotel):
        response = client.post(REPORTS, json=_report_body(), headers=hotel_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "new"
        assert body["hotel_id"] == hotel.id
        assert body["assigned_agent_id"] is None
        assert body["hotel"]["city"] == "Pune"

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_quantity_must_be_positive(self, client, hotel_headers, quantity):
        response = client.post(REPORTS, json=_report_body(quantity=quantity), headers=hotel_headers)
        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "ValidationError"
        assert body["details"] == {"field": "quantity"}

    def test_expiry_before_pickup(self, client, hotel_headers):
        pickup = datetime.now(timezone.utc) + timedelta(hours=2)
        body = _report_body(pickup_time=pickup.isoformat(), expiry_time=(pickup - timedelta(hours=1)).isoformat())
        response = client.post(REPORTS, json=body, headers=hotel_headers)
        assert response.status_code == 422
        assert response.json()["details"] == {"field": "expiry_time"}

    def test_naive_pickup_with_aware_expiry(self, client, hotel_headers):
        body = _report_body(pickup_time="2030-01-01T10:00:00", expiry_time="2030-01-01T12:00:00Z")
        response = client.post(REPORTS, json=body, headers=hotel_headers)
        assert response.status_code == 201

    def test_naive_expiry_before_aware_pickup(self, client, hotel_headers):
        body = _report_body(pickup_time="2030-01-01T10:00:00Z", expiry_time="2030-01-01T09:00:00")
        response = client.post(REPORTS, json=body, headers=hotel_headers)
        assert response.status_code == 422
        assert response.json()["details"] == {"field": "expiry_time"}

    def test_unknown_food_type(self, client, hotel_headers):
        response = client.post(REPORTS, json=_report_body(food_type="dessert"), headers=hotel_headers)
        assert response.status_code == 422

    def test_agent_cannot_create(self, client, agent_headers):
        response = client.post(REPORTS, json=_report_body(), headers=agent_headers)
        assert response.status_code == 403
        assert response.json()["error_code"] == "RoleMismatch"

    def test_hotel_without_profile(self, client, make_user):
        headers = auth_headers(make_user(UserRole.HOTEL))
        response = client.post(REPORTS, json=_report_body(), headers=headers)
        assert response.status_code == 404

    def test_anonymous(self, client):
        response = client.post(REPORTS, json=_report_body())
        assert response.status_code == 401
        assert response.json()["error_code"] == "AuthenticationRequired"


# ============== Full lifecycle ==============

class TestLifecycleFlow:
    def test_happy_path(self, client, db_session, hotel, hotel_headers, agent, agent_headers):
        report_id = client.post(REPORTS, json=_report_body(quantity=25), headers=hotel_headers).json()["id"]

        available = client.get(f"{REPORTS}/available", headers=agent_headers).json()
        assert [r["id"] for r in available["items"]] == [report_id]

        claimed = client.post(f"{REPORTS}/{report_id}/claim", headers=agent_headers)
        assert claimed.status_code == 200
        assert claimed.json()["status"] == "assigned"
        assert claimed.json()["assigned_agent_id"] == agent.id

        assert client.post(f"{REPORTS}/{report_id}/pick", headers=agent_headers).json()["status"] == "picked"
        delivered = client.post(f"{REPORTS}/{report_id}/deliver", headers=agent_headers)
        assert delivered.json()["status"] == "delivered"

        db_session.expire_all()
        assert db_session.get(Hotel, hotel.id).total_food_saved == 25
        assert db_session.get(DeliveryAgent, agent.id).total_deliveries == 1

        mine = client.get(f"{REPORTS}/mine", headers=hotel_headers).json()
        assert [r["status"] for r in mine["items"]] == ["delivered"]

    def test_skipping_pickup_is_rejected(self, client, agent, agent_headers, make_report):
        report = make_report(status=ReportStatus.ASSIGNED, assigned_agent_id=agent.id)
        response = client.post(f"{REPORTS}/{report.id}/deliver", headers=agent_headers)
        assert response.status_code == 409
        body = response.json()
        assert body["error_code"] == "InvalidTransition"
        assert body["details"]["status"] == "assigned"

    def test_second_claim_conflicts(self, client, agent_headers, make_agent, make_report, db_session):
        report = make_report()
        rival = make_agent(name="Rival")
        assert client.post(f"{REPORTS}/{report.id}/claim", headers=agent_headers).status_code == 200

        rival_headers = auth_headers(db_session.get(User, rival.user_id))
        response = client.post(f"{REPORTS}/{report.id}/claim", headers=rival_headers)
        assert response.status_code == 409
        assert response.json()["error_code"] == "ClaimConflict"
        assert response.json()["details"]["retryable"] is True

    def test_inactive_agent_cannot_claim(self, client, make_agent, make_report, db_session):
        sleeper = make_agent(is_active=False)
        report = make_report()
        headers = auth_headers(db_session.get(User, sleeper.user_id))

        assert client.get(f"{REPORTS}/available", headers=headers).json()["total"] == 0
        response = client.post(f"{REPORTS}/{report.id}/claim", headers=headers)
        assert response.status_code == 403
        assert response.json()["error_code"] == "InactiveAgent"

    def test_other_agent_cannot_pick(self, client, agent, make_agent, make_report, db_session):
        report = make_report(status=ReportStatus.ASSIGNED, assigned_agent_id=agent.id)
        other = make_agent(name="Other")
        headers = auth_headers(db_session.get(User, other.user_id))

        response = client.post(f"{REPORTS}/{report.id}/pick", headers=headers)
        assert response.status_code == 403
        assert response.json()["error_code"] == "NotReportOwner"

    def test_hotel_cancels_and_clears_agent(self, client, hotel_headers, agent, make_report):
        report = make_report(status=ReportStatus.ASSIGNED, assigned_agent_id=agent.id)
        response = client.post(f"{REPORTS}/{report.id}/cancel", headers=hotel_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["assigned_agent_id"] is None

    def test_delivered_cannot_be_cancelled(self, client, hotel_headers, agent, make_report):
        report = make_report(status=ReportStatus.DELIVERED, assigned_agent_id=agent.id)
        response = client.post(f"{REPORTS}/{report.id}/cancel", headers=hotel_headers)
        assert response.status_code == 409

    def test_admin_assigns(self, client, admin_headers, agent, make_report):
        report = make_report()
        response = client.post(f"{REPORTS}/{report.id}/assign", json={"agent_id": agent.id}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["assigned_agent_id"] == agent.id


# ============== Visibility ==============

class TestVisibility:
    def test_hotel_sees_only_its_reports(self, client, make_report, make_user, db_session):
        report = make_report()
        other_user = make_user(UserRole.HOTEL)
        db_session.add(Hotel(user_id=other_user.id, name="Other", contact="1", street="s", city="Pune"))
        db_session.commit()

        response = client.get(f"{REPORTS}/{report.id}", headers=auth_headers(other_user))
        assert response.status_code == 403

    def test_agent_sees_new_and_own(self, client, agent, agent_headers, make_agent, make_report):
        open_report = make_report()
        mine = make_report(status=ReportStatus.PICKED, assigned_agent_id=agent.id)
        theirs = make_report(status=ReportStatus.ASSIGNED, assigned_agent_id=make_agent(name="B").id)

        assert client.get(f"{REPORTS}/{open_report.id}", headers=agent_headers).status_code == 200
        assert client.get(f"{REPORTS}/{mine.id}", headers=agent_headers).status_code == 200
        assert client.get(f"{REPORTS}/{theirs.id}", headers=agent_headers).status_code == 403

    def test_available_filters_by_area(self, client, make_agent, make_report, db_session):
        make_report()
        elsewhere = make_agent(area="Mumbai")
        headers = auth_headers(db_session.get(User, elsewhere.user_id))
        assert client.get(f"{REPORTS}/available", headers=headers).json()["total"] == 0

    def test_assigned_listing(self, client, agent, agent_headers, make_report):
        make_report(status=ReportStatus.ASSIGNED, assigned_agent_id=agent.id)
        make_report(status=ReportStatus.DELIVERED, assigned_agent_id=agent.id)
        make_report()

        listing = client.get(f"{REPORTS}/assigned", params={"status": "assigned"}, headers=agent_headers).json()
        assert listing["total"] == 1

    def test_admin_listing_and_clear(self, client, admin_headers, agent, make_report):
        make_report()
        make_report(status=ReportStatus.CANCELLED)
        make_report(status=ReportStatus.DELIVERED, assigned_agent_id=agent.id)

        assert client.get(REPORTS, headers=admin_headers).json()["total"] == 3
        cleared = client.post(f"{REPORTS}/clear", json={"statuses": ["cancelled", "delivered"]}, headers=admin_headers)
        assert cleared.json() == {"removed": 2}
        assert client.get(REPORTS, headers=admin_headers).json()["total"] == 1

    def test_clear_is_admin_only(self, client, hotel_headers):
        assert client.post(f"{REPORTS}/clear", json={}, headers=hotel_headers).status_code == 403

    def test_missing_report(self, client, admin_headers):
        response = client.get(f"{REPORTS}/9999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["details"]["resource"] == "FoodReport"


# ============== Distributions ==============

BENEFICIARY = {"name": "Shelter Home", "street": "4 Station Road", "city": "Pune"}


class TestDistributions:
    def test_record_within_quantity(self, client, agent, agent_headers, make_report):
        report = make_report(status=ReportStatus.DELIVERED, assigned_agent_id=agent.id, quantity=10)
        beneficiary = client.post(f"{API}/beneficiaries", json=BENEFICIARY, headers=agent_headers).json()

        payload = {"food_report_id": report.id, "beggar_id": beneficiary["id"], "quantity_distributed": 6}
        assert client.post(f"{API}/distributions", json=payload, headers=agent_headers).status_code == 201

        payload["quantity_distributed"] = 5
        response = client.post(f"{API}/distributions", json=payload, headers=agent_headers)
        assert response.status_code == 422
        assert response.json()["details"] == {"field": "quantity_distributed"}

        listing = client.get(f"{API}/food-reports/{report.id}/distributions", headers=agent_headers).json()
        assert listing["total"] == 1

    def test_only_delivered_reports(self, client, agent, agent_headers, make_report):
        report = make_report(status=ReportStatus.PICKED, assigned_agent_id=agent.id)
        beneficiary = client.post(f"{API}/beneficiaries", json=BENEFICIARY, headers=agent_headers).json()
        payload = {"food_report_id": report.id, "beggar_id": beneficiary["id"], "quantity_distributed": 1}
        assert client.post(f"{API}/distributions", json=payload, headers=agent_headers).status_code == 409

    def test_hotel_cannot_add_beneficiary(self, client, hotel_headers):
        assert client.post(f"{API}/beneficiaries", json=BENEFICIARY, headers=hotel_headers).status_code == 403


# ============== Dashboards ==============

class TestDashboards:
    def test_hotel_dashboard(self, client, hotel_headers, make_report):
        make_report()
        make_report(status=ReportStatus.CANCELLED)
        body = client.get(f"{API}/dashboard/hotel", headers=hotel_headers).json()
        assert body["status_counts"]["new"] == 1
        assert body["status_counts"]["cancelled"] == 1
        assert len(body["active_reports"]) == 1

    def test_agent_dashboard(self, client, agent, agent_headers, make_report):
        make_report()
        make_report(status=ReportStatus.ASSIGNED, assigned_agent_id=agent.id)
        body = client.get(f"{API}/dashboard/agent", headers=agent_headers).json()
        assert body["available_tasks"] == 1
        assert len(body["active_tasks"]) == 1

    def test_admin_dashboard_requires_admin(self, client, agent_headers, admin_headers):
        assert client.get(f"{API}/dashboard/admin", headers=agent_headers).status_code == 403
        assert client.get(f"{API}/dashboard/admin", headers=admin_headers).status_code == 200


# ============== Notification inbox ==============

class TestInbox:
    def test_list_and_mark_read(self, client, db_session, hotel_user, hotel_headers):
        db_session.add_all(
            [
                Notification(user_id=hotel_user.id, title="Task Update", body="Picked", tag="task-1"),
                Notification(user_id=hotel_user.id, title="Task Update", body="Delivered", tag="task-2"),
            ]
        )
        db_session.commit()

        inbox = client.get(f"{API}/notifications", headers=hotel_headers).json()
        assert inbox["total"] == 2

        first_id = inbox["items"][0]["id"]
        assert client.post(f"{API}/notifications/{first_id}/read", headers=hotel_headers).json()["read"] is True
        unread = client.get(f"{API}/notifications", params={"unread_only": True}, headers=hotel_headers).json()
        assert unread["total"] == 1

        assert client.post(f"{API}/notifications/read-all", headers=hotel_headers).json() == {"updated": 1}

    def test_cannot_read_someone_elses(self, client, db_session, agent_headers, hotel_user):
        note = Notification(user_id=hotel_user.id, title="t", body="b", tag="x")
        db_session.add(note)
        db_session.commit()
        assert client.post(f"{API}/notifications/{note.id}/read", headers=agent_headers).status_code == 404

    def test_click_and_manifest(self, client):
        click = client.post(f"{API}/notifications/click", json={"action": "view", "data": {"task_id": 3}})
        assert click.json()["url"] == "/agent/tasks/3"
        assert client.get(f"{API}/notifications/offline-manifest").json()["strategy"] == "cache-first"

    def test_subscribe(self, client, agent_headers):
        response = client.post(
            f"{API}/notifications/subscriptions",
            json={"endpoint": "fcm-token-1", "keys": {"p256dh": "k", "auth": "a"}},
            headers=agent_headers,
        )
        assert response.status_code == 201
        assert response.json()["endpoint"] == "fcm-token-1"
