"""Food report routes: creation, listings and lifecycle transitions."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query, status

from foodshare.api.deps import Lifecycle, Store
from foodshare.core.exceptions import NotReportOwner
from foodshare.core.rbac import (
    RequireAdmin,
    RequireAgent,
    RequireAnyRole,
    RequireHotel,
    RequireHotelOrAdmin,
    UserRole,
)
from foodshare.core.responses import list_response
from foodshare.models.food_report import FoodReport, ReportStatus
from foodshare.schemas.food_report import (
    AssignRequest,
    ClearReportsRequest,
    ClearReportsResponse,
    FoodReportCreate,
    FoodReportResponse,
)
from foodshare.services.lifecycle import hotel_for_user

logger = logging.getLogger(__name__)

router = APIRouter()


def _serialize(reports: List[FoodReport]) -> dict:
    return list_response([FoodReportResponse.model_validate(r).model_dump(mode="json") for r in reports])


@router.post("", response_model=FoodReportResponse, status_code=status.HTTP_201_CREATED)
def create_food_report(data: FoodReportCreate, current_user: RequireHotel, lifecycle: Lifecycle):
    """Report surplus food. Nearby active agents are notified."""
    return lifecycle.create_report(current_user, data)


@router.get("")
def list_food_reports(
    current_user: RequireAdmin,
    store: Store,
    report_status: Optional[List[ReportStatus]] = Query(None, alias="status"),
):
    return _serialize(store.list_reports(statuses=report_status))


@router.get("/mine")
def list_my_reports(
    current_user: RequireHotel,
    store: Store,
    report_status: Optional[List[ReportStatus]] = Query(None, alias="status"),
):
    hotel = hotel_for_user(store, current_user.user_id)
    return _serialize(store.list_reports(hotel_id=hotel.id, statuses=report_status))


@router.get("/available")
def list_available_reports(current_user: RequireAgent, lifecycle: Lifecycle):
    """New reports in the agent's area or zone. Inactive agents see none."""
    agent = lifecycle.agent_for(current_user)
    if not agent.is_active:
        return list_response([])
    reports = lifecycle.store.list_reports(statuses=[ReportStatus.NEW])
    return _serialize([r for r in reports if agent.serves(r.hotel.city)])


@router.get("/assigned")
def list_assigned_reports(
    current_user: RequireAgent,
    lifecycle: Lifecycle,
    report_status: Optional[List[ReportStatus]] = Query(None, alias="status"),
):
    agent = lifecycle.agent_for(current_user)
    return _serialize(lifecycle.store.list_reports(agent_id=agent.id, statuses=report_status))


@router.post("/clear", response_model=ClearReportsResponse)
def clear_reports(data: ClearReportsRequest, current_user: RequireAdmin, lifecycle: Lifecycle):
    """Maintenance: delete reports in the given statuses (all reports if none given)."""
    removed = lifecycle.clear_reports(current_user, data.statuses or None)
    return ClearReportsResponse(removed=removed)


@router.get("/{report_id}", response_model=FoodReportResponse)
def get_food_report(report_id: int, current_user: RequireAnyRole, store: Store):
    report = store.get(report_id)
    if current_user.role == UserRole.HOTEL:
        hotel = hotel_for_user(store, current_user.user_id)
        if report.hotel_id != hotel.id:
            raise NotReportOwner(report_id, "This food report belongs to another hotel")
    elif current_user.role == UserRole.AGENT and report.status != ReportStatus.NEW:
        agent = store.get_agent_for_user(current_user.user_id)
        if agent is None or report.assigned_agent_id != agent.id:
            raise NotReportOwner(report_id, "This pickup is assigned to another agent")
    return report


@router.post("/{report_id}/claim", response_model=FoodReportResponse)
def claim_report(report_id: int, current_user: RequireAgent, lifecycle: Lifecycle):
    """Take a new report. 409 with ``retryable`` if another agent got it first."""
    return lifecycle.claim(report_id, current_user)


@router.post("/{report_id}/assign", response_model=FoodReportResponse)
def assign_report(report_id: int, data: AssignRequest, current_user: RequireAdmin, lifecycle: Lifecycle):
    return lifecycle.assign(report_id, data.agent_id, current_user)


@router.post("/{report_id}/pick", response_model=FoodReportResponse)
def mark_picked(report_id: int, current_user: RequireAgent, lifecycle: Lifecycle):
    return lifecycle.mark_picked(report_id, current_user)


@router.post("/{report_id}/deliver", response_model=FoodReportResponse)
def mark_delivered(report_id: int, current_user: RequireAgent, lifecycle: Lifecycle):
    return lifecycle.mark_delivered(report_id, current_user)


@router.post("/{report_id}/cancel", response_model=FoodReportResponse)
def cancel_report(report_id: int, current_user: RequireHotelOrAdmin, lifecycle: Lifecycle):
    return lifecycle.cancel(report_id, current_user)
