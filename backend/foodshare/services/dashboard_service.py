"""Role dashboards."""

from typing import Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

from foodshare.models.beneficiary import Beneficiary, DistributionRecord
from foodshare.models.food_report import FoodReport, ReportStatus
from foodshare.models.partner import DeliveryAgent, Hotel

ACTIVE_STATUSES = (ReportStatus.NEW, ReportStatus.ASSIGNED, ReportStatus.PICKED)


def _status_counts(db: Session, *filters) -> Dict[str, int]:
    rows = db.query(FoodReport.status, func.count(FoodReport.id)).filter(*filters).group_by(FoodReport.status).all()
    counts = {status.value: 0 for status in ReportStatus}
    for status, count in rows:
        counts[ReportStatus(status).value] = count
    return counts


def hotel_dashboard(db: Session, hotel: Hotel) -> dict:
    active = (
        db.query(FoodReport)
        .filter(FoodReport.hotel_id == hotel.id, FoodReport.status.in_(ACTIVE_STATUSES))
        .order_by(FoodReport.pickup_time)
        .all()
    )
    return {
        "hotel_id": hotel.id,
        "total_food_saved": hotel.total_food_saved,
        "status_counts": _status_counts(db, FoodReport.hotel_id == hotel.id),
        "active_reports": active,
    }


def agent_dashboard(db: Session, agent: DeliveryAgent) -> dict:
    active = (
        db.query(FoodReport)
        .filter(
            FoodReport.assigned_agent_id == agent.id,
            FoodReport.status.in_((ReportStatus.ASSIGNED, ReportStatus.PICKED)),
        )
        .order_by(FoodReport.pickup_time)
        .all()
    )
    available = 0
    if agent.is_active:
        new_reports = (
            db.query(Hotel.city)
            .join(FoodReport, FoodReport.hotel_id == Hotel.id)
            .filter(FoodReport.status == ReportStatus.NEW)
            .all()
        )
        available = sum(1 for (city,) in new_reports if agent.serves(city))
    return {
        "agent_id": agent.id,
        "is_active": agent.is_active,
        "total_deliveries": agent.total_deliveries,
        "available_tasks": available,
        "active_tasks": active,
    }


def admin_dashboard(db: Session) -> dict:
    return {
        "hotels": db.query(func.count(Hotel.id)).scalar() or 0,
        "agents": db.query(func.count(DeliveryAgent.id)).scalar() or 0,
        "active_agents": db.query(func.count(DeliveryAgent.id)).filter(DeliveryAgent.is_active.is_(True)).scalar() or 0,
        "beneficiaries": db.query(func.count(Beneficiary.id)).scalar() or 0,
        "status_counts": _status_counts(db),
        "total_food_saved": db.query(func.coalesce(func.sum(Hotel.total_food_saved), 0)).scalar() or 0,
        "total_distributed": db.query(
            func.coalesce(func.sum(DistributionRecord.quantity_distributed), 0)
        ).scalar() or 0,
    }
