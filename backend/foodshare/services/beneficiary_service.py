"""Beneficiary records and food distributions."""

import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from foodshare.core.exceptions import InvalidTransition, NotReportOwner, ResourceNotFound, ValidationError
from foodshare.models.beneficiary import Beneficiary, DistributionRecord
from foodshare.models.food_report import FoodReport, ReportStatus
from foodshare.models.partner import DeliveryAgent
from foodshare.schemas.beneficiary import BeneficiaryCreate, DistributionCreate

logger = logging.getLogger(__name__)


def list_beneficiaries(db: Session, city: Optional[str] = None) -> List[Beneficiary]:
    q = db.query(Beneficiary)
    if city:
        q = q.filter(func.lower(Beneficiary.city) == city.strip().lower())
    return q.order_by(Beneficiary.name).all()


def create_beneficiary(db: Session, data: BeneficiaryCreate) -> Beneficiary:
    beneficiary = Beneficiary(**data.model_dump())
    db.add(beneficiary)
    db.commit()
    db.refresh(beneficiary)
    return beneficiary


def get_beneficiary(db: Session, beneficiary_id: int) -> Beneficiary:
    beneficiary = db.get(Beneficiary, beneficiary_id)
    if beneficiary is None:
        raise ResourceNotFound("Beneficiary", beneficiary_id)
    return beneficiary


def distributed_quantity(db: Session, report_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(DistributionRecord.quantity_distributed), 0))
        .filter(DistributionRecord.food_report_id == report_id)
        .scalar()
    )
    return int(total or 0)


def record_distribution(db: Session, agent: DeliveryAgent, data: DistributionCreate) -> DistributionRecord:
    """Record food from a delivered report handed to a beneficiary.

    Only the agent who delivered the report may record it, and the recorded
    portions may not add up to more than the report's quantity.
    """
    if data.quantity_distributed <= 0:
        raise ValidationError("Distributed quantity must be positive", field="quantity_distributed")

    report = db.get(FoodReport, data.food_report_id)
    if report is None:
        raise ResourceNotFound("FoodReport", data.food_report_id)
    if report.assigned_agent_id != agent.id:
        raise NotReportOwner(report.id, "Only the delivering agent can record distributions")
    if report.status != ReportStatus.DELIVERED:
        raise InvalidTransition(report.id, report.status.value, "distribute")
    get_beneficiary(db, data.beggar_id)

    remaining = report.quantity - distributed_quantity(db, report.id)
    if data.quantity_distributed > remaining:
        raise ValidationError(
            f"Only {remaining} servings of this report are left to distribute",
            field="quantity_distributed",
        )

    record = DistributionRecord(
        food_report_id=report.id,
        agent_id=agent.id,
        beggar_id=data.beggar_id,
        quantity_distributed=data.quantity_distributed,
        notes=data.notes,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(
        f"Agent {agent.id} distributed {record.quantity_distributed} servings of report {report.id} "
        f"to beneficiary {record.beggar_id}"
    )
    return record


def list_distributions(db: Session, report_id: int) -> List[DistributionRecord]:
    return (
        db.query(DistributionRecord)
        .filter(DistributionRecord.food_report_id == report_id)
        .order_by(DistributionRecord.distribution_timestamp, DistributionRecord.id)
        .all()
    )
