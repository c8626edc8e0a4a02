"""Beneficiary and distribution routes."""

from typing import Optional

from fastapi import APIRouter, status

from foodshare.api.deps import Lifecycle
from foodshare.core.rbac import RequireAgent, RequireAgentOrAdmin, RequireAnyRole
from foodshare.core.responses import list_response
from foodshare.db.session import DbSession
from foodshare.schemas.beneficiary import (
    BeneficiaryCreate,
    BeneficiaryResponse,
    DistributionCreate,
    DistributionResponse,
)
from foodshare.services import beneficiary_service

router = APIRouter()


@router.get("/beneficiaries")
def list_beneficiaries(current_user: RequireAnyRole, db: DbSession, city: Optional[str] = None):
    items = beneficiary_service.list_beneficiaries(db, city=city)
    return list_response([BeneficiaryResponse.model_validate(b).model_dump(mode="json") for b in items])


@router.post("/beneficiaries", response_model=BeneficiaryResponse, status_code=status.HTTP_201_CREATED)
def create_beneficiary(data: BeneficiaryCreate, current_user: RequireAgentOrAdmin, db: DbSession):
    return beneficiary_service.create_beneficiary(db, data)


@router.get("/beneficiaries/{beneficiary_id}", response_model=BeneficiaryResponse)
def get_beneficiary(beneficiary_id: int, current_user: RequireAnyRole, db: DbSession):
    return beneficiary_service.get_beneficiary(db, beneficiary_id)


@router.post("/distributions", response_model=DistributionResponse, status_code=status.HTTP_201_CREATED)
def record_distribution(data: DistributionCreate, current_user: RequireAgent, lifecycle: Lifecycle, db: DbSession):
    """Record servings of a delivered report handed to a beneficiary."""
    agent = lifecycle.agent_for(current_user)
    return beneficiary_service.record_distribution(db, agent, data)


@router.get("/food-reports/{report_id}/distributions")
def list_distributions(report_id: int, current_user: RequireAnyRole, lifecycle: Lifecycle, db: DbSession):
    lifecycle.store.get(report_id)
    records = beneficiary_service.list_distributions(db, report_id)
    return list_response([DistributionResponse.model_validate(r).model_dump(mode="json") for r in records])
