"""Beneficiary and distribution schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class BeneficiaryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    landmark: Optional[str] = None
    contact: Optional[str] = Field(None, max_length=50)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    notes: Optional[str] = None
    preferred_food_time: Optional[str] = Field(None, max_length=50)


class BeneficiaryResponse(BeneficiaryCreate):
    id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class DistributionCreate(BaseModel):
    food_report_id: int
    beggar_id: int
    quantity_distributed: int
    notes: Optional[str] = None


class DistributionResponse(BaseModel):
    id: int
    food_report_id: int
    agent_id: int
    beggar_id: int
    quantity_distributed: int
    notes: Optional[str] = None
    distribution_timestamp: datetime

    model_config = {"from_attributes": True}
