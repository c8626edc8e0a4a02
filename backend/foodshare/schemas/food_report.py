"""Food report schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from foodshare.models.food_report import FoodType, ReportStatus


class FoodReportCreate(BaseModel):
    """New surplus food report.

    Quantity and time ordering are checked by the lifecycle so that direct
    callers get the same errors as API clients.
    """

    food_type: FoodType
    food_name: str = Field(..., min_length=1, max_length=255)
    quantity: int
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)
    pickup_time: datetime
    expiry_time: Optional[datetime] = None


class AssignRequest(BaseModel):
    agent_id: int


class ClearReportsRequest(BaseModel):
    """Statuses to clear. Empty means every report."""

    statuses: List[ReportStatus] = []


class ClearReportsResponse(BaseModel):
    removed: int


class HotelSummary(BaseModel):
    id: int
    name: str
    city: str
    street: str
    contact: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    model_config = {"from_attributes": True}


class FoodReportResponse(BaseModel):
    id: int
    hotel_id: int
    assigned_agent_id: Optional[int] = None
    food_type: FoodType
    food_name: str
    quantity: int
    description: Optional[str] = None
    image_url: Optional[str] = None
    pickup_time: datetime
    expiry_time: Optional[datetime] = None
    status: ReportStatus
    created_at: datetime
    updated_at: datetime
    hotel: Optional[HotelSummary] = None

    model_config = {"from_attributes": True}
