"""Dashboard schemas."""

from typing import Dict, List

from pydantic import BaseModel

from foodshare.schemas.food_report import FoodReportResponse


class HotelDashboard(BaseModel):
    hotel_id: int
    total_food_saved: int
    status_counts: Dict[str, int]
    active_reports: List[FoodReportResponse]


class AgentDashboard(BaseModel):
    agent_id: int
    is_active: bool
    total_deliveries: int
    available_tasks: int
    active_tasks: List[FoodReportResponse]


class AdminDashboard(BaseModel):
    hotels: int
    agents: int
    active_agents: int
    beneficiaries: int
    status_counts: Dict[str, int]
    total_food_saved: int
    total_distributed: int
