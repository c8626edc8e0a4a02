"""Role dashboard routes."""

from fastapi import APIRouter

from foodshare.core.rbac import RequireAdmin, RequireAgent, RequireHotel
from foodshare.db.session import DbSession
from foodshare.schemas.dashboard import AdminDashboard, AgentDashboard, HotelDashboard
from foodshare.services import dashboard_service, profile_service

router = APIRouter()


@router.get("/hotel", response_model=HotelDashboard)
def hotel_dashboard(current_user: RequireHotel, db: DbSession):
    hotel = profile_service.get_hotel(db, current_user.user_id)
    return dashboard_service.hotel_dashboard(db, hotel)


@router.get("/agent", response_model=AgentDashboard)
def agent_dashboard(current_user: RequireAgent, db: DbSession):
    agent = profile_service.get_agent(db, current_user.user_id)
    return dashboard_service.agent_dashboard(db, agent)


@router.get("/admin", response_model=AdminDashboard)
def admin_dashboard(current_user: RequireAdmin, db: DbSession):
    return dashboard_service.admin_dashboard(db)
