"""Profile routes: the caller's profile plus hotel and agent setup."""

from fastapi import APIRouter, status

from foodshare.core.rbac import RequireAdmin, RequireAgent, RequireAnyRole, RequireHotel
from foodshare.core.responses import list_response
from foodshare.db.session import DbSession
from foodshare.schemas.user import (
    AgentCreate,
    AgentResponse,
    AgentStatusUpdate,
    AgentUpdate,
    HotelCreate,
    HotelResponse,
    HotelUpdate,
    ProfileResponse,
    ProfileUpdate,
)
from foodshare.services import profile_service

router = APIRouter()


@router.get("/me", response_model=ProfileResponse)
def get_my_profile(current_user: RequireAnyRole, db: DbSession):
    return profile_service.get_profile(db, current_user.user_id)


@router.patch("/me", response_model=ProfileResponse)
def update_my_profile(data: ProfileUpdate, current_user: RequireAnyRole, db: DbSession):
    return profile_service.update_profile(db, current_user.user_id, data)


# Hotel

@router.post("/hotel", response_model=HotelResponse, status_code=status.HTTP_201_CREATED)
def setup_hotel(data: HotelCreate, current_user: RequireHotel, db: DbSession):
    return profile_service.setup_hotel(db, current_user.user_id, data)


@router.get("/hotel", response_model=HotelResponse)
def get_hotel(current_user: RequireHotel, db: DbSession):
    return profile_service.get_hotel(db, current_user.user_id)


@router.patch("/hotel", response_model=HotelResponse)
def update_hotel(data: HotelUpdate, current_user: RequireHotel, db: DbSession):
    return profile_service.update_hotel(db, current_user.user_id, data)


@router.get("/hotels")
def list_hotels(current_user: RequireAdmin, db: DbSession):
    hotels = profile_service.list_hotels(db)
    return list_response([HotelResponse.model_validate(h).model_dump(mode="json") for h in hotels])


# Delivery agent

@router.post("/agent", response_model=AgentResponse, status_code=status.HTTP_201_CREATED)
def setup_agent(data: AgentCreate, current_user: RequireAgent, db: DbSession):
    return profile_service.setup_agent(db, current_user.user_id, data)


@router.get("/agent", response_model=AgentResponse)
def get_agent(current_user: RequireAgent, db: DbSession):
    return profile_service.get_agent(db, current_user.user_id)


@router.patch("/agent", response_model=AgentResponse)
def update_agent(data: AgentUpdate, current_user: RequireAgent, db: DbSession):
    return profile_service.update_agent(db, current_user.user_id, data)


@router.get("/agents")
def list_agents(current_user: RequireAdmin, db: DbSession, active_only: bool = False):
    agents = profile_service.list_agents(db, active_only=active_only)
    return list_response([AgentResponse.model_validate(a).model_dump(mode="json") for a in agents])


@router.patch("/agents/{agent_id}/status", response_model=AgentResponse)
def set_agent_status(agent_id: int, data: AgentStatusUpdate, current_user: RequireAdmin, db: DbSession):
    return profile_service.set_agent_active(db, agent_id, data.is_active)
