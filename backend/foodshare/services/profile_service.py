"""Accounts, profiles and partner (hotel / delivery agent) profiles."""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from foodshare.core.exceptions import ResourceNotFound, ValidationError
from foodshare.core.rbac import UserRole
from foodshare.core.security import get_password_hash, verify_password
from foodshare.models.partner import DeliveryAgent, Hotel
from foodshare.models.user import Profile, User
from foodshare.schemas.auth import RegisterRequest
from foodshare.schemas.user import AgentCreate, AgentUpdate, HotelCreate, HotelUpdate, ProfileUpdate

logger = logging.getLogger(__name__)


def register_user(db: Session, data: RegisterRequest) -> User:
    """Create the identity and its profile row together."""
    email = data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise ValidationError("An account with this email already exists", field="email")

    user = User(email=email, password_hash=get_password_hash(data.password), role=data.role)
    db.add(user)
    db.flush()
    db.add(Profile(user_id=user.id, email=email, name=data.name, phone=data.phone, role=data.role))
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValidationError("An account with this email already exists", field="email") from e
    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.email == email.lower()).first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def get_profile(db: Session, user_id: int) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if profile is None:
        raise ResourceNotFound("Profile", user_id)
    return profile


def update_profile(db: Session, user_id: int, data: ProfileUpdate) -> Profile:
    profile = get_profile(db, user_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)
    db.commit()
    db.refresh(profile)
    return profile


# Hotels

def get_hotel(db: Session, user_id: int) -> Hotel:
    hotel = db.query(Hotel).filter(Hotel.user_id == user_id).first()
    if hotel is None:
        raise ResourceNotFound("Hotel profile", user_id)
    return hotel


def setup_hotel(db: Session, user_id: int, data: HotelCreate) -> Hotel:
    if db.query(Hotel).filter(Hotel.user_id == user_id).first():
        raise ValidationError("Hotel profile already exists for this account")
    hotel = Hotel(user_id=user_id, **data.model_dump())
    db.add(hotel)
    db.commit()
    db.refresh(hotel)
    logger.info(f"Hotel profile {hotel.id} created for user {user_id} in {hotel.city}")
    return hotel


def update_hotel(db: Session, user_id: int, data: HotelUpdate) -> Hotel:
    hotel = get_hotel(db, user_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(hotel, field, value)
    db.commit()
    db.refresh(hotel)
    return hotel


def list_hotels(db: Session) -> List[Hotel]:
    return db.query(Hotel).order_by(Hotel.name).all()


# Delivery agents

def get_agent(db: Session, user_id: int) -> DeliveryAgent:
    agent = db.query(DeliveryAgent).filter(DeliveryAgent.user_id == user_id).first()
    if agent is None:
        raise ResourceNotFound("Delivery agent profile", user_id)
    return agent


def setup_agent(db: Session, user_id: int, data: AgentCreate) -> DeliveryAgent:
    if db.query(DeliveryAgent).filter(DeliveryAgent.user_id == user_id).first():
        raise ValidationError("Delivery agent profile already exists for this account")
    if db.query(DeliveryAgent).filter(DeliveryAgent.unique_id == data.unique_id).first():
        raise ValidationError("Agent ID is already in use", field="unique_id")
    agent = DeliveryAgent(user_id=user_id, **data.model_dump())
    db.add(agent)
    db.commit()
    db.refresh(agent)
    logger.info(f"Delivery agent {agent.id} created for user {user_id} in {agent.area}/{agent.zone}")
    return agent


def update_agent(db: Session, user_id: int, data: AgentUpdate) -> DeliveryAgent:
    agent = get_agent(db, user_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(agent, field, value)
    db.commit()
    db.refresh(agent)
    return agent


def set_agent_active(db: Session, agent_id: int, is_active: bool) -> DeliveryAgent:
    agent = db.get(DeliveryAgent, agent_id)
    if agent is None:
        raise ResourceNotFound("DeliveryAgent", agent_id)
    agent.is_active = is_active
    db.commit()
    db.refresh(agent)
    logger.info(f"Delivery agent {agent_id} {'activated' if is_active else 'deactivated'}")
    return agent


def list_agents(db: Session, active_only: bool = False) -> List[DeliveryAgent]:
    q = db.query(DeliveryAgent)
    if active_only:
        q = q.filter(DeliveryAgent.is_active.is_(True))
    return q.order_by(DeliveryAgent.name).all()


def role_of(db: Session, user_id: int) -> Optional[UserRole]:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    return profile.role if profile else None
