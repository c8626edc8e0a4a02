"""User, profile and partner profile schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from foodshare.core.rbac import UserRole


class ProfileResponse(BaseModel):
    id: int
    user_id: int
    email: EmailStr
    name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: UserRole

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    """Editable profile fields. Role and email are not editable."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    avatar_url: Optional[str] = Field(None, max_length=500)


class MeResponse(BaseModel):
    id: int
    email: EmailStr
    role: Optional[UserRole] = None
    profile: Optional[ProfileResponse] = None


# Hotel

class HotelBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    contact: str = Field(..., min_length=1, max_length=50)
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    landmark: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    image_url: Optional[str] = None


class HotelCreate(HotelBase):
    pass


class HotelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact: Optional[str] = Field(None, min_length=1, max_length=50)
    street: Optional[str] = None
    city: Optional[str] = None
    landmark: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    image_url: Optional[str] = None


class HotelResponse(HotelBase):
    id: int
    user_id: int
    rating: Optional[float] = None
    total_food_saved: int = 0
    created_at: datetime

    model_config = {"from_attributes": True}


# Delivery agent

class AgentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    contact: str = Field(..., min_length=1, max_length=50)
    area: str = Field(..., min_length=1, max_length=100)
    zone: str = Field(..., min_length=1, max_length=100)
    unique_id: str = Field(..., min_length=1, max_length=50)
    date_of_birth: Optional[date] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class AgentCreate(AgentBase):
    pass


class AgentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact: Optional[str] = Field(None, min_length=1, max_length=50)
    area: Optional[str] = None
    zone: Optional[str] = None
    date_of_birth: Optional[date] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class AgentStatusUpdate(BaseModel):
    is_active: bool


class AgentResponse(AgentBase):
    id: int
    user_id: int
    is_active: bool
    rating: Optional[float] = None
    total_deliveries: int = 0
    created_at: datetime

    model_config = {"from_attributes": True}
