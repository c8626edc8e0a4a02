"""Authentication schemas."""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from foodshare.core.rbac import UserRole


class RegisterRequest(BaseModel):
    """Sign-up request body. The role cannot be changed later."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    role: UserRole


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    role: Optional[UserRole] = None


class TokenPayload(BaseModel):
    """JWT token payload."""

    sub: str
    email: str
    role: str
    exp: int
