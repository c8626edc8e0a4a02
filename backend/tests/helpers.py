"""Test helpers shared by the test modules."""

from typing import Optional

from foodshare.core.rbac import TokenData, UserRole
from foodshare.core.security import create_access_token
from foodshare.models.user import User

API = "/api/v1"


def identity(user: User, role: Optional[UserRole] = None) -> TokenData:
    return TokenData(user_id=user.id, email=user.email, role=role or user.role)


def auth_headers(user: User) -> dict:
    """Bearer headers for ``user``."""
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value}
    )
    return {"Authorization": f"Bearer {token}"}
