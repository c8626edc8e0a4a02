"""Role-Based Access Control (RBAC) utilities."""

from enum import Enum
from typing import Annotated, Optional

from fastapi import Depends, Request

from foodshare.core.exceptions import AuthenticationRequired, FoodShareError
from foodshare.core.security import decode_access_token
from foodshare.db.session import DbSession


class UserRole(str, Enum):
    """User roles for RBAC."""

    HOTEL = "hotel"
    AGENT = "agent"
    ADMIN = "admin"


ALL_ROLES = frozenset(UserRole)


class RoleResolutionPending(FoodShareError):
    """Identity is authenticated but its role has not been resolved yet."""

    status_code = 503

    def __init__(self):
        super().__init__(
            "Please wait while we verify your permissions.",
            details={"retryable": True},
        )


class TokenData:
    """Resolved identity of the caller.

    Attributes:
        user_id: The user's database ID.
        email: The user's email address.
        role: The role from the user's profile, or None while it is unresolved.
        id: Alias for user_id.
    """

    def __init__(self, user_id: int, email: str, role: Optional[UserRole]):
        self.user_id = user_id
        self.id = user_id
        self.email = email
        self.role = role

    def __repr__(self) -> str:
        return f"TokenData(user_id={self.user_id}, role={self.role})"


def _extract_payload(request: Request) -> Optional[dict]:
    """Read the JWT from the Authorization header, falling back to the cookie."""
    payload = None

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None:
        cookie_token = request.cookies.get("access_token")
        if cookie_token:
            payload = decode_access_token(cookie_token)

    return payload


def resolve_identity(db, payload: Optional[dict]) -> Optional[TokenData]:
    """Turn a token payload into an identity, loading the role from the profile.

    Returns None when there is no usable authenticated user. The role stays
    None when the account exists but its profile row has not been written.
    """
    from foodshare.models.user import Profile, User

    if not payload or not payload.get("sub") or not payload.get("email"):
        return None

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        return None

    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    role = profile.role if profile is not None else None
    return TokenData(user_id=user.id, email=user.email, role=role)


async def get_optional_current_user(request: Request, db: DbSession) -> Optional[TokenData]:
    """Get the current identity if a valid token is provided, otherwise None."""
    return resolve_identity(db, _extract_payload(request))


async def get_current_user(
    identity: Annotated[Optional[TokenData], Depends(get_optional_current_user)]
) -> TokenData:
    """Get the current authenticated identity or raise AuthenticationRequired."""
    if identity is None:
        raise AuthenticationRequired()
    return identity


def require_roles(*roles: UserRole):
    """Dependency that runs the access gate for the given role set."""
    from foodshare.core.access import Allow, Pending, authorize

    allowed = frozenset(roles)

    async def role_checker(
        identity: Annotated[Optional[TokenData], Depends(get_optional_current_user)]
    ) -> TokenData:
        decision = authorize(identity, allowed)
        if isinstance(decision, Allow):
            return identity
        if isinstance(decision, Pending):
            raise RoleResolutionPending()
        raise decision.to_exception()

    return role_checker


CurrentUser = Annotated[TokenData, Depends(get_current_user)]
OptionalCurrentUser = Annotated[Optional[TokenData], Depends(get_optional_current_user)]
RequireHotel = Annotated[TokenData, Depends(require_roles(UserRole.HOTEL))]
RequireAgent = Annotated[TokenData, Depends(require_roles(UserRole.AGENT))]
RequireAdmin = Annotated[TokenData, Depends(require_roles(UserRole.ADMIN))]
RequireHotelOrAdmin = Annotated[TokenData, Depends(require_roles(UserRole.HOTEL, UserRole.ADMIN))]
RequireAgentOrAdmin = Annotated[TokenData, Depends(require_roles(UserRole.AGENT, UserRole.ADMIN))]
RequireAnyRole = Annotated[TokenData, Depends(require_roles(*ALL_ROLES))]
