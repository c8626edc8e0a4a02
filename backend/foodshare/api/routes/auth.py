"""Authentication routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from foodshare.core.rate_limit import limiter
from foodshare.core.rbac import CurrentUser
from foodshare.core.security import create_access_token
from foodshare.db.session import DbSession
from foodshare.models.user import Profile
from foodshare.schemas.auth import LoginRequest, RegisterRequest, Token
from foodshare.schemas.user import MeResponse, ProfileResponse
from foodshare.services import profile_service

logger = logging.getLogger("auth")

router = APIRouter()


def _token_for(user) -> Token:
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value}
    )
    return Token(access_token=token, role=user.role)


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, data: RegisterRequest, db: DbSession):
    """Create an account and its profile, and sign the user in."""
    client_ip = request.client.host if request.client else "unknown"
    user = profile_service.register_user(db, data)
    logger.info(f"New user registered: {user.email} (ID: {user.id}, role: {user.role.value}) from IP: {client_ip}")
    return _token_for(user)


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
def login(request: Request, login_request: LoginRequest, db: DbSession):
    """Authenticate user and return JWT token."""
    client_ip = request.client.host if request.client else "unknown"
    user = profile_service.authenticate(db, login_request.email, login_request.password)

    if user is None:
        logger.warning(f"Failed login attempt for email: {login_request.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        logger.warning(f"Login attempt for inactive user: {login_request.email} (ID: {user.id}) from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    logger.info(f"Successful login: {user.email} (ID: {user.id}, role: {user.role.value}) from IP: {client_ip}")
    return _token_for(user)


@router.get("/me", response_model=MeResponse)
@limiter.limit("60/minute")
def get_current_user_info(request: Request, current_user: CurrentUser, db: DbSession):
    """Current identity with its profile. ``role`` is null while the profile is missing."""
    profile = db.query(Profile).filter(Profile.user_id == current_user.user_id).first()
    return MeResponse(
        id=current_user.user_id,
        email=current_user.email,
        role=current_user.role,
        profile=ProfileResponse.model_validate(profile) if profile else None,
    )
