"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")

from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from foodshare.core.rbac import UserRole
from foodshare.core.security import get_password_hash
from foodshare.db.base import Base
from foodshare.db.session import get_db
from foodshare.main import app
# Import all models to ensure they're registered with Base.metadata
from foodshare.models import *
from foodshare.models.food_report import FoodReport, FoodType, ReportStatus
from foodshare.models.partner import DeliveryAgent, Hotel
from foodshare.models.user import Profile, User

from helpers import auth_headers

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session, session_factory) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.session_factory = session_factory
    app.state.start_realtime = False
    # Disable rate limiters during tests to avoid flaky failures
    from foodshare.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()
    app.state.start_realtime = True


@pytest.fixture
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory for accounts. ``with_profile=False`` leaves the role unresolved."""
    counter = {"n": 0}

    def _make(role: UserRole, email: Optional[str] = None, with_profile: bool = True) -> User:
        counter["n"] += 1
        email = email or f"{role.value}{counter['n']}@example.com"
        user = User(
            email=email,
            password_hash=get_password_hash("testpass123"),
            role=role,
            is_active=True,
        )
        db_session.add(user)
        db_session.flush()
        if with_profile:
            db_session.add(Profile(user_id=user.id, email=email, name=f"{role.value.title()} User", role=role))
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def hotel_user(make_user) -> User:
    return make_user(UserRole.HOTEL, email="hotel@example.com")


@pytest.fixture
def hotel(db_session: Session, hotel_user: User) -> Hotel:
    hotel = Hotel(
        user_id=hotel_user.id,
        name="Green Leaf Hotel",
        contact="+911234567890",
        street="12 MG Road",
        city="Pune",
        latitude=18.52,
        longitude=73.85,
    )
    db_session.add(hotel)
    db_session.commit()
    db_session.refresh(hotel)
    return hotel


@pytest.fixture
def make_agent(db_session: Session, make_user) -> Callable[..., DeliveryAgent]:
    def _make(area: str = "Pune", is_active: bool = True, name: str = "Agent") -> DeliveryAgent:
        user = make_user(UserRole.AGENT)
        agent = DeliveryAgent(
            user_id=user.id,
            name=name,
            contact="+919876543210",
            area=area,
            zone="West",
            unique_id=f"AG-{user.id:04d}",
            is_active=is_active,
        )
        db_session.add(agent)
        db_session.commit()
        db_session.refresh(agent)
        return agent

    return _make


@pytest.fixture
def agent(make_agent) -> DeliveryAgent:
    return make_agent(name="Asha")


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user(UserRole.ADMIN, email="admin@example.com")


@pytest.fixture
def make_report(db_session: Session, hotel: Hotel) -> Callable[..., FoodReport]:
    """Insert a report directly, bypassing the lifecycle."""
    def _make(
        status: ReportStatus = ReportStatus.NEW,
        assigned_agent_id: Optional[int] = None,
        quantity: int = 30,
        expiry_in: Optional[timedelta] = timedelta(hours=6),
    ) -> FoodReport:
        now = datetime.now(timezone.utc)
        report = FoodReport(
            hotel_id=hotel.id,
            assigned_agent_id=assigned_agent_id,
            food_type=FoodType.VEG,
            food_name="Dal",
            quantity=quantity,
            pickup_time=now,
            expiry_time=now + expiry_in if expiry_in is not None else None,
            status=status,
        )
        db_session.add(report)
        db_session.commit()
        db_session.refresh(report)
        return report

    return _make


@pytest.fixture
def hotel_headers(hotel, hotel_user) -> dict:
    return auth_headers(hotel_user)


@pytest.fixture
def agent_headers(agent, db_session) -> dict:
    return auth_headers(db_session.get(User, agent.user_id))


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return auth_headers(admin_user)
