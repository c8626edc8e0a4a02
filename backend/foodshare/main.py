"""FastAPI application entry point."""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.engine import make_url
from starlette.middleware.base import BaseHTTPMiddleware

from foodshare.core.rbac import UserRole, resolve_identity  # must load before core.access (circular import)
from foodshare.api.routes import api_router
from foodshare.core.config import settings
from foodshare.core.exceptions import FoodShareError
from foodshare.core.rate_limit import limiter
from foodshare.core.responses import error_body
from foodshare.core.security import decode_access_token
from foodshare.db.base import Base
from foodshare.db.session import SessionLocal, engine
from foodshare.models.food_report import FoodReport
from foodshare.models.partner import DeliveryAgent, Hotel
from foodshare.services.change_feed import ChangeFeed, FeedScope
from foodshare.services.connection_manager import ConnectionManager, user_channel
from foodshare.services.expiry_reminders import ExpiryReminderScheduler
from foodshare.services.notification_rules import REMINDER_STATUSES
from foodshare.services.notification_service import build_notification_service
from foodshare.services.realtime import RealtimeRouter, ReportDirectory

# Configure logging - use JSON format in production, human-readable in dev
root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, settings.log_level))
root_logger.handlers.clear()

if settings.debug:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
else:
    import json as _json
    import sys

    class JSONFormatter(logging.Formatter):
        def format(self, record):
            return _json.dumps({
                "ts": self.formatTime(record, self.datefmt),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "module": record.module,
                "line": record.lineno,
            })

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

root_logger.addHandler(handler)
logger = logging.getLogger(__name__)
request_logger = logging.getLogger("requests")

# Process-wide components, created once and handed to their users.
ws_manager = ConnectionManager()
change_feed = ChangeFeed()


class HTTPSRedirectMiddleware(BaseHTTPMiddleware):
    """Redirect HTTP to HTTPS in production (behind reverse proxy)."""

    async def dispatch(self, request: Request, call_next):
        if not settings.debug and request.headers.get("x-forwarded-proto") == "http":
            url = request.url.replace(scheme="https")
            return RedirectResponse(url=str(url), status_code=301)
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        csp_origins = " ".join(settings.cors_origins_list)
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "img-src 'self' data: blob: https:; "
            f"connect-src 'self' ws: wss: https://fcm.googleapis.com {csp_origins}; "
            "style-src 'self' 'unsafe-inline'; "
            "font-src 'self' data:;"
        )
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with its status and duration."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"
        request_logger.info(f"Request: {request.method} {request.url.path} - Client: {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            request_logger.error(
                f"Error: {request.method} {request.url.path} - "
                f"Exception: {str(e)} - Time: {process_time:.3f}s - Client: {client_ip}"
            )
            raise

        process_time = time.time() - start_time
        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            log_level,
            f"Response: {request.method} {request.url.path} - "
            f"Status: {response.status_code} - Time: {process_time:.3f}s - Client: {client_ip}"
        )
        return response


def _ensure_sqlite_directory() -> None:
    database = make_url(settings.database_url).database
    if database and database != ":memory:":
        directory = os.path.dirname(os.path.abspath(database))
        os.makedirs(directory, exist_ok=True)


def _rearm_reminders(reminders: ExpiryReminderScheduler, session_factory) -> int:
    """Timers do not survive restarts; re-arm them from the stored reports."""
    db = session_factory()
    try:
        reports = (
            db.query(FoodReport)
            .filter(FoodReport.status.in_(REMINDER_STATUSES), FoodReport.expiry_time.isnot(None))
            .all()
        )
        return sum(1 for r in reports if reminders.schedule(r.id, r.expiry_time))
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting FoodShare API")

    # Create tables if they don't exist (for SQLite dev)
    # In production with PostgreSQL, use Alembic migrations
    if settings.database_url.startswith("sqlite"):
        _ensure_sqlite_directory()
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created (SQLite mode)")

    notification_service = build_notification_service(
        app.state.session_factory, ws_manager, settings.firebase_credentials_path
    )
    notification_service.initialize()
    app.state.notification_service = notification_service

    router_task = None
    subscription = None
    reminders = None
    if app.state.start_realtime:
        router = RealtimeRouter(ReportDirectory(app.state.session_factory), notification_service)
        reminders = ExpiryReminderScheduler(router.remind)
        router.attach_reminders(reminders)
        subscription = change_feed.subscribe(FeedScope(role=UserRole.ADMIN))
        router_task = asyncio.create_task(router.run(subscription), name="realtime-router")
        try:
            armed = _rearm_reminders(reminders, app.state.session_factory)
            logger.info(f"Realtime router started, {armed} expiry reminders armed")
        except Exception as e:
            logger.warning(f"Could not re-arm expiry reminders: {e}")

    yield

    if subscription is not None:
        subscription.close()
    if router_task is not None:
        router_task.cancel()
        try:
            await router_task
        except asyncio.CancelledError:
            pass
    if reminders is not None:
        await reminders.shutdown()
    await notification_service.teardown()
    logger.info("Shutting down FoodShare API")


app = FastAPI(
    title="FoodShare API",
    description="Surplus food coordination between hotels, delivery agents and beneficiaries",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.state.session_factory = SessionLocal
app.state.change_feed = change_feed
app.state.start_realtime = True

# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(FoodShareError)
async def foodshare_error_handler(request: Request, exc: FoodShareError):
    log_level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(log_level, f"{request.method} {request.url.path} -> {exc.__class__.__name__}: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content=error_body(exc), headers=headers)


if not settings.debug:
    app.add_middleware(HTTPSRedirectMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
# CORS middleware - added last so it runs first (Starlette LIFO order)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,
)

app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
def health_check():
    """Basic liveness check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/health/ready")
def readiness_check(request: Request):
    """Readiness probe with database and realtime checks."""
    checks = {"database": "unknown", "websocket_manager": "unknown", "notifications": "unknown"}

    db = None
    try:
        db = request.app.state.session_factory()
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = "unhealthy"
    finally:
        if db:
            db.close()

    checks["websocket_manager"] = f"healthy ({ws_manager.get_connection_count()} connections)"
    notification_service = getattr(request.app.state, "notification_service", None)
    if notification_service is None:
        checks["notifications"] = "not started"
    else:
        state = notification_service.state.value
        checks["notifications"] = "healthy" if state == "ready" else state

    all_healthy = all(c.startswith("healthy") for c in checks.values())
    return {
        "status": "ready" if all_healthy else "degraded",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
        "feed_subscribers": change_feed.subscriber_count(),
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "FoodShare API", "docs": "/docs", "health": "/health"}


# ===== WebSocket =====

async def _authenticate_websocket(websocket: WebSocket, token: Optional[str]):
    """Resolve the identity of a WebSocket client, or close with 1008."""
    payload = decode_access_token(token) if token else None
    if not payload:
        cookie_token = websocket.cookies.get("access_token")
        if cookie_token:
            payload = decode_access_token(cookie_token)

    identity = None
    scope = None
    if payload:
        db = app.state.session_factory()
        try:
            identity = resolve_identity(db, payload)
            if identity is not None and identity.role is not None:
                scope = _feed_scope(db, identity)
        finally:
            db.close()

    if identity is None or scope is None:
        logger.warning("WebSocket rejected for 'reports': no valid identity or role")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None, None
    return identity, scope


def _feed_scope(db, identity) -> FeedScope:
    if identity.role == UserRole.HOTEL:
        hotel = db.query(Hotel).filter(Hotel.user_id == identity.user_id).first()
        return FeedScope(role=UserRole.HOTEL, hotel_id=hotel.id if hotel else None)
    if identity.role == UserRole.AGENT:
        agent = db.query(DeliveryAgent).filter(DeliveryAgent.user_id == identity.user_id).first()
        return FeedScope(role=UserRole.AGENT, agent_id=agent.id if agent else None)
    return FeedScope(role=UserRole.ADMIN)


@app.websocket("/ws/reports")
async def websocket_reports(websocket: WebSocket, token: Optional[str] = Query(None)):
    """Role-scoped food report changes plus the caller's notifications. Requires JWT token."""
    identity, scope = await _authenticate_websocket(websocket, token)
    if identity is None:
        return

    channel = user_channel(identity.user_id)
    if not await ws_manager.connect(websocket, channel, user_id=identity.user_id):
        return

    subscription = change_feed.subscribe(scope)

    async def forward_changes():
        async for event in subscription:
            await websocket.send_json(event.to_message())

    forwarder = asyncio.create_task(forward_changes())
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                ws_manager.update_ping(websocket)
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error in {channel}: {e}", exc_info=True)
    finally:
        subscription.close()
        forwarder.cancel()
        try:
            await forwarder
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Change forwarder for {channel} ended with: {e}")
        ws_manager.disconnect(websocket, channel)
