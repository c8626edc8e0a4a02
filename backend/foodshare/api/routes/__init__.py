"""API routes."""

from fastapi import APIRouter

from foodshare.api.routes import access, auth, beneficiaries, dashboard, food_reports, notifications, profiles

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(profiles.router, prefix="/profiles", tags=["profiles"])
api_router.include_router(food_reports.router, prefix="/food-reports", tags=["food-reports"])
api_router.include_router(beneficiaries.router, tags=["beneficiaries", "distributions"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(access.router, prefix="/access", tags=["access"])
