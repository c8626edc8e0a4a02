"""Shared route dependencies."""

from typing import Annotated, Optional

from fastapi import Depends, Request

from foodshare.db.session import DbSession
from foodshare.services.change_feed import ChangeFeed
from foodshare.services.lifecycle import FoodReportLifecycle
from foodshare.services.notification_service import NotificationService
from foodshare.services.report_store import ReportStore


def get_change_feed(request: Request) -> Optional[ChangeFeed]:
    return getattr(request.app.state, "change_feed", None)


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_report_store(db: DbSession) -> ReportStore:
    return ReportStore(db)


def get_lifecycle(
    store: Annotated[ReportStore, Depends(get_report_store)],
    feed: Annotated[Optional[ChangeFeed], Depends(get_change_feed)],
) -> FoodReportLifecycle:
    return FoodReportLifecycle(store, feed)


Store = Annotated[ReportStore, Depends(get_report_store)]
Lifecycle = Annotated[FoodReportLifecycle, Depends(get_lifecycle)]
Notifications = Annotated[NotificationService, Depends(get_notification_service)]
