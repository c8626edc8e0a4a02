# Services module

from foodshare.services.change_feed import ChangeEvent, ChangeFeed, FeedScope
from foodshare.services.lifecycle import FoodReportLifecycle
from foodshare.services.notification_rules import NotificationIntent, dispatch
from foodshare.services.notification_service import NotificationService, build_notification_service
from foodshare.services.realtime import RealtimeRouter, ReportDirectory
from foodshare.services.report_store import ReportStore, UpdateResult

__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "FeedScope",
    "FoodReportLifecycle",
    "NotificationIntent",
    "dispatch",
    "NotificationService",
    "build_notification_service",
    "RealtimeRouter",
    "ReportDirectory",
    "ReportStore",
    "UpdateResult",
]
