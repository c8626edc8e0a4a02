"""SQLAlchemy models."""

from foodshare.models.user import User, Profile
from foodshare.models.partner import Hotel, DeliveryAgent
from foodshare.models.food_report import FoodReport, FoodType, ReportStatus
from foodshare.models.beneficiary import Beneficiary, DistributionRecord
from foodshare.models.notification import Notification, PushSubscription

__all__ = [
    "User",
    "Profile",
    "Hotel",
    "DeliveryAgent",
    "FoodReport",
    "FoodType",
    "ReportStatus",
    "Beneficiary",
    "DistributionRecord",
    "Notification",
    "PushSubscription",
]
