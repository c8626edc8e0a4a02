"""Food report model and its enumerations."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from foodshare.db.base import Base, TimestampMixin, str_enum
from foodshare.models.partner import DeliveryAgent, Hotel


class FoodType(str, Enum):
    VEG = "veg"
    NON_VEG = "non_veg"
    SNACKS = "snacks"
    BEVERAGES = "beverages"
    DAIRY = "dairy"
    BAKERY = "bakery"


class ReportStatus(str, Enum):
    NEW = "new"
    ASSIGNED = "assigned"
    PICKED = "picked"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ReportStatus.DELIVERED, ReportStatus.CANCELLED)


class FoodReport(Base, TimestampMixin):
    """A single surplus-food donation and its lifecycle state."""

    __tablename__ = "food_reports"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_food_reports_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    hotel_id: Mapped[int] = mapped_column(ForeignKey("hotels.id"), nullable=False, index=True)
    assigned_agent_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("delivery_agents.id"), nullable=True, index=True
    )
    food_type: Mapped[FoodType] = mapped_column(str_enum(FoodType), nullable=False)
    food_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    pickup_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiry_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[ReportStatus] = mapped_column(
        str_enum(ReportStatus), default=ReportStatus.NEW, nullable=False, index=True
    )

    hotel: Mapped[Hotel] = relationship()
    assigned_agent: Mapped[Optional[DeliveryAgent]] = relationship()
