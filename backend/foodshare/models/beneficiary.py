"""Beneficiary locations and food distribution records."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from foodshare.db.base import Base, TimestampMixin


class Beneficiary(Base, TimestampMixin):
    """A person or place food may be delivered to. Not part of the lifecycle."""

    __tablename__ = "beggars"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    landmark: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    preferred_food_time: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class DistributionRecord(Base):
    """Portion of a delivered report handed to a beneficiary."""

    __tablename__ = "distribution_records"
    __table_args__ = (
        CheckConstraint("quantity_distributed > 0", name="ck_distribution_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    food_report_id: Mapped[int] = mapped_column(ForeignKey("food_reports.id"), nullable=False, index=True)
    agent_id: Mapped[int] = mapped_column(ForeignKey("delivery_agents.id"), nullable=False)
    beggar_id: Mapped[int] = mapped_column(ForeignKey("beggars.id"), nullable=False)
    quantity_distributed: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    distribution_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
