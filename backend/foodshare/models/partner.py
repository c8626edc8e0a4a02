"""Hotel and delivery agent profiles."""

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import Boolean, Date, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from foodshare.db.base import Base, TimestampMixin


class Hotel(Base, TimestampMixin):
    """A restaurant or hotel that reports surplus food."""

    __tablename__ = "hotels"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact: Mapped[str] = mapped_column(String(50), nullable=False)
    street: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    landmark: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_food_saved: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)


class DeliveryAgent(Base, TimestampMixin):
    """A delivery agent who claims and fulfils pickups."""

    __tablename__ = "delivery_agents"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact: Mapped[str] = mapped_column(String(50), nullable=False)
    area: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    zone: Mapped[str] = mapped_column(String(100), nullable=False)
    unique_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="1", nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_deliveries: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    def serves(self, city: str) -> bool:
        """True when the agent's area or zone covers ``city``."""
        wanted = (city or "").strip().casefold()
        return wanted in {(self.area or "").strip().casefold(), (self.zone or "").strip().casefold()}
