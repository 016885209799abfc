"""Vessel entity — fleet vessel identity and last known position."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, Float, DateTime, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from vesseliq.models.base import Base


class Vessel(Base):
    __tablename__ = "vessels"
    __table_args__ = (
        CheckConstraint("latitude IS NULL OR (latitude >= -90 AND latitude <= 90)", name="ck_vessel_lat_bounds"),
        CheckConstraint("longitude IS NULL OR (longitude >= -180 AND longitude <= 180)", name="ck_vessel_lon_bounds"),
    )

    vessel_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    sensors: Mapped[list] = relationship("Sensor", back_populates="vessel", cascade="all, delete-orphan")
