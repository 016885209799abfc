"""Sensor entity — a monitored measurement point installed on a vessel."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from vesseliq.models.base import Base


class Sensor(Base):
    __tablename__ = "sensors"

    sensor_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[int] = mapped_column(Integer, ForeignKey("vessels.vessel_id"), nullable=False, index=True)
    # Historian tags; the backfill job matches CTnn.n codes against both
    raw_sensor_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pi_point_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    subsystem: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    vessel: Mapped["Vessel"] = relationship("Vessel", back_populates="sensors")
