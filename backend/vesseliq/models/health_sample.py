"""HealthSample entity — per-sensor health scores written by the external scoring job.

Scores arrive on either a 0–1 or a 0–100 scale; normalization happens at
aggregation time. Rows are inserted with ``sensor_name`` only and linked to a
sensor later by the backfill job.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Float, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from vesseliq.models.base import Base


class HealthSample(Base):
    __tablename__ = "hybrid_health"
    __table_args__ = (
        Index("ix_hybrid_health_sensor_ts", "sensor_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sensor_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("sensors.sensor_id"), nullable=True, index=True
    )
    sensor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    health_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
