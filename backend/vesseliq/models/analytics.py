"""Read-only analytics tables populated by the offline modelling pipeline.

Only the CSV download endpoints read these; nothing in the service writes them.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Float, String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from vesseliq.models.base import Base


class DetectedOutlier(Base):
    __tablename__ = "detected_outliers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sensor_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)


class ModelAEOutput(Base):
    __tablename__ = "model_ae_outputs"
    __table_args__ = (Index("ix_ae_sensor_ts", "sensor_id", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sensor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    reconstruction_error: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class ModelGRUOutput(Base):
    __tablename__ = "model_gru_outputs"
    __table_args__ = (Index("ix_gru_sensor_ts", "sensor_id", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sensor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    forecast_error: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class ModelRegressionOutput(Base):
    __tablename__ = "model_regression_outputs"
    __table_args__ = (Index("ix_reg_sensor_ts", "sensor_id", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sensor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    predicted_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class RawSensorReading(Base):
    __tablename__ = "raw_sensor_readings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sensor_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
