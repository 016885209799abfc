"""Pydantic schemas for the vessel endpoints — response typing for FastAPI."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class VesselHealthRead(BaseModel):
    id: int
    name: str
    health: float = Field(ge=0.0, le=1.0)
    lastUpdate: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class VesselRead(BaseModel):
    vessel_id: int
    vessel_name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None


class SensorRead(BaseModel):
    sensor_id: int
    raw_sensor_id: Optional[str] = None
    pi_point_name: Optional[str] = None
    subsystem: Optional[str] = None
    created_at: Optional[datetime] = None


class VesselDetailRead(BaseModel):
    vessel: VesselRead
    sensors: list[SensorRead]
