"""Schemas for the sensor-link backfill job."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class BackfillRequest(BaseModel):
    batch_size: Optional[int] = Field(None, ge=1, le=50000)
    pause_seconds: Optional[float] = Field(None, ge=0.0, le=10.0)
    max_batches: Optional[int] = Field(None, ge=1)


class BackfillResponse(BaseModel):
    total_updated: int
    total_skipped: int
    batches_processed: int
