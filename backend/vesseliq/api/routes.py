from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path
from fastapi.responses import StreamingResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from vesseliq.config import settings
from vesseliq.database import SessionLocal, get_db
from vesseliq.schemas.backfill import BackfillRequest, BackfillResponse
from vesseliq.schemas.error import ErrorResponse
from vesseliq.schemas.vessel import VesselDetailRead, VesselHealthRead

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Vessels
# ---------------------------------------------------------------------------

@router.get(
    "/vessels",
    tags=["vessels"],
    response_model=list[VesselHealthRead],
    responses={503: {"model": ErrorResponse}},
)
def list_vessels(db: Session = Depends(get_db)):
    """Fleet listing with one aggregate health score (0–1) per vessel."""
    from vesseliq.modules.fleet_health import compute_fleet_health

    summaries = compute_fleet_health(db, session_factory=SessionLocal)
    return [s.to_dict() for s in summaries]


@router.get(
    "/vessels/{vessel_id}",
    tags=["vessels"],
    response_model=VesselDetailRead,
    responses={404: {"model": ErrorResponse}},
)
def get_vessel(vessel_id: int = Path(ge=1), db: Session = Depends(get_db)):
    """Vessel identity plus its sensors, ordered by subsystem."""
    from vesseliq.modules.fleet_health import get_vessel_detail

    detail = get_vessel_detail(db, vessel_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Vessel not found")
    return detail


# ---------------------------------------------------------------------------
# CSV downloads
# ---------------------------------------------------------------------------

@router.get("/download/{dataset}", tags=["export"])
def download_csv(dataset: str, db: Session = Depends(get_db)):
    """Analytics table as a fully quoted CSV attachment (anomalies, model, stats)."""
    from vesseliq.modules.csv_export import EXPORT_FILENAMES, fetch_export, iter_csv

    if dataset not in EXPORT_FILENAMES:
        raise HTTPException(status_code=404, detail=f"Unknown dataset '{dataset}'")

    columns, rows = fetch_export(db, dataset)
    return StreamingResponse(
        iter_csv(columns, rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAMES[dataset]}"'},
    )


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------

@router.post("/hybrid/backfill", tags=["maintenance"], response_model=BackfillResponse)
def backfill_hybrid_sensors(
    body: Optional[BackfillRequest] = Body(None),
    db: Session = Depends(get_db),
):
    """Link unlinked hybrid_health rows to sensors via their CT tag."""
    from vesseliq.modules.sensor_backfill import backfill_sensor_links

    body = body or BackfillRequest()
    result = backfill_sensor_links(
        db,
        batch_size=body.batch_size,
        pause_seconds=body.pause_seconds,
        max_batches=body.max_batches,
    )
    return result.to_dict()


@router.get("/health", tags=["system"])
def health_check(db: Session = Depends(get_db)):
    """Health check with DB latency measurement."""
    t0 = time.time()
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {e}"
    latency_ms = round((time.time() - t0) * 1000, 1)

    return {
        "status": "ok",
        "version": settings.VERSION,
        "database": {"status": db_status, "latency_ms": latency_ms},
    }
