"""Synthetic fleet for local demos.

Vessels and scenarios:
  ATLANTIC DAWN .. POLAR STAR: healthy sensors on a 0–1 scale
  NORDIC TIDE:                 scores reported on a 0–100 scale
  CORAL BAY:                   sensors installed, no health samples yet -> fallback score
  HARBOR PILOT:                no sensors at all -> score 0
Plus a handful of unlinked hybrid_health rows for the backfill job and a small
set of analytics rows so every CSV download has content.
"""
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from vesseliq.models.analytics import (
    DetectedOutlier,
    ModelAEOutput,
    ModelGRUOutput,
    ModelRegressionOutput,
    RawSensorReading,
)
from vesseliq.models.health_sample import HealthSample
from vesseliq.models.sensor import Sensor
from vesseliq.models.vessel import Vessel

logger = logging.getLogger(__name__)

SUBSYSTEMS = ["main_engine", "generator", "propulsion", "hvac"]

# (name, lat, lon, health centre, percent scale, has sensors, has samples)
DEMO_VESSELS = [
    ("ATLANTIC DAWN", 51.90, -8.50, 0.91, False, True, True),
    ("BALTIC SPIRIT", 59.44, 24.75, 0.84, False, True, True),
    ("MERIDIAN GRACE", 36.14, -5.35, 0.58, False, True, True),
    ("POLAR STAR", 69.65, 18.96, 0.33, False, True, True),
    ("NORDIC TIDE", 60.39, 5.32, 0.77, True, True, True),
    ("CORAL BAY", 1.26, 103.84, 0.0, False, True, False),
    ("HARBOR PILOT", 53.55, 9.99, 0.0, False, False, False),
]

SAMPLES_PER_SENSOR = 24
UNLINKED_ROWS = 12


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def seed_demo_fleet(db: Session, rng: random.Random | None = None) -> dict:
    """Insert the demo fleet. Uses flush, not commit; the caller owns the transaction."""
    rng = rng or random.Random(42)
    now = _utcnow()
    counts = {"vessels": 0, "sensors": 0, "samples": 0, "unlinked": 0, "analytics": 0}
    ct_major = 10
    sensor_ids: list[int] = []

    for name, lat, lon, centre, percent, has_sensors, has_samples in DEMO_VESSELS:
        vessel = Vessel(vessel_name=name, latitude=lat, longitude=lon)
        db.add(vessel)
        db.flush()
        counts["vessels"] += 1
        if not has_sensors:
            continue

        for minor, subsystem in enumerate(SUBSYSTEMS):
            tag = f"CT{ct_major}.{minor}"
            sensor = Sensor(
                vessel_id=vessel.vessel_id,
                raw_sensor_id=f"{name.split()[0]}-{tag}",
                pi_point_name=f"PI.{subsystem.upper()}.{tag}",
                subsystem=subsystem,
            )
            db.add(sensor)
            db.flush()
            counts["sensors"] += 1
            sensor_ids.append(sensor.sensor_id)
            if not has_samples:
                continue

            for i in range(SAMPLES_PER_SENSOR):
                score = min(max(rng.gauss(centre, 0.04), 0.0), 1.0)
                db.add(HealthSample(
                    sensor_id=sensor.sensor_id,
                    sensor_name=f"{subsystem} {tag}",
                    health_score=round(score * 100, 1) if percent else round(score, 4),
                    timestamp=now - timedelta(hours=2 * i, minutes=rng.randint(0, 59)),
                ))
                counts["samples"] += 1
        ct_major += 1

    # Rows the scoring job wrote before sensors were linked; half carry a resolvable tag
    for i in range(UNLINKED_ROWS):
        tag = f"CT{10 + i % 5}.{i % len(SUBSYSTEMS)}" if i % 2 == 0 else f"CT99.{i}"
        db.add(HealthSample(
            sensor_id=None,
            sensor_name=f"imported {tag}",
            health_score=round(rng.uniform(0.6, 0.95), 4),
            timestamp=now - timedelta(days=3, hours=i),
        ))
        counts["unlinked"] += 1

    for sid in sensor_ids[:6]:
        for i in range(5):
            ts = now - timedelta(hours=i)
            value = rng.gauss(50.0, 5.0)
            db.add(RawSensorReading(sensor_id=sid, value=round(value, 3), timestamp=ts))
            db.add(ModelAEOutput(sensor_id=sid, reconstruction_error=round(rng.uniform(0, 0.2), 4), timestamp=ts))
            db.add(ModelGRUOutput(sensor_id=sid, forecast_error=round(rng.uniform(0, 0.3), 4), timestamp=ts))
            db.add(ModelRegressionOutput(sensor_id=sid, predicted_value=round(value + rng.gauss(0, 1), 3), timestamp=ts))
            counts["analytics"] += 4
        db.add(DetectedOutlier(sensor_id=sid, value=round(rng.uniform(80, 95), 3), method="zscore",
                               score=round(rng.uniform(3, 5), 2), timestamp=now - timedelta(hours=1)))
        counts["analytics"] += 1

    db.flush()
    logger.info("Seeded demo fleet: %s", counts)
    return counts
