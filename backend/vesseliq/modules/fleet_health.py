"""Fleet health aggregation — one health score per vessel for the fleet listing.

Pipeline:
1. Vessel loader: all vessels, ordered by name
2. Sensor mapper: sensor ids grouped by owning vessel
3. Health aggregator: per vessel, up to HEALTH_SAMPLE_LIMIT newest samples across
   its sensors, normalized to [0, 1] and averaged
4. Response assembler: vessel identity + aggregate, in vessel order

Vessels without sensors score exactly 0 with no timestamp. Vessels whose
sensors have no usable samples (or whose sample read failed) get a synthetic
score from the fallback provider, stamped with the current time.
"""
from __future__ import annotations

import logging
import math
import time
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vesseliq.config import settings
from vesseliq.models.health_sample import HealthSample
from vesseliq.models.sensor import Sensor
from vesseliq.models.vessel import Vessel
from vesseliq.modules.fallback_scores import FallbackScoreProvider, get_fallback_provider

logger = logging.getLogger(__name__)

SOURCE_SAMPLES = "samples"
SOURCE_FALLBACK = "fallback"
SOURCE_NO_SENSORS = "no_sensors"


@dataclass
class HealthAggregate:
    score: float
    last_update: Optional[datetime]
    source: str
    sample_count: int = 0


@dataclass
class VesselHealthSummary:
    vessel_id: int
    name: str
    health: float
    last_update: Optional[datetime]
    latitude: Optional[float]
    longitude: Optional[float]
    source: str

    def to_dict(self) -> dict:
        """Wire shape consumed by the dashboard."""
        return {
            "id": self.vessel_id,
            "name": self.name,
            "health": self.health,
            "lastUpdate": self.last_update.isoformat() if self.last_update else None,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


def normalize_health(raw: Any) -> Optional[float]:
    """Map a raw score onto [0, 1]; None when it cannot be used.

    Values above 1 are taken to be percentages. Anything that is not finite or
    still lands outside [0, 1] after scaling is rejected.
    """
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if value > 1:
        value = value / 100
    if not math.isfinite(value) or not (0.0 <= value <= 1.0):
        return None
    return value


def reduce_samples(samples: Sequence[Any]) -> Optional[HealthAggregate]:
    """Average the usable scores of ``samples`` (rows with health_score/timestamp).

    The reported timestamp is the newest one in ``samples`` as retrieved, even
    if that particular row was rejected by normalization.
    """
    valid = [v for v in (normalize_health(s.health_score) for s in samples) if v is not None]
    if not valid:
        return None
    timestamps = [s.timestamp for s in samples if s.timestamp is not None]
    mean = math.fsum(valid) / len(valid)
    return HealthAggregate(
        score=min(max(mean, 0.0), 1.0),
        last_update=max(timestamps) if timestamps else None,
        source=SOURCE_SAMPLES,
        sample_count=len(valid),
    )


def aggregate_from_samples(
    vessel_id: Any,
    samples: Sequence[Any],
    provider: FallbackScoreProvider,
) -> HealthAggregate:
    """Reduce samples for one vessel, synthesizing a score when none are usable."""
    result = reduce_samples(samples)
    if result is not None:
        if result.last_update is None:
            result.last_update = provider.now()
        return result
    return HealthAggregate(
        score=provider.score(vessel_id),
        last_update=provider.now(),
        source=SOURCE_FALLBACK,
    )


def map_sensors_to_vessels(sensors: Iterable[Any]) -> Dict[Any, List[Any]]:
    """Group sensor ids by owning vessel id. Order within a group is not meaningful."""
    mapping: Dict[Any, List[Any]] = defaultdict(list)
    for s in sensors:
        mapping[s.vessel_id].append(s.sensor_id)
    return dict(mapping)


def load_vessels(db: Session) -> List[Vessel]:
    return db.query(Vessel).order_by(Vessel.vessel_name).all()


def load_sensors(db: Session, vessel_ids: Sequence[Any]) -> List[Sensor]:
    if not vessel_ids:
        return []
    return db.query(Sensor).filter(Sensor.vessel_id.in_(list(vessel_ids))).all()


def fetch_recent_samples(db: Session, sensor_ids: Sequence[Any], limit: int) -> list:
    """Newest-first health samples across ``sensor_ids``, capped at ``limit`` rows."""
    if not sensor_ids:
        return []
    return (
        db.query(HealthSample.health_score, HealthSample.timestamp)
        .filter(HealthSample.sensor_id.in_(list(sensor_ids)))
        .order_by(HealthSample.timestamp.desc())
        .limit(limit)
        .all()
    )


def _fetch_sequential(
    db: Session,
    sensor_map: Dict[Any, List[Any]],
    vessel_ids: Sequence[Any],
    limit: int,
    timeout: Optional[float],
) -> Dict[Any, list]:
    deadline = time.monotonic() + timeout if timeout else None
    results: Dict[Any, list] = {}
    for vid in vessel_ids:
        sensor_ids = sensor_map.get(vid)
        if not sensor_ids:
            continue
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning("Health sample fetch deadline passed — vessel %s uses fallback", vid)
            results[vid] = []
            continue
        try:
            results[vid] = fetch_recent_samples(db, sensor_ids, limit)
        except SQLAlchemyError as e:
            logger.warning("Health sample fetch failed for vessel %s: %s", vid, e)
            db.rollback()
            results[vid] = []
    return results


def _fetch_parallel(
    session_factory: Callable[[], Session],
    sensor_map: Dict[Any, List[Any]],
    vessel_ids: Sequence[Any],
    limit: int,
    workers: int,
    timeout: Optional[float],
) -> Dict[Any, list]:
    def _task(sensor_ids):
        session = session_factory()
        try:
            return fetch_recent_samples(session, sensor_ids, limit)
        finally:
            session.close()

    results: Dict[Any, list] = {}
    executor = ThreadPoolExecutor(max_workers=workers)
    try:
        futures = {
            executor.submit(_task, sensor_map[vid]): vid
            for vid in vessel_ids
            if sensor_map.get(vid)
        }
        done, not_done = wait(futures, timeout=timeout)
        for fut in done:
            vid = futures[fut]
            try:
                results[vid] = fut.result()
            except SQLAlchemyError as e:
                logger.warning("Health sample fetch failed for vessel %s: %s", vid, e)
                results[vid] = []
        for fut in not_done:
            fut.cancel()
            logger.warning("Health sample fetch timed out for vessel %s — using fallback", futures[fut])
            results[futures[fut]] = []
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return results


def assemble_summaries(
    vessels: Sequence[Any],
    aggregates: Dict[Any, HealthAggregate],
) -> List[VesselHealthSummary]:
    """Merge vessel identity with its aggregate, preserving vessel order."""
    out = []
    for v in vessels:
        agg = aggregates.get(v.vessel_id) or HealthAggregate(0.0, None, SOURCE_NO_SENSORS)
        out.append(VesselHealthSummary(
            vessel_id=v.vessel_id,
            name=v.vessel_name,
            health=agg.score,
            last_update=agg.last_update,
            latitude=v.latitude,
            longitude=v.longitude,
            source=agg.source,
        ))
    return out


def summarize_fleet(
    vessels: Sequence[Any],
    sensors: Iterable[Any],
    samples_by_vessel: Dict[Any, Sequence[Any]],
    provider: FallbackScoreProvider,
) -> List[VesselHealthSummary]:
    """Pure aggregation step: vessels + sensors + fetched samples -> summaries."""
    sensor_map = map_sensors_to_vessels(sensors)
    aggregates: Dict[Any, HealthAggregate] = {}
    for v in vessels:
        if not sensor_map.get(v.vessel_id):
            aggregates[v.vessel_id] = HealthAggregate(0.0, None, SOURCE_NO_SENSORS)
            continue
        aggregates[v.vessel_id] = aggregate_from_samples(
            v.vessel_id, samples_by_vessel.get(v.vessel_id, []), provider
        )
    return assemble_summaries(vessels, aggregates)


def compute_fleet_health(
    db: Session,
    provider: Optional[FallbackScoreProvider] = None,
    sample_limit: Optional[int] = None,
    workers: Optional[int] = None,
    timeout: Optional[float] = None,
    session_factory: Optional[Callable[[], Session]] = None,
) -> List[VesselHealthSummary]:
    """Build the fleet health listing.

    Vessel and sensor reads propagate store errors to the caller. Per-vessel
    sample reads never do: a failed or timed-out read is logged and that vessel
    takes the fallback path.

    Per-vessel reads run in a thread pool only when ``workers > 1`` and a
    ``session_factory`` is supplied, since sessions are not shared across threads.
    """
    provider = provider or get_fallback_provider()
    limit = sample_limit if sample_limit is not None else settings.HEALTH_SAMPLE_LIMIT
    workers = workers if workers is not None else settings.HEALTH_FETCH_WORKERS
    if timeout is None:
        timeout = settings.HEALTH_REQUEST_TIMEOUT_SECONDS

    vessels = load_vessels(db)
    if not vessels:
        return []
    vessel_ids = [v.vessel_id for v in vessels]
    sensors = load_sensors(db, vessel_ids)
    sensor_map = map_sensors_to_vessels(sensors)

    t0 = time.monotonic()
    if workers > 1 and session_factory is not None:
        samples_by_vessel = _fetch_parallel(session_factory, sensor_map, vessel_ids, limit, workers, timeout)
    else:
        samples_by_vessel = _fetch_sequential(db, sensor_map, vessel_ids, limit, timeout)

    summaries = summarize_fleet(vessels, sensors, samples_by_vessel, provider)
    fallback_count = sum(1 for s in summaries if s.source == SOURCE_FALLBACK)
    logger.info(
        "Fleet health: %d vessels, %d sensors, %d fallback scores (%.1f ms sample fetch)",
        len(summaries), len(sensors), fallback_count, (time.monotonic() - t0) * 1000,
    )
    return summaries


def get_vessel_detail(db: Session, vessel_id: int) -> Optional[dict]:
    """Vessel row plus its sensors ordered by subsystem; None if the vessel is unknown."""
    vessel = db.query(Vessel).filter(Vessel.vessel_id == vessel_id).first()
    if vessel is None:
        return None
    sensors = (
        db.query(Sensor)
        .filter(Sensor.vessel_id == vessel_id)
        .order_by(Sensor.subsystem, Sensor.sensor_id)
        .all()
    )
    return {
        "vessel": {
            "vessel_id": vessel.vessel_id,
            "vessel_name": vessel.vessel_name,
            "latitude": vessel.latitude,
            "longitude": vessel.longitude,
            "created_at": vessel.created_at.isoformat() if vessel.created_at else None,
        },
        "sensors": [
            {
                "sensor_id": s.sensor_id,
                "raw_sensor_id": s.raw_sensor_id,
                "pi_point_name": s.pi_point_name,
                "subsystem": s.subsystem,
                "created_at": s.created_at.isoformat() if s.created_at else None,
            }
            for s in sensors
        ],
    }
