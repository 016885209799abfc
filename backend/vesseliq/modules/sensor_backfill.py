"""Link orphaned health samples to sensors.

The scoring job writes hybrid_health rows keyed only by a free-text
``sensor_name`` such as ``"Main engine CT12.3 exhaust temp"``. The CT tag in
that name also appears in the historian tag of exactly one sensor
(``pi_point_name`` or ``raw_sensor_id``), which is how a row finds its owner.

Rows are walked in id order with keyset pagination, so rows that cannot be
linked are skipped once and never fetched again.
"""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from vesseliq.config import settings
from vesseliq.models.health_sample import HealthSample
from vesseliq.models.sensor import Sensor

logger = logging.getLogger(__name__)

_CT_TAG_RE = re.compile(r"CT\d+\.\d+", re.IGNORECASE)


@dataclass
class BackfillResult:
    total_updated: int = 0
    total_skipped: int = 0
    batches_processed: int = 0

    def to_dict(self) -> dict:
        return {
            "total_updated": self.total_updated,
            "total_skipped": self.total_skipped,
            "batches_processed": self.batches_processed,
        }


def extract_ct_tag(sensor_name: Optional[str]) -> Optional[str]:
    """First ``CTnn.n`` tag in ``sensor_name`` (case-insensitive), or None."""
    if not sensor_name:
        return None
    match = _CT_TAG_RE.search(sensor_name)
    return match.group(0) if match else None


def find_sensor_for_tag(db: Session, tag: str) -> Optional[int]:
    pattern = f"%{tag}%"
    row = (
        db.query(Sensor.sensor_id)
        .filter(or_(Sensor.pi_point_name.ilike(pattern), Sensor.raw_sensor_id.ilike(pattern)))
        .order_by(Sensor.sensor_id)
        .first()
    )
    return row[0] if row else None


def backfill_sensor_links(
    db: Session,
    batch_size: Optional[int] = None,
    pause_seconds: Optional[float] = None,
    max_batches: Optional[int] = None,
) -> BackfillResult:
    """Set ``sensor_id`` on every unlinked hybrid_health row that names a known sensor.

    Commits once per batch and sleeps ``pause_seconds`` between batches to keep
    load on the store down. Tag lookups are cached for the duration of the run.
    """
    batch_size = batch_size or settings.BACKFILL_BATCH_SIZE
    if pause_seconds is None:
        pause_seconds = settings.BACKFILL_PAUSE_SECONDS

    result = BackfillResult()
    tag_cache: dict[str, Optional[int]] = {}
    last_id = 0

    while max_batches is None or result.batches_processed < max_batches:
        rows = (
            db.query(HealthSample)
            .filter(HealthSample.sensor_id.is_(None), HealthSample.id > last_id)
            .order_by(HealthSample.id)
            .limit(batch_size)
            .all()
        )
        if not rows:
            break

        batch_no = result.batches_processed + 1
        updated = skipped = 0
        for row in rows:
            tag = extract_ct_tag(row.sensor_name)
            if not tag:
                skipped += 1
                continue
            key = tag.upper()
            if key not in tag_cache:
                tag_cache[key] = find_sensor_for_tag(db, tag)
            sensor_id = tag_cache[key]
            if sensor_id is None:
                skipped += 1
                continue
            row.sensor_id = sensor_id
            updated += 1

        last_id = rows[-1].id
        db.commit()

        result.total_updated += updated
        result.total_skipped += skipped
        result.batches_processed = batch_no
        logger.info(
            "Backfill batch #%d: %d updated, %d skipped (running totals: %d updated, %d skipped)",
            batch_no, updated, skipped, result.total_updated, result.total_skipped,
        )

        if len(rows) < batch_size:
            break
        if pause_seconds:
            time.sleep(pause_seconds)

    logger.info(
        "Backfill complete: %d updated, %d skipped in %d batches",
        result.total_updated, result.total_skipped, result.batches_processed,
    )
    return result
