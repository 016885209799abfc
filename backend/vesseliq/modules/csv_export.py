"""CSV downloads of the analytics tables.

Every field is quoted, the header comes from the result-set columns (so an
empty table still yields a header line), None is written as an empty field and
datetimes as ISO-8601.
"""
from __future__ import annotations

import csv
import io
import logging
import math
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Sequence

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from vesseliq.config import settings
from vesseliq.models.analytics import (
    DetectedOutlier,
    ModelAEOutput,
    ModelGRUOutput,
    ModelRegressionOutput,
    RawSensorReading,
)

logger = logging.getLogger(__name__)

EXPORT_FILENAMES = {
    "anomalies": "detected_outliers.csv",
    "model": "model_outputs.csv",
    "stats": "sensor_statistics.csv",
}


def _format_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def iter_csv(columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> Iterator[str]:
    """Yield the CSV text line by line, header first."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(columns)
    yield output.getvalue()
    output.seek(0)
    output.truncate(0)

    for row in rows:
        writer.writerow([_format_value(v) for v in row])
        yield output.getvalue()
        output.seek(0)
        output.truncate(0)


def rows_to_csv(columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    return "".join(iter_csv(columns, rows))


def _anomalies(db: Session, limit: int) -> tuple[list[str], list]:
    cols = [c for c in DetectedOutlier.__table__.columns]
    result = db.execute(
        select(*cols).order_by(DetectedOutlier.timestamp.desc()).limit(limit)
    )
    return list(result.keys()), result.all()


def _model_outputs(db: Session, limit: int) -> tuple[list[str], list]:
    ae, gru, reg = ModelAEOutput, ModelGRUOutput, ModelRegressionOutput
    stmt = (
        select(
            ae.sensor_id,
            ae.reconstruction_error,
            gru.forecast_error,
            reg.predicted_value,
            ae.timestamp,
        )
        .outerjoin(gru, and_(gru.sensor_id == ae.sensor_id, gru.timestamp == ae.timestamp))
        .outerjoin(reg, and_(reg.sensor_id == ae.sensor_id, reg.timestamp == ae.timestamp))
        .order_by(ae.timestamp.desc())
        .limit(limit)
    )
    result = db.execute(stmt)
    return list(result.keys()), result.all()


def _sample_stddev(n: int, total: float | None, total_sq: float | None) -> float | None:
    """Sample standard deviation from count, sum and sum of squares (None below n=2)."""
    if n is None or n < 2 or total is None or total_sq is None:
        return None
    variance = (total_sq - (total * total) / n) / (n - 1)
    return math.sqrt(max(variance, 0.0))


def _sensor_stats(db: Session, limit: int) -> tuple[list[str], list]:
    r = RawSensorReading
    stmt = (
        select(
            r.sensor_id,
            func.avg(r.value),
            func.min(r.value),
            func.max(r.value),
            func.count(),
            func.count(r.value),
            func.sum(r.value),
            func.sum(r.value * r.value),
        )
        .group_by(r.sensor_id)
        .order_by(r.sensor_id)
        .limit(limit)
    )
    columns = ["sensor_id", "avg_value", "min_value", "max_value", "std_value", "count"]
    rows = []
    # count includes rows with a NULL value; the deviation uses only non-null values
    for sensor_id, avg_v, min_v, max_v, n_rows, n_values, total, total_sq in db.execute(stmt).all():
        rows.append((sensor_id, avg_v, min_v, max_v, _sample_stddev(n_values, total, total_sq), n_rows))
    return columns, rows


_DATASETS = {
    "anomalies": _anomalies,
    "model": _model_outputs,
    "stats": _sensor_stats,
}


def fetch_export(db: Session, dataset: str, limit: int | None = None) -> tuple[list[str], list]:
    """Columns and rows for one export dataset. Raises ValueError for unknown names."""
    if dataset not in _DATASETS:
        raise ValueError(f"Unknown export dataset '{dataset}'. Choose from: {', '.join(sorted(_DATASETS))}")
    limit = limit if limit is not None else settings.EXPORT_ROW_LIMIT
    columns, rows = _DATASETS[dataset](db, limit)
    logger.info("Export %s: %d rows", dataset, len(rows))
    return columns, rows
