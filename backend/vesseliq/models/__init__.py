"""Import all models to register them with SQLAlchemy metadata."""
from vesseliq.models.base import Base
from vesseliq.models.vessel import Vessel
from vesseliq.models.sensor import Sensor
from vesseliq.models.health_sample import HealthSample
from vesseliq.models.analytics import (
    DetectedOutlier,
    ModelAEOutput,
    ModelGRUOutput,
    ModelRegressionOutput,
    RawSensorReading,
)

__all__ = [
    "Base",
    "Vessel",
    "Sensor",
    "HealthSample",
    "DetectedOutlier",
    "ModelAEOutput",
    "ModelGRUOutput",
    "ModelRegressionOutput",
    "RawSensorReading",
]
