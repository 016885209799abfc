"""Synthetic health scores for vessels whose sensors have produced no usable samples.

The fleet listing must always show a score, so a vessel with sensors but no
valid health samples gets a placeholder drawn from one of three bands:

  critical  seed < 5    -> [0.25, 0.40)
  watch     seed < 15   -> [0.45, 0.70)
  healthy   otherwise   -> [0.75, 0.95)

where ``seed = vessel_id % 100``. The band is stable per vessel; the position
inside the band is jittered on every call. Band edges live in
config/health_bands.yaml so they can be tuned without a code change.
"""
from __future__ import annotations

import logging
import math
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import yaml

from vesseliq.config import settings

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent


@dataclass(frozen=True)
class FallbackBand:
    name: str
    max_seed: int
    low: float
    high: float

    def contains(self, score: float) -> bool:
        return self.low <= score < self.high


DEFAULT_SEED_MODULUS = 100
DEFAULT_BANDS: tuple[FallbackBand, ...] = (
    FallbackBand("critical", 5, 0.25, 0.40),
    FallbackBand("watch", 15, 0.45, 0.70),
    FallbackBand("healthy", 100, 0.75, 0.95),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def vessel_seed(vessel_id: Any, modulus: int = DEFAULT_SEED_MODULUS) -> int:
    """Bucket a vessel id into [0, modulus). Non-numeric ids fall into bucket 0."""
    try:
        return int(vessel_id) % modulus
    except (TypeError, ValueError):
        return 0


def validate_bands(bands: list[FallbackBand], modulus: int) -> None:
    """Raise ValueError unless bands are ordered, in [0, 1], and cover every seed."""
    if modulus < 1:
        raise ValueError(f"seed_modulus must be a positive integer, got {modulus}")
    if not bands:
        raise ValueError("at least one fallback band is required")
    previous_max = 0
    for band in bands:
        if not (0.0 <= band.low < band.high <= 1.0):
            raise ValueError(f"band '{band.name}' must satisfy 0 <= low < high <= 1")
        if band.max_seed <= previous_max:
            raise ValueError(f"band '{band.name}' max_seed must increase monotonically")
        previous_max = band.max_seed
    if previous_max < modulus:
        raise ValueError(f"last band must cover seeds up to {modulus}")


def resolve_config_path(path: str | Path) -> Path:
    """Relative paths that do not exist under the working directory resolve against the project root."""
    config_path = Path(path)
    if config_path.is_absolute() or config_path.exists():
        return config_path
    return _PROJECT_ROOT / config_path


def load_band_config(path: str | Path | None = None) -> tuple[list[FallbackBand], int]:
    """Read fallback bands from YAML, falling back to the built-in policy.

    A missing file or an invalid band table is logged and replaced by
    DEFAULT_BANDS; it never stops the service from starting.
    """
    config_path = resolve_config_path(path or settings.HEALTH_BANDS_CONFIG)
    if not config_path.exists():
        logger.warning("health_bands.yaml not found at %s — using default bands", config_path)
        return list(DEFAULT_BANDS), DEFAULT_SEED_MODULUS

    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        modulus = int(raw.get("seed_modulus", DEFAULT_SEED_MODULUS))
        bands = [
            FallbackBand(
                name=str(entry["name"]),
                max_seed=int(entry["max_seed"]),
                low=float(entry["low"]),
                high=float(entry["high"]),
            )
            for entry in raw.get("fallback_bands", [])
        ]
        validate_bands(bands, modulus)
    except (yaml.YAMLError, AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning("Invalid band config in %s (%s) — using default bands", config_path, e)
        return list(DEFAULT_BANDS), DEFAULT_SEED_MODULUS
    return bands, modulus


class FallbackScoreProvider(ABC):
    """Strategy for scoring a vessel that has sensors but no usable samples."""

    @abstractmethod
    def score(self, vessel_id: Any) -> float:
        """Return a score in [0, 1]."""
        ...

    @abstractmethod
    def now(self) -> datetime:
        """Timestamp reported alongside a synthesized score."""
        ...


class BandedFallbackProvider(FallbackScoreProvider):
    """Id-derived band with random jitter inside it.

    Pass a seeded ``random.Random`` and a fixed ``clock`` to make it
    reproducible; by default both are live.
    """

    def __init__(
        self,
        bands: list[FallbackBand] | None = None,
        modulus: int = DEFAULT_SEED_MODULUS,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.bands = list(bands) if bands is not None else list(DEFAULT_BANDS)
        validate_bands(self.bands, modulus)
        self.modulus = modulus
        self._rng = rng or random.Random()
        self._clock = clock or _utcnow

    @classmethod
    def from_config(cls, path: str | Path | None = None, **kwargs) -> "BandedFallbackProvider":
        bands, modulus = load_band_config(path)
        return cls(bands=bands, modulus=modulus, **kwargs)

    def band_for(self, vessel_id: Any) -> FallbackBand:
        seed = vessel_seed(vessel_id, self.modulus)
        for band in self.bands:
            if seed < band.max_seed:
                return band
        return self.bands[-1]

    def score(self, vessel_id: Any) -> float:
        band = self.band_for(vessel_id)
        value = band.low + self._rng.random() * (band.high - band.low)
        # random() < 1.0, but float rounding can still land on the upper edge
        return min(value, math.nextafter(band.high, band.low))

    def now(self) -> datetime:
        return self._clock()


_DEFAULT_PROVIDER: FallbackScoreProvider | None = None


def get_fallback_provider() -> FallbackScoreProvider:
    """Process-wide provider built from HEALTH_BANDS_CONFIG on first use."""
    global _DEFAULT_PROVIDER
    if _DEFAULT_PROVIDER is None:
        _DEFAULT_PROVIDER = BandedFallbackProvider.from_config()
    return _DEFAULT_PROVIDER


def reset_fallback_provider() -> None:
    """Drop the cached provider so the next call re-reads the band config."""
    global _DEFAULT_PROVIDER
    _DEFAULT_PROVIDER = None
