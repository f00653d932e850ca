# -*- coding: utf-8 -*-
"""
Engine configuration.

All tunables of the scoring pipeline live here instead of inline literals:
refresh cadence, cache staleness, level thresholds, fusion weights, the reroute
cutoff for alternatives and the time-of-day multiplier anchors.

EngineConfig is a frozen dataclass. Runtime calibration (/api/calibrate) builds a new
instance with dataclasses.replace() and swaps it in, so readers never see a half
updated configuration.
"""
import math
import os
from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(frozen=True)
class CongestionWeights:
    parking: float = 0.35
    passes: float = 0.30
    historical: float = 0.20
    weather: float = 0.10
    reports: float = 0.05

    def __post_init__(self):
        values = (self.parking, self.passes, self.historical, self.weather, self.reports)
        if any(v < 0 for v in values):
            raise ValueError("Congestion weights must be non-negative")
        if not math.isclose(sum(values), 1.0, abs_tol=1e-6):
            raise ValueError(f"Congestion weights must sum to 1.0 (got {sum(values):.4f})")


@dataclass(frozen=True)
class LevelThresholds:
    """Lower bounds (inclusive) of YELLOW, ORANGE and RED."""
    yellow: int = 40
    orange: int = 70
    red: int = 85

    def __post_init__(self):
        if not (0 < self.yellow < self.orange < self.red <= 100):
            raise ValueError(
                f"Thresholds must satisfy 0 < yellow < orange < red <= 100 "
                f"(got {self.yellow}/{self.orange}/{self.red})"
            )


@dataclass(frozen=True)
class EngineConfig:
    refresh_interval_seconds: float = 10.0
    staleness_seconds: float = 10.0
    alternative_cutoff: int = 50
    max_alternatives: int = 3
    level_thresholds: LevelThresholds = field(default_factory=LevelThresholds)
    weights: CongestionWeights = field(default_factory=CongestionWeights)
    pass_capacity_per_hour: float = 200.0
    parking_critical_pct: float = 95.0
    parking_floor_score: int = 90
    forecast_hours: int = 3
    peak_multipliers: Dict[str, float] = field(default_factory=lambda: {
        "morning_peak": 1.5,
        "afternoon_peak": 1.4,
        "shoulder": 1.2,
        "off_peak": 0.6,
    })
    # Ooty town centre
    region_center: Tuple[float, float] = (11.41, 76.69)
    reading_max_age_seconds: float = 900.0
    timezone: str = "Asia/Kolkata"

    def __post_init__(self):
        if self.refresh_interval_seconds <= 0:
            raise ValueError("refresh_interval_seconds must be positive")
        if self.staleness_seconds < 0:
            raise ValueError("staleness_seconds must not be negative")
        if not (0 <= self.alternative_cutoff <= 100):
            raise ValueError("alternative_cutoff must be within 0..100")
        if self.max_alternatives < 1:
            raise ValueError("max_alternatives must be at least 1")

    @property
    def reroute_threshold(self) -> int:
        """Score at which rerouting starts (the ORANGE lower bound)."""
        return self.level_thresholds.orange

    @property
    def refresh_interval_ms(self) -> int:
        return int(self.refresh_interval_seconds * 1000)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from CROWDSHIFT_* environment variables."""
        defaults = cls()

        def _float(name, default):
            raw = os.getenv(name)
            return float(raw) if raw not in (None, "") else default

        def _int(name, default):
            raw = os.getenv(name)
            return int(raw) if raw not in (None, "") else default

        thresholds = LevelThresholds(
            yellow=_int("CROWDSHIFT_YELLOW_THRESHOLD", defaults.level_thresholds.yellow),
            orange=_int("CROWDSHIFT_ORANGE_THRESHOLD", defaults.level_thresholds.orange),
            red=_int("CROWDSHIFT_RED_THRESHOLD", defaults.level_thresholds.red),
        )
        return cls(
            refresh_interval_seconds=_float(
                "CROWDSHIFT_REFRESH_INTERVAL", defaults.refresh_interval_seconds
            ),
            staleness_seconds=_float("CROWDSHIFT_STALENESS", defaults.staleness_seconds),
            alternative_cutoff=_int("CROWDSHIFT_ALTERNATIVE_CUTOFF", defaults.alternative_cutoff),
            max_alternatives=_int("CROWDSHIFT_MAX_ALTERNATIVES", defaults.max_alternatives),
            level_thresholds=thresholds,
            pass_capacity_per_hour=_float(
                "CROWDSHIFT_PASS_CAPACITY", defaults.pass_capacity_per_hour
            ),
            reading_max_age_seconds=_float(
                "CROWDSHIFT_READING_MAX_AGE", defaults.reading_max_age_seconds
            ),
            timezone=os.getenv("CROWDSHIFT_TIMEZONE") or defaults.timezone,
        )
