# -*- coding: utf-8 -*-
"""
Congestion Model
================
Fuses one spot's signal snapshot into a single 0-100 congestion score.

Formula:
    S = w_park·P + w_pass·E + w_hist·H + w_wx·W + w_rep·R,   Σw = 1
    S = clamp(round(S), 0, 100)
    S = max(S, FLOOR)   if live parking occupancy >= CRITICAL

    Where:
        P : parking occupancy %            (live reading)
        E : pass entries / capacity × 100  (capacity 200 entries/hour by default)
        H : historical baseline for this hour/day
        W : weather severity of the WMO code (clear 0 ... thunderstorm 100)
        R : community report score

Defaults (parking .35, pass .30, historical .20, weather .10, reports .05) and the
parking override (>= 95% → at least 90) come from EngineConfig.

Missing readings degrade to neutral defaults instead of failing the computation:
pass 50, parking 50, weather 50, historical = weekday/peak heuristic, reports 0.
The parking override only fires on a live reading.

The model is deterministic: identical snapshots give identical scores.
"""
import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from crowdshift.config import EngineConfig
from crowdshift.exceptions import MalformedSnapshot
from crowdshift.forecast import HourlyPrediction, Trend
from crowdshift.history import default_historical_score
from crowdshift.shaping import TrafficLevel, classify
from crowdshift.signals import SignalSnapshot, day_code
from crowdshift.utils import clamp

NEUTRAL_PASS_SCORE = 50
NEUTRAL_PARKING_SCORE = 50
NEUTRAL_WEATHER_SCORE = 50
NEUTRAL_REPORT_SCORE = 0

# (low, high, severity) over WMO weather codes
WEATHER_SEVERITY: Tuple[Tuple[int, int, int], ...] = (
    (0, 0, 0),        # clear sky
    (1, 3, 20),       # mainly clear / partly cloudy / overcast
    (45, 48, 60),     # fog
    (51, 67, 80),     # drizzle / rain / freezing rain
    (71, 77, 90),     # snow
    (80, 82, 80),     # rain showers
    (85, 86, 90),     # snow showers
    (95, 99, 100),    # thunderstorm
)

_QUALITY_CONFIDENCE = {"HIGH": 0.9, "MEDIUM": 0.7, "LOW": 0.5}


@dataclass(frozen=True)
class CongestionFactors:
    pass_score: int
    parking_score: int
    weather_score: int
    historical_score: int
    report_score: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "pass_score": self.pass_score,
            "parking_score": self.parking_score,
            "weather_score": self.weather_score,
            "historical_score": self.historical_score,
            "report_score": self.report_score,
        }


@dataclass(frozen=True)
class CongestionScore:
    spot_id: str
    score: int
    level: TrafficLevel
    factors: CongestionFactors
    computed_at: float
    name: str = ""
    trend: Trend = Trend.STABLE
    prediction: Tuple[HourlyPrediction, ...] = ()
    data_quality: str = "HIGH"
    confidence: float = 0.9
    degraded_factors: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spot_id": self.spot_id,
            "name": self.name,
            "score": self.score,
            "level": self.level.value,
            "factors": self.factors.to_dict(),
            "trend": self.trend.value,
            "prediction": [p.to_dict() for p in self.prediction],
            "computed_at": self.computed_at,
            "data_quality": self.data_quality,
            "confidence": self.confidence,
            "degraded_factors": list(self.degraded_factors),
        }


def weather_severity(code: Optional[int]) -> int:
    if code is None:
        return NEUTRAL_WEATHER_SCORE
    for low, high, severity in WEATHER_SEVERITY:
        if low <= code <= high:
            return severity
    return NEUTRAL_WEATHER_SCORE


def _check_number(name: str, value, low=None, high=None, tolerance=0.5):
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedSnapshot(f"{name} must be numeric (got {value!r})")
    if math.isnan(value) or math.isinf(value):
        raise MalformedSnapshot(f"{name} must be finite (got {value!r})")
    if low is not None and value < low - tolerance:
        raise MalformedSnapshot(f"{name} below {low} (got {value})")
    if high is not None and value > high + tolerance:
        raise MalformedSnapshot(f"{name} above {high} (got {value})")


class CongestionModel:
    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    # ----- normalisation -----------------------------------------------------

    def pass_score(self, volume: Optional[float]) -> int:
        if volume is None:
            return NEUTRAL_PASS_SCORE
        return int(min(100, round(volume / self.config.pass_capacity_per_hour * 100)))

    @staticmethod
    def parking_score(occupancy_pct: Optional[float]) -> int:
        if occupancy_pct is None:
            return NEUTRAL_PARKING_SCORE
        return int(round(clamp(occupancy_pct)))

    @staticmethod
    def reading_score(value: Optional[float], neutral: int) -> int:
        if value is None:
            return neutral
        return int(round(clamp(value)))

    def validate(self, snapshot: SignalSnapshot):
        if not isinstance(snapshot, SignalSnapshot):
            raise MalformedSnapshot(f"Expected SignalSnapshot, got {type(snapshot).__name__}")
        _check_number("pass_volume", snapshot.pass_volume, low=0, tolerance=0)
        _check_number("parking_occupancy_pct", snapshot.parking_occupancy_pct, 0, 100)
        _check_number("historical_baseline", snapshot.historical_baseline, 0, 100)
        _check_number("report_score", snapshot.report_score, 0, 100)
        if snapshot.weather_code is not None and not isinstance(snapshot.weather_code, int):
            raise MalformedSnapshot(f"weather_code must be an int (got {snapshot.weather_code!r})")

    def factors(self, snapshot: SignalSnapshot, now: Optional[datetime] = None) -> CongestionFactors:
        if snapshot.historical_baseline is None:
            when = snapshot.collected_at or now
            historical = (
                default_historical_score(when.hour, day_code(when)) if when else 50
            )
        else:
            historical = self.reading_score(snapshot.historical_baseline, 50)

        return CongestionFactors(
            pass_score=self.pass_score(snapshot.pass_volume),
            parking_score=self.parking_score(snapshot.parking_occupancy_pct),
            weather_score=weather_severity(snapshot.weather_code),
            historical_score=historical,
            report_score=self.reading_score(snapshot.report_score, NEUTRAL_REPORT_SCORE),
        )

    @staticmethod
    def data_quality(snapshot: SignalSnapshot) -> str:
        live = sum(
            v is not None for v in (snapshot.pass_volume, snapshot.parking_occupancy_pct)
        )
        return {2: "HIGH", 1: "MEDIUM"}.get(live, "LOW")

    # ----- fusion ------------------------------------------------------------

    def composite(self, factors: CongestionFactors) -> int:
        w = self.config.weights
        weighted = (
            factors.parking_score * w.parking
            + factors.pass_score * w.passes
            + factors.historical_score * w.historical
            + factors.weather_score * w.weather
            + factors.report_score * w.reports
        )
        return int(round(clamp(weighted)))

    def compute_score(self, spot_id: str, snapshot: SignalSnapshot, *, name: str = "",
                      now: Optional[datetime] = None, computed_at: float = 0.0,
                      ) -> CongestionScore:
        self.validate(snapshot)
        factors = self.factors(snapshot, now)
        score = self.composite(factors)

        occupancy = snapshot.parking_occupancy_pct
        if occupancy is not None and occupancy >= self.config.parking_critical_pct:
            score = max(score, self.config.parking_floor_score)

        quality = self.data_quality(snapshot)
        return CongestionScore(
            spot_id=spot_id,
            name=name,
            score=score,
            level=classify(score, self.config.level_thresholds),
            factors=factors,
            computed_at=computed_at,
            data_quality=quality,
            confidence=_QUALITY_CONFIDENCE[quality],
            degraded_factors=snapshot.missing,
        )

    @staticmethod
    def with_forecast(score: CongestionScore, trend: Trend,
                      prediction: List[HourlyPrediction]) -> CongestionScore:
        return replace(score, trend=trend, prediction=tuple(prediction))
