# -*- coding: utf-8 -*-
"""
Forecast Module
===============
Projects a spot's current score a few hours ahead with a time-of-day multiplier curve.

    predicted(h + k) = clamp(current × m(h + k) / m(h), 0, 100)

m(h) is the multiplier of the visitor band hour h falls into:

    morning_peak   10:00-12:59   (default 1.5)
    afternoon_peak 15:00-17:59   (default 1.4)
    shoulder       other hours of 09:00-18:59 (default 1.2)
    off_peak       everything else (default 0.6)

Band values come from EngineConfig.peak_multipliers so /api/calibrate changes them.
Confidence decays linearly with distance from now and drops further on hours where the
band changes (entering or leaving a peak).
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from crowdshift.config import EngineConfig, LevelThresholds
from crowdshift.shaping import classify

MAX_HOURS_AHEAD = 24
BASE_CONFIDENCE = 0.9
CONFIDENCE_DECAY = 0.1
TRANSITION_PENALTY = 0.8
MIN_CONFIDENCE = 0.05


class Trend(str, Enum):
    RISING = "RISING"
    FALLING = "FALLING"
    STABLE = "STABLE"


@dataclass(frozen=True)
class HourlyPrediction:
    hour_offset: int
    hour: int
    predicted_score: int
    confidence: float

    def to_dict(self):
        return {
            "hour_offset": self.hour_offset,
            "hour": self.hour,
            "predicted_score": self.predicted_score,
            "confidence": self.confidence,
        }


def hour_band(hour: int) -> str:
    h = hour % 24
    if 10 <= h <= 12:
        return "morning_peak"
    if 15 <= h <= 17:
        return "afternoon_peak"
    if 9 <= h <= 18:
        return "shoulder"
    return "off_peak"


class ForecastModule:
    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def multiplier_curve(self, multipliers: Optional[Dict[str, float]] = None) -> np.ndarray:
        """24 hourly multipliers built from the band values."""
        m = multipliers if multipliers is not None else self.config.peak_multipliers
        return np.array([m.get(hour_band(h), 1.0) for h in range(24)], dtype=float)

    def forecast(self, spot_id: str, current_score: float, hours_ahead: int,
                 now: Optional[datetime] = None) -> List[HourlyPrediction]:
        if not 0 <= hours_ahead <= MAX_HOURS_AHEAD:
            raise ValueError(
                f"hours_ahead must be within 0..{MAX_HOURS_AHEAD} (got {hours_ahead}, spot={spot_id})"
            )
        now = now or datetime.now()
        curve = self.multiplier_curve()
        current_hour = now.hour
        base = curve[current_hour]

        offsets = np.arange(1, hours_ahead + 1)
        target_hours = (current_hour + offsets) % 24
        if base > 0:
            raw = current_score * curve[target_hours] / base
        else:
            raw = np.full(len(offsets), float(current_score))
        predicted = np.clip(np.rint(raw), 0, 100).astype(int)

        predictions = []
        for offset, hour, score in zip(offsets, target_hours, predicted):
            confidence = BASE_CONFIDENCE - CONFIDENCE_DECAY * (offset - 1)
            if hour_band(hour) != hour_band(hour - 1):
                confidence *= TRANSITION_PENALTY
            confidence = float(np.clip(confidence, MIN_CONFIDENCE, 1.0))
            predictions.append(HourlyPrediction(
                hour_offset=int(offset),
                hour=int(hour),
                predicted_score=int(score),
                confidence=round(confidence, 2),
            ))
        return predictions

    @staticmethod
    def classify_trend(current_score: float, predictions: Sequence[HourlyPrediction]) -> Trend:
        if not predictions:
            return Trend.STABLE
        nxt = predictions[0].predicted_score
        if nxt > current_score:
            return Trend.RISING
        if nxt < current_score:
            return Trend.FALLING
        return Trend.STABLE

    def region_forecast(self, scores, hours_ahead: Optional[int] = None,
                        thresholds: Optional[LevelThresholds] = None):
        """Average predicted score per hour offset across a score table."""
        hours_ahead = hours_ahead if hours_ahead is not None else self.config.forecast_hours
        rows = []
        for offset in range(1, hours_ahead + 1):
            values = [
                p.predicted_score
                for s in scores
                for p in s.prediction
                if p.hour_offset == offset
            ]
            if not values:
                continue
            hour = next(
                p.hour for s in scores for p in s.prediction if p.hour_offset == offset
            )
            avg = int(round(float(np.mean(values))))
            rows.append({
                "hour_offset": offset,
                "hour": hour,
                "average_score": avg,
                "level": classify(avg, thresholds or self.config.level_thresholds).value,
            })
        return rows
