# -*- coding: utf-8 -*-
"""
Historical baseline provider.

Reads multi-year visitor patterns from data/historical_patterns.csv (long format:
spot_id, kind, key, value) where kind is one of

    average : baseline score of the spot (key "all")
    dow     : day-of-week multiplier (key MON..SUN)
    hour    : hour-of-day multiplier (key 0..23)
    month   : month multiplier (key 1..12)

baseline(spot, hour, dow, month) = average × dow × hour × month, capped at 100.
Rows with spot_id "*" are used for spots without their own pattern. When the file is
missing the provider falls back to a weekend/peak-hour heuristic.
"""
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

VALID_DOW = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")
WEEKEND = {"SAT", "SUN"}
DEFAULT_KEY = "*"


def default_historical_score(hour: int, dow: str) -> int:
    """Heuristic baseline used when no pattern exists for a spot."""
    score = 50
    if dow in WEEKEND:
        score += 20
    if 10 <= hour <= 12 or 15 <= hour <= 17:
        score += 15
    return min(100, score)


class HistoricalPatterns:
    def __init__(self, csv_path=None):
        self.csv_path = Path(csv_path) if csv_path else None
        self._averages: Dict[str, float] = {}
        self._factors: Dict[Tuple[str, str, str], float] = {}  # (spot, kind, key) → multiplier
        self.loaded = False

    def load(self):
        if self.csv_path is None or not self.csv_path.exists():
            logger.warning("Historical patterns not found (%s); using heuristic baseline",
                           self.csv_path)
            return self

        df = pd.read_csv(self.csv_path, dtype={"spot_id": str, "kind": str, "key": str})
        df["kind"] = df["kind"].str.strip().str.lower()
        df["key"] = df["key"].astype(str).str.strip().str.upper()

        averages = df[df["kind"] == "average"]
        self._averages = dict(zip(averages["spot_id"], averages["value"].astype(float)))

        factors = df[df["kind"].isin(["dow", "hour", "month"])]
        self._factors = {
            (row.spot_id, row.kind, row.key): float(row.value)
            for row in factors.itertuples(index=False)
        }
        self.loaded = True
        logger.info("Historical patterns loaded: %d spots, %d factors",
                    len(self._averages), len(self._factors))
        return self

    def has_pattern(self, spot_id: str) -> bool:
        return spot_id in self._averages

    def _factor(self, pattern_id: str, kind: str, key) -> float:
        return self._factors.get((pattern_id, kind, str(key).upper()), 1.0)

    def baseline(self, spot_id: str, hour: int, dow: str, month: Optional[int] = None) -> int:
        dow = dow.upper()
        if dow not in VALID_DOW:
            raise ValueError(f"Invalid day of week: {dow}")
        hour = hour % 24

        if spot_id in self._averages:
            pattern_id = spot_id
        elif DEFAULT_KEY in self._averages:
            pattern_id = DEFAULT_KEY
        else:
            return default_historical_score(hour, dow)

        score = self._averages[pattern_id]
        score *= self._factor(pattern_id, "dow", dow)
        score *= self._factor(pattern_id, "hour", hour)
        if month is not None:
            score *= self._factor(pattern_id, "month", month)
        return int(min(100, max(0, round(score))))

    # SignalProvider-compatible entry point
    def fetch_historical_baseline(self, spot_id: str, hour: int, day_of_week: str,
                                  month: Optional[int] = None) -> int:
        return self.baseline(spot_id, hour, day_of_week, month)
