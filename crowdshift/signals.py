# -*- coding: utf-8 -*-
"""
Signal providers and snapshot collection.

Every provider answers the same fetch contract (SignalProvider). A provider that cannot
answer raises SignalUnavailable; collect_snapshot() absorbs that per factor, leaving
the reading as None so the congestion model can substitute a neutral default.
"""
import logging
import math
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, Tuple

from crowdshift.exceptions import SignalUnavailable
from crowdshift.history import VALID_DOW
from crowdshift.spots import Spot, SpotDirectory

logger = logging.getLogger(__name__)

FACTORS = ("pass_volume", "parking_occupancy_pct", "weather_code", "historical_baseline",
           "report_score")


class SignalProvider(Protocol):
    """Uniform fetch contract for raw per-spot metrics."""

    def fetch_pass_volume(self, spot_id: str) -> float:
        ...

    def fetch_parking_occupancy(self, spot_id: str) -> float:
        ...

    def fetch_weather(self, region_name: str) -> Dict[str, Any]:
        ...

    def fetch_historical_baseline(self, spot_id: str, hour: int, day_of_week: str) -> float:
        ...

    def fetch_report_score(self, spot_id: str) -> float:
        ...


@dataclass(frozen=True)
class SignalSnapshot:
    pass_volume: Optional[float] = None
    parking_occupancy_pct: Optional[float] = None
    weather_code: Optional[int] = None
    historical_baseline: Optional[float] = None
    report_score: Optional[float] = None
    collected_at: Optional[datetime] = None

    @property
    def missing(self) -> Tuple[str, ...]:
        return tuple(name for name in FACTORS if getattr(self, name) is None)


def day_code(when: datetime) -> str:
    return VALID_DOW[when.weekday()]


def weather_code_of(weather) -> int:
    """WMO code of a weather payload. A missing or non-integer code is unavailable."""
    code = weather.get("code") if isinstance(weather, dict) else None
    if code is None:
        raise SignalUnavailable("weather", reason="payload has no code")
    try:
        return int(code)
    except (TypeError, ValueError, OverflowError):
        raise SignalUnavailable("weather", reason=f"invalid weather code {code!r}") from None


def collect_snapshot(provider: SignalProvider, spot: Spot, when: datetime) -> SignalSnapshot:
    """One fetch round for one spot. Unavailable factors come back as None."""
    dow = day_code(when)

    def _try(fn, *args):
        try:
            return fn(*args)
        except SignalUnavailable as e:
            logger.warning("%s (spot=%s)", e, spot.id)
            return None

    weather = _try(provider.fetch_weather, spot.region)
    weather_code = _try(weather_code_of, weather) if weather is not None else None

    return SignalSnapshot(
        pass_volume=_try(provider.fetch_pass_volume, spot.id),
        parking_occupancy_pct=_try(provider.fetch_parking_occupancy, spot.id),
        weather_code=weather_code,
        historical_baseline=_try(provider.fetch_historical_baseline, spot.id, when.hour, dow),
        report_score=_try(provider.fetch_report_score, spot.id),
        collected_at=when,
    )


class LiveReadings:
    """
    Latest pass-volume and parking readings pushed by the pass and parking subsystems.

    Readings older than max_age_seconds are treated as unavailable.
    """

    def __init__(self, directory: Optional[SpotDirectory] = None, max_age_seconds: float = 900.0,
                 clock=time.time):
        self.directory = directory
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._pass: Dict[str, Tuple[float, float]] = {}     # spot_id → (ts, entries/hour)
        self._parking: Dict[str, Tuple[float, float]] = {}  # spot_id → (ts, occupancy %)

    def record_pass_volume(self, spot_id: str, entries_per_hour: float):
        if entries_per_hour < 0 or math.isnan(entries_per_hour):
            raise ValueError("entries_per_hour must be a non-negative number")
        with self._lock:
            self._pass[spot_id] = (self._clock(), float(entries_per_hour))

    def record_parking(self, spot_id: str, occupancy_pct: Optional[float] = None,
                       occupied_slots: Optional[int] = None):
        """Record occupancy as a percentage, or as occupied slots of the spot's facility."""
        if occupancy_pct is None:
            if occupied_slots is None:
                raise ValueError("occupancy_pct or occupied_slots is required")
            facility = self.directory.parking_for_spot(spot_id) if self.directory else None
            if facility is None or facility.total_slots <= 0:
                raise ValueError(f"No parking facility with slots for {spot_id}")
            occupancy_pct = occupied_slots / facility.total_slots * 100
        if not 0 <= occupancy_pct <= 100:
            raise ValueError("occupancy_pct must be within 0..100")
        with self._lock:
            self._parking[spot_id] = (self._clock(), float(occupancy_pct))

    def _fresh(self, table, spot_id, factor):
        with self._lock:
            entry = table.get(spot_id)
        if entry is None:
            raise SignalUnavailable(factor, spot_id, "no reading")
        ts, value = entry
        if self._clock() - ts > self.max_age_seconds:
            raise SignalUnavailable(factor, spot_id, "reading expired")
        return value

    def fetch_pass_volume(self, spot_id: str) -> float:
        return self._fresh(self._pass, spot_id, "pass_volume")

    def fetch_parking_occupancy(self, spot_id: str) -> float:
        return self._fresh(self._parking, spot_id, "parking")


class CompositeSignalProvider:
    """Routes each fetch to the collaborator that owns the signal."""

    def __init__(self, readings, weather=None, history=None, reports=None):
        self.readings = readings
        self.weather = weather
        self.history = history
        self.reports = reports

    def fetch_pass_volume(self, spot_id):
        return self.readings.fetch_pass_volume(spot_id)

    def fetch_parking_occupancy(self, spot_id):
        return self.readings.fetch_parking_occupancy(spot_id)

    def fetch_weather(self, region_name):
        if self.weather is None:
            raise SignalUnavailable("weather", reason="no weather service configured")
        return self.weather.fetch_weather(region_name)

    def fetch_historical_baseline(self, spot_id, hour, day_of_week):
        if self.history is None:
            raise SignalUnavailable("historical", spot_id, "no historical patterns configured")
        return self.history.fetch_historical_baseline(spot_id, hour, day_of_week)

    def fetch_report_score(self, spot_id):
        if self.reports is None:
            raise SignalUnavailable("reports", spot_id, "no report store configured")
        return self.reports.fetch_report_score(spot_id)


@dataclass
class StaticSignalProvider:
    """
    Deterministic provider backed by plain dicts. Missing keys raise SignalUnavailable.

    Used by tests and demos in place of live sensor data.
    """
    pass_volume: Dict[str, float] = field(default_factory=dict)
    parking: Dict[str, float] = field(default_factory=dict)
    weather: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    historical: Dict[str, float] = field(default_factory=dict)
    reports: Dict[str, float] = field(default_factory=dict)
    calls: int = 0

    def _get(self, table, key, factor):
        self.calls += 1
        if key not in table:
            raise SignalUnavailable(factor, key, "no static value")
        return table[key]

    def fetch_pass_volume(self, spot_id):
        return self._get(self.pass_volume, spot_id, "pass_volume")

    def fetch_parking_occupancy(self, spot_id):
        return self._get(self.parking, spot_id, "parking")

    def fetch_weather(self, region_name):
        return self._get(self.weather, region_name, "weather")

    def fetch_historical_baseline(self, spot_id, hour, day_of_week):
        return self._get(self.historical, spot_id, "historical")

    def fetch_report_score(self, spot_id):
        return self._get(self.reports, spot_id, "reports")

    def set_spot(self, spot_id, *, pass_volume=None, parking=None, historical=None, reports=None):
        for table, value in ((self.pass_volume, pass_volume), (self.parking, parking),
                             (self.historical, historical), (self.reports, reports)):
            if value is None:
                table.pop(spot_id, None)
            else:
                table[spot_id] = value
