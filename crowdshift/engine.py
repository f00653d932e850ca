# -*- coding: utf-8 -*-
"""
Traffic Engine
==============
Owns the authoritative per-spot CongestionScore table.

    providers ─▶ collect_snapshot ─▶ CongestionModel ─▶ ForecastModule ─▶ table ─▶ subscribers

- Reads return the cached score while it is younger than staleness_seconds, otherwise
  the spot is recomputed synchronously (one snapshot collection) and the cache updated.
- A single background thread refreshes every spot each refresh_interval_seconds and
  fans the full table out to subscribers (broadcast, same tuple for everyone).
- The table is an immutable mapping replaced under a short lock. Publishing keeps the
  newer entry per spot, so computed_at never goes backwards for any reader.
"""
import itertools
import logging
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

import pandas as pd

from crowdshift.config import EngineConfig
from crowdshift.congestion import CongestionModel, CongestionScore
from crowdshift.exceptions import MalformedSnapshot
from crowdshift.forecast import ForecastModule, HourlyPrediction
from crowdshift.shaping import TrafficLevel
from crowdshift.signals import SignalProvider, collect_snapshot
from crowdshift.spots import Spot, SpotDirectory

logger = logging.getLogger(__name__)

# visitors a spot holds at score 100, and the opening hours they arrive over
VISITORS_AT_CAPACITY = 500
OPEN_HOURS = 8

Subscriber = Callable[[Tuple[CongestionScore, ...]], Any]


@dataclass(frozen=True)
class RegionStats:
    count_by_level: Dict[str, int]
    average_score: float
    total_spots: int
    busiest_spot: Optional[Dict[str, Any]]
    quietest_spot: Optional[Dict[str, Any]]
    estimated_visitors: int
    entry_rate: int
    computed_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count_by_level": dict(self.count_by_level),
            "average_score": self.average_score,
            "total_spots": self.total_spots,
            "busiest_spot": self.busiest_spot,
            "quietest_spot": self.quietest_spot,
            "estimated_visitors": self.estimated_visitors,
            "entry_rate": self.entry_rate,
            "computed_at": self.computed_at,
        }


def _by_score(scores: Iterable[CongestionScore]) -> Tuple[CongestionScore, ...]:
    return tuple(sorted(scores, key=lambda s: (-s.score, s.spot_id)))


class TrafficEngine:
    def __init__(self, directory: SpotDirectory, provider: SignalProvider,
                 config: Optional[EngineConfig] = None, clock: Callable[[], float] = time.time,
                 now_fn: Optional[Callable[[], datetime]] = None):
        self.directory = directory
        self.provider = provider
        self._clock = clock
        self._now_fn = now_fn
        self._pipeline = self._build_pipeline(config or EngineConfig())

        self._table: Mapping[str, CongestionScore] = MappingProxyType({})
        self._table_lock = threading.Lock()
        self._refresh_lock = threading.RLock()
        self._ts_lock = threading.Lock()
        self._last_ts = 0.0

        self._subscribers: Dict[int, Subscriber] = {}
        self._sub_lock = threading.Lock()
        self._tokens = itertools.count(1)

        self._monitor_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self.tick_count = 0
        self.last_refresh_at: Optional[float] = None

    # ----- configuration -----------------------------------------------------

    @staticmethod
    def _build_pipeline(config: EngineConfig):
        return config, CongestionModel(config), ForecastModule(config)

    @property
    def config(self) -> EngineConfig:
        return self._pipeline[0]

    @property
    def model(self) -> CongestionModel:
        return self._pipeline[1]

    @property
    def forecaster(self) -> ForecastModule:
        return self._pipeline[2]

    def set_config(self, config: EngineConfig):
        """Swap in a new configuration. Cached scores keep their values until recomputed."""
        self._pipeline = self._build_pipeline(config)
        logger.info("Engine config replaced (thresholds=%s, weights=%s)",
                    config.level_thresholds, config.weights)

    @property
    def refresh_interval(self) -> float:
        return self.config.refresh_interval_seconds

    @property
    def is_monitoring(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def now(self) -> datetime:
        if self._now_fn is not None:
            return self._now_fn()
        return datetime.now(ZoneInfo(self.config.timezone))

    # ----- computation -------------------------------------------------------

    def _issue_timestamp(self) -> float:
        """Strictly increasing computed_at values, even if the clock stalls or steps back."""
        with self._ts_lock:
            ts = float(self._clock())
            if ts <= self._last_ts:
                ts = self._last_ts + 1e-6
            self._last_ts = ts
            return ts

    def _compute(self, spot: Spot) -> CongestionScore:
        config, model, forecaster = self._pipeline
        now = self.now()
        snapshot = collect_snapshot(self.provider, spot, now)
        score = model.compute_score(
            spot.id, snapshot, name=spot.name, now=now, computed_at=self._issue_timestamp()
        )
        predictions = forecaster.forecast(spot.id, score.score, config.forecast_hours, now=now)
        trend = forecaster.classify_trend(score.score, predictions)
        return model.with_forecast(score, trend, predictions)

    def _is_fresh(self, score: Optional[CongestionScore]) -> bool:
        if score is None:
            return False
        return self._clock() - score.computed_at < self.config.staleness_seconds

    def _publish(self, scores: Iterable[CongestionScore]) -> Mapping[str, CongestionScore]:
        with self._table_lock:
            merged = dict(self._table)
            for score in scores:
                current = merged.get(score.spot_id)
                if current is None or score.computed_at > current.computed_at:
                    merged[score.spot_id] = score
            self._table = MappingProxyType(merged)
            return self._table

    def _snapshot(self) -> Mapping[str, CongestionScore]:
        with self._table_lock:
            return self._table

    def _compute_many(self, spots: Iterable[Spot]) -> List[CongestionScore]:
        computed = []
        for spot in spots:
            try:
                computed.append(self._compute(spot))
            except MalformedSnapshot as e:
                logger.warning("Skipping %s this round: %s", spot.id, e)
        return computed

    # ----- reads -------------------------------------------------------------

    def get_congestion_score(self, spot_id: str) -> CongestionScore:
        """Cached score, recomputed first if stale. Unknown spot → InvalidSpot."""
        spot = self.directory.get_spot_by_id(spot_id)
        current = self._snapshot().get(spot_id)
        if self._is_fresh(current):
            return current
        return self.recompute(spot.id)

    def recompute(self, spot_id: str) -> CongestionScore:
        """Recompute one spot now, regardless of cache age."""
        spot = self.directory.get_spot_by_id(spot_id)
        table = self._publish([self._compute(spot)])
        return table[spot_id]

    def get_all_congestion(self) -> Tuple[CongestionScore, ...]:
        """Full table, stale entries recomputed first, busiest first."""
        table = self._snapshot()
        stale = [s for s in self.directory.spots if not self._is_fresh(table.get(s.id))]
        if stale:
            table = self._publish(self._compute_many(stale))
        return _by_score(table.values())

    def get_forecast(self, spot_id: str, hours_ahead: Optional[int] = None,
                     ) -> Tuple[CongestionScore, List[HourlyPrediction]]:
        score = self.get_congestion_score(spot_id)
        hours = self.config.forecast_hours if hours_ahead is None else hours_ahead
        if hours == len(score.prediction):
            return score, list(score.prediction)
        return score, self.forecaster.forecast(spot_id, score.score, hours, now=self.now())

    def get_region_stats(self) -> RegionStats:
        scores = self.get_all_congestion()
        levels = {level.value: 0 for level in TrafficLevel}
        if not scores:
            return RegionStats(levels, 0.0, 0, None, None, 0, 0, self._clock())

        df = pd.DataFrame([
            {"spot_id": s.spot_id, "name": s.name, "score": s.score, "level": s.level.value,
             "computed_at": s.computed_at}
            for s in scores
        ])
        levels.update({k: int(v) for k, v in df["level"].value_counts().items()})

        busiest = df.loc[df["score"].idxmax()]
        quietest = df.loc[df["score"].idxmin()]
        visitors = int((df["score"] / 100 * VISITORS_AT_CAPACITY).round().sum())

        return RegionStats(
            count_by_level=levels,
            average_score=round(float(df["score"].mean()), 1),
            total_spots=len(df),
            busiest_spot={"spot_id": busiest["spot_id"], "name": busiest["name"],
                          "score": int(busiest["score"])},
            quietest_spot={"spot_id": quietest["spot_id"], "name": quietest["name"],
                           "score": int(quietest["score"])},
            estimated_visitors=visitors,
            entry_rate=int(round(visitors / OPEN_HOURS)),
            computed_at=float(df["computed_at"].max()),
        )

    def get_region_heatmap(self) -> List[Dict[str, Any]]:
        points = []
        for score in self.get_all_congestion():
            spot = self.directory.get_spot_by_id(score.spot_id)
            points.append({
                "spot_id": spot.id,
                "lat": spot.latitude,
                "lng": spot.longitude,
                "intensity": round(score.score / 100, 2),
                "level": score.level.value,
            })
        return points

    def get_region_forecast(self, hours_ahead: Optional[int] = None) -> List[Dict[str, Any]]:
        config = self.config
        hours = config.forecast_hours if hours_ahead is None else hours_ahead
        scores = self.get_all_congestion()
        if any(len(s.prediction) != hours for s in scores):
            now = self.now()
            scores = [
                replace(s, prediction=tuple(
                    self.forecaster.forecast(s.spot_id, s.score, hours, now=now)
                ))
                for s in scores
            ]
        return self.forecaster.region_forecast(scores, hours, config.level_thresholds)

    # ----- refresh + fan-out -------------------------------------------------

    def refresh(self) -> Tuple[CongestionScore, ...]:
        """One tick: recompute every spot, publish, deliver the table to subscribers."""
        with self._refresh_lock:
            table = self._publish(self._compute_many(self.directory.spots))
            snapshot = _by_score(table.values())
            self.tick_count += 1
            self.last_refresh_at = self._clock()
            self._notify(snapshot)
        return snapshot

    def subscribe(self, callback: Subscriber) -> Callable[[], bool]:
        """Register a table listener. Returns an unsubscribe() callable."""
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._sub_lock:
            token = next(self._tokens)
            self._subscribers[token] = callback

        def unsubscribe() -> bool:
            with self._sub_lock:
                return self._subscribers.pop(token, None) is not None

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._sub_lock:
            return len(self._subscribers)

    def _notify(self, snapshot: Tuple[CongestionScore, ...]):
        with self._sub_lock:
            tokens = list(self._subscribers)
        for token in tokens:
            # unsubscribed during this round
            with self._sub_lock:
                callback = self._subscribers.get(token)
            if callback is None:
                continue
            try:
                callback(snapshot)
            except Exception:
                logger.warning("Subscriber %r failed", callback, exc_info=True)

    # ----- monitoring loop ---------------------------------------------------

    def _run(self, stop: threading.Event):
        while not stop.is_set():
            try:
                self.refresh()
            except Exception:
                logger.error("Refresh tick failed", exc_info=True)
            if stop.wait(self.refresh_interval):
                break

    def start_monitoring(self) -> bool:
        """Start the refresh loop. Returns False if it is already running."""
        with self._monitor_lock:
            if self._thread is not None and self._thread.is_alive():
                return False
            stop = threading.Event()
            thread = threading.Thread(
                target=self._run, args=(stop,), name="crowdshift-monitor", daemon=True
            )
            self._stop_event, self._thread = stop, thread
            thread.start()
        logger.info("Monitoring started (%d spots, every %.1fs)",
                    len(self.directory), self.refresh_interval)
        return True

    def stop_monitoring(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """Cancel the pending wait; an in-flight tick finishes. No-op if not running."""
        with self._monitor_lock:
            thread, stop = self._thread, self._stop_event
            self._thread = self._stop_event = None
        if thread is None:
            return False
        stop.set()
        if wait and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info("Monitoring stopped after %d ticks", self.tick_count)
        return True

    def shutdown(self):
        self.stop_monitoring(wait=True)
        with self._sub_lock:
            self._subscribers.clear()
