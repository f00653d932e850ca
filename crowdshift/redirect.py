# -*- coding: utf-8 -*-
"""
Crowd Router
============
Per-request redirect decision for a destination spot.

    1. resolve the destination and read its score from the TrafficEngine
    2. reroute iff shaping.should_reroute(level)           (ORANGE and above)
    3. candidates = same category, destination excluded
    4. drop candidates scoring >= alternative_cutoff       (default 50)
       drop candidates whose score is unavailable or malformed, or has no live
       pass/parking reading
    5. order by (score, distance); distance from the user if known, else the destination
    6. parking_available = floor(total_slots × (1 - score/100))
       distance_diff_km  = d(origin, alternative) - d(origin, destination)

shouldReroute with no alternatives is a valid outcome ("stay but be warned"), not an error.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from crowdshift.config import EngineConfig
from crowdshift.congestion import CongestionScore
from crowdshift.exceptions import MalformedSnapshot, SignalUnavailable
from crowdshift.shaping import ShapingPolicy, TrafficLevel, policy_for, redirect_message, should_reroute
from crowdshift.spots import Spot, SpotDirectory
from crowdshift.utils import haversine_km

logger = logging.getLogger(__name__)

OUTCOME_CLEAR = "CLEAR"
OUTCOME_REROUTE = "REROUTE"
OUTCOME_NO_ALTERNATIVE = "NO_ALTERNATIVE"


@dataclass(frozen=True)
class AlternativeSuggestion:
    original_spot_id: str
    suggested_spot: Dict[str, str]
    crowd_score: int
    level: TrafficLevel
    parking_available: int
    reason: str
    distance_diff_km: float
    distance_km: float

    @property
    def distance_diff(self) -> str:
        """Signed display form, e.g. "+2.3 km" or "-0.8 km"."""
        sign = "+" if self.distance_diff_km > 0 else ""
        return f"{sign}{self.distance_diff_km:.1f} km"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_spot_id": self.original_spot_id,
            "suggested_spot": dict(self.suggested_spot),
            "crowd_score": self.crowd_score,
            "level": self.level.value,
            "parking_available": self.parking_available,
            "reason": self.reason,
            "distance_diff_km": self.distance_diff_km,
            "distance_diff": self.distance_diff,
            "distance_km": self.distance_km,
        }


@dataclass(frozen=True)
class RerouteDecision:
    destination: str
    name: str
    should_reroute: bool
    score: int
    level: TrafficLevel
    policy: ShapingPolicy
    message: str
    alternatives: Tuple[AlternativeSuggestion, ...] = field(default_factory=tuple)

    @property
    def outcome(self) -> str:
        if not self.should_reroute:
            return OUTCOME_CLEAR
        return OUTCOME_REROUTE if self.alternatives else OUTCOME_NO_ALTERNATIVE

    @property
    def selected(self) -> Optional[AlternativeSuggestion]:
        return self.alternatives[0] if self.alternatives else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "destination": self.destination,
            "name": self.name,
            "should_reroute": self.should_reroute,
            "outcome": self.outcome,
            "score": self.score,
            "level": self.level.value,
            "policy": self.policy.to_dict(),
            "message": self.message,
            "alternatives": [a.to_dict() for a in self.alternatives],
        }


class CrowdRouter:
    def __init__(self, engine, directory: Optional[SpotDirectory] = None,
                 config: Optional[EngineConfig] = None):
        self.engine = engine
        self.directory = directory or engine.directory
        self._config = config

    @property
    def config(self) -> EngineConfig:
        # follow engine calibration unless pinned
        return self._config or self.engine.config

    def estimate_parking(self, spot_id: str, score: int) -> int:
        """Approximate free slots. Not a live inventory read."""
        facility = self.directory.parking_for_spot(spot_id)
        if facility is None:
            return 0
        return max(0, math.floor(facility.total_slots * (1 - score / 100)))

    def _candidate_scores(self, destination: Spot) -> List[Tuple[Spot, CongestionScore]]:
        cutoff = self.config.alternative_cutoff
        accepted = []
        for spot in self.directory.list_spots_by_category(destination.category):
            if spot.id == destination.id:
                continue
            try:
                score = self.engine.get_congestion_score(spot.id)
            except (SignalUnavailable, MalformedSnapshot) as e:
                # a bad reading for one candidate never blocks the decision
                logger.warning("Skipping candidate %s: %s", spot.id, e)
                continue
            if score.data_quality == "LOW":
                logger.info("Skipping candidate %s: no live pass or parking reading", spot.id)
                continue
            if score.score >= cutoff:
                continue
            accepted.append((spot, score))
        return accepted

    def find_alternatives(self, destination: Spot, destination_score: int,
                          user_location: Optional[Tuple[float, float]] = None,
                          limit: Optional[int] = None) -> List[AlternativeSuggestion]:
        limit = limit if limit is not None else self.config.max_alternatives
        reference = user_location or destination.coordinates
        origin = user_location or self.config.region_center
        origin_to_destination = haversine_km(*origin, *destination.coordinates)

        ranked = sorted(
            (
                (score, haversine_km(*reference, *spot.coordinates), spot)
                for spot, score in self._candidate_scores(destination)
            ),
            key=lambda item: (item[0].score, item[1], item[2].id),
        )

        suggestions = []
        for score, distance, spot in ranked[:max(0, limit)]:
            diff = haversine_km(*origin, *spot.coordinates) - origin_to_destination
            suggestions.append(AlternativeSuggestion(
                original_spot_id=destination.id,
                suggested_spot={"id": spot.id, "name": spot.name, "category": spot.category},
                crowd_score=score.score,
                level=score.level,
                parking_available=self.estimate_parking(spot.id, score.score),
                reason=f"{destination.name} is crowded ({destination_score}%)",
                distance_diff_km=round(diff, 1),
                distance_km=round(distance, 2),
            ))
        return suggestions

    def check_reroute(self, destination: str, *, user_location: Optional[Tuple[float, float]] = None,
                      limit: Optional[int] = None) -> RerouteDecision:
        """Decide whether to redirect visitors heading to `destination` (id or name)."""
        spot = self.directory.find_spot(destination)
        score = self.engine.get_congestion_score(spot.id)
        policy = policy_for(score.level)

        if not should_reroute(score.level):
            return RerouteDecision(
                destination=spot.id,
                name=spot.name,
                should_reroute=False,
                score=score.score,
                level=score.level,
                policy=policy,
                message=policy.message,
            )

        alternatives = self.find_alternatives(spot, score.score, user_location, limit)
        if not alternatives:
            logger.info("No alternative for %s (score=%d)", spot.id, score.score)
        return RerouteDecision(
            destination=spot.id,
            name=spot.name,
            should_reroute=True,
            score=score.score,
            level=score.level,
            policy=policy,
            message=redirect_message(
                spot.name, score.score, [a.suggested_spot["name"] for a in alternatives]
            ),
            alternatives=tuple(alternatives),
        )
