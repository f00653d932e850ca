# -*- coding: utf-8 -*-
"""
Traffic Shaping
===============
Maps a congestion score to a discrete TrafficLevel and a behaviour policy:

    score <  yellow           → GREEN   no intervention
    yellow <= score < orange  → YELLOW  soft advisory
    orange <= score < red     → ORANGE  suggest alternatives, visitor may proceed
    score >= red              → RED     strongly recommend redirect, gate parking bookings

Everything here is a pure function of its arguments.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from crowdshift.config import LevelThresholds

_LEVEL_ORDER = ("GREEN", "YELLOW", "ORANGE", "RED")
DEFAULT_THRESHOLDS = LevelThresholds()


class TrafficLevel(str, Enum):
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    ORANGE = "ORANGE"
    RED = "RED"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self.value)

    def __lt__(self, other):
        if isinstance(other, TrafficLevel):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, TrafficLevel):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, TrafficLevel):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, TrafficLevel):
            return self.rank >= other.rank
        return NotImplemented


class Intervention(str, Enum):
    NONE = "NONE"
    ADVISORY = "ADVISORY"
    SUGGEST = "SUGGEST"
    REDIRECT = "REDIRECT"


@dataclass(frozen=True)
class ShapingPolicy:
    level: TrafficLevel
    intervention: Intervention
    recommend: bool
    ranking_modifier: float
    show_alternatives: bool
    block_from_suggestions: bool
    gate_parking_bookings: bool
    alert_users: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "intervention": self.intervention.value,
            "recommend": self.recommend,
            "ranking_modifier": self.ranking_modifier,
            "show_alternatives": self.show_alternatives,
            "block_from_suggestions": self.block_from_suggestions,
            "gate_parking_bookings": self.gate_parking_bookings,
            "alert_users": self.alert_users,
            "message": self.message,
        }


_POLICIES = {
    TrafficLevel.GREEN: ShapingPolicy(
        level=TrafficLevel.GREEN,
        intervention=Intervention.NONE,
        recommend=True,
        ranking_modifier=1.0,
        show_alternatives=False,
        block_from_suggestions=False,
        gate_parking_bookings=False,
        alert_users=False,
        message="Light traffic, good time to visit",
    ),
    TrafficLevel.YELLOW: ShapingPolicy(
        level=TrafficLevel.YELLOW,
        intervention=Intervention.ADVISORY,
        recommend=True,
        ranking_modifier=0.8,
        show_alternatives=True,
        block_from_suggestions=False,
        gate_parking_bookings=False,
        alert_users=False,
        message="Moderate crowd, alternatives available",
    ),
    TrafficLevel.ORANGE: ShapingPolicy(
        level=TrafficLevel.ORANGE,
        intervention=Intervention.SUGGEST,
        recommend=False,
        ranking_modifier=0.4,
        show_alternatives=True,
        block_from_suggestions=False,
        gate_parking_bookings=False,
        alert_users=True,
        message="Heavy rush, consider alternatives",
    ),
    TrafficLevel.RED: ShapingPolicy(
        level=TrafficLevel.RED,
        intervention=Intervention.REDIRECT,
        recommend=False,
        ranking_modifier=0.1,
        show_alternatives=True,
        block_from_suggestions=True,
        gate_parking_bookings=True,
        alert_users=True,
        message="Overcrowded! Visit not recommended now",
    ),
}


def classify(score: float, thresholds: Optional[LevelThresholds] = None) -> TrafficLevel:
    t = thresholds or DEFAULT_THRESHOLDS
    if score >= t.red:
        return TrafficLevel.RED
    if score >= t.orange:
        return TrafficLevel.ORANGE
    if score >= t.yellow:
        return TrafficLevel.YELLOW
    return TrafficLevel.GREEN


def policy_for(level: TrafficLevel) -> ShapingPolicy:
    return _POLICIES[TrafficLevel(level)]


def should_reroute(level: TrafficLevel) -> bool:
    """Single reroute decision point: ORANGE and above."""
    return TrafficLevel(level) >= TrafficLevel.ORANGE


def rank_spots(entries: Iterable[Dict[str, Any]], thresholds: Optional[LevelThresholds] = None,
               ) -> List[Dict[str, Any]]:
    """
    Apply shaping to a recommendation list.

    Each entry needs "score" and may carry a base "ranking_score" (default 100).
    Blocked (RED) spots are dropped; the rest are sorted by shaped ranking score.
    """
    shaped = []
    for entry in entries:
        level = classify(entry["score"], thresholds)
        policy = policy_for(level)
        if policy.block_from_suggestions:
            continue
        shaped.append({
            **entry,
            "level": level.value,
            "ranking_score": round(entry.get("ranking_score", 100) * policy.ranking_modifier, 2),
            "show_alternatives": policy.show_alternatives,
            "message": policy.message,
        })
    shaped.sort(key=lambda e: e["ranking_score"], reverse=True)
    return shaped


def redirect_message(spot_name: str, score: int, alternative_names: List[str]) -> str:
    if not alternative_names:
        return f"{spot_name} heavy rush - {score}%. No quieter spot nearby right now."
    names = " & ".join(alternative_names[:2])
    return f"{spot_name} heavy rush - {score}%. {names} peaceful now"
