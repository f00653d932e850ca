# -*- coding: utf-8 -*-
"""Traffic shaping: 단계 분류와 정책 테스트"""
import pytest

from crowdshift.config import LevelThresholds
from crowdshift.shaping import (
    Intervention, TrafficLevel, classify, policy_for, rank_spots, redirect_message, should_reroute,
)


@pytest.mark.parametrize("score,level", [
    (0, TrafficLevel.GREEN),
    (39, TrafficLevel.GREEN),
    (40, TrafficLevel.YELLOW),
    (69, TrafficLevel.YELLOW),
    (70, TrafficLevel.ORANGE),
    (84, TrafficLevel.ORANGE),
    (85, TrafficLevel.RED),
    (100, TrafficLevel.RED),
])
def test_default_thresholds(score, level):
    assert classify(score) == level


def test_classify_is_monotonic():
    levels = [classify(s) for s in range(101)]
    assert all(a <= b for a, b in zip(levels, levels[1:]))


def test_level_ordering():
    assert TrafficLevel.GREEN < TrafficLevel.YELLOW < TrafficLevel.ORANGE < TrafficLevel.RED
    assert max(TrafficLevel) == TrafficLevel.RED


def test_custom_thresholds():
    thresholds = LevelThresholds(yellow=30, orange=60, red=90)
    assert classify(65, thresholds) == TrafficLevel.ORANGE
    assert classify(89, thresholds) == TrafficLevel.ORANGE


@pytest.mark.parametrize("bad", [(40, 40, 85), (70, 40, 85), (0, 70, 85), (40, 70, 101)])
def test_invalid_thresholds(bad):
    with pytest.raises(ValueError):
        LevelThresholds(*bad)


def test_should_reroute_from_orange():
    assert not should_reroute(TrafficLevel.GREEN)
    assert not should_reroute(TrafficLevel.YELLOW)
    assert should_reroute(TrafficLevel.ORANGE)
    assert should_reroute(TrafficLevel.RED)


def test_policies():
    green = policy_for(TrafficLevel.GREEN)
    assert green.intervention == Intervention.NONE
    assert green.recommend and green.ranking_modifier == 1.0

    yellow = policy_for(TrafficLevel.YELLOW)
    assert yellow.intervention == Intervention.ADVISORY
    assert yellow.ranking_modifier == 0.8

    orange = policy_for(TrafficLevel.ORANGE)
    assert orange.intervention == Intervention.SUGGEST
    assert orange.show_alternatives and not orange.block_from_suggestions
    assert orange.alert_users

    red = policy_for(TrafficLevel.RED)
    assert red.intervention == Intervention.REDIRECT
    assert red.block_from_suggestions and red.gate_parking_bookings
    assert red.ranking_modifier == 0.1


def test_policy_accepts_level_value():
    assert policy_for("ORANGE") is policy_for(TrafficLevel.ORANGE)


def test_rank_spots_drops_red_and_sorts():
    entries = [
        {"spot_id": "a", "score": 90, "ranking_score": 100},  # RED → 제외
        {"spot_id": "b", "score": 50, "ranking_score": 100},  # YELLOW → 80
        {"spot_id": "c", "score": 10, "ranking_score": 70},   # GREEN → 70
        {"spot_id": "d", "score": 75},                        # ORANGE → 40
    ]
    ranked = rank_spots(entries)

    assert [e["spot_id"] for e in ranked] == ["b", "c", "d"]
    assert ranked[0]["ranking_score"] == 80.0
    assert ranked[2]["level"] == "ORANGE"


def test_redirect_message():
    msg = redirect_message("Botanical Garden", 88, ["Rose Garden", "Sim's Park", "Extra"])
    assert msg == "Botanical Garden heavy rush - 88%. Rose Garden & Sim's Park peaceful now"

    assert "No quieter spot" in redirect_message("Pykara Falls", 91, [])
