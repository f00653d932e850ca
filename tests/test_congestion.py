# -*- coding: utf-8 -*-
"""
CongestionModel 유닛 테스트
"""
import math
from datetime import datetime

import pytest

from crowdshift.config import CongestionWeights, EngineConfig
from crowdshift.congestion import CongestionFactors, CongestionModel, weather_severity
from crowdshift.exceptions import MalformedSnapshot
from crowdshift.shaping import TrafficLevel
from crowdshift.signals import SignalSnapshot

WEDNESDAY_2PM = datetime(2026, 3, 11, 14, 0)
SATURDAY_11AM = datetime(2026, 3, 14, 11, 0)


@pytest.fixture
def model():
    return CongestionModel(EngineConfig())


class TestNormalisation:
    def test_pass_volume_scaled_against_capacity(self, model):
        assert model.pass_score(100) == 50
        assert model.pass_score(0) == 0
        assert model.pass_score(500) == 100  # capacity 초과는 100으로 고정

    def test_pass_capacity_is_configurable(self):
        model = CongestionModel(EngineConfig(pass_capacity_per_hour=400))
        assert model.pass_score(100) == 25

    def test_parking_used_directly(self, model):
        assert model.parking_score(63.4) == 63
        assert model.parking_score(100.3) == 100

    @pytest.mark.parametrize("code,expected", [
        (0, 0),
        (2, 20),
        (45, 60),
        (61, 80),
        (73, 90),
        (81, 80),
        (86, 90),
        (95, 100),
        (30, 50),
        (None, 50),
    ])
    def test_weather_severity_buckets(self, code, expected):
        assert weather_severity(code) == expected


class TestComputeScore:
    def test_weighted_sum(self, model):
        snapshot = SignalSnapshot(
            pass_volume=100,           # 50
            parking_occupancy_pct=60,  # 60
            weather_code=0,            # 0
            historical_baseline=70,
            report_score=20,
        )
        score = model.compute_score("ooty-lake", snapshot, name="Ooty Lake")

        # 60*.35 + 50*.30 + 70*.20 + 0*.10 + 20*.05 = 51
        assert score.score == 51
        assert score.level == TrafficLevel.YELLOW
        assert score.factors == CongestionFactors(
            pass_score=50, parking_score=60, weather_score=0, historical_score=70, report_score=20
        )
        assert score.name == "Ooty Lake"
        assert score.data_quality == "HIGH"
        assert score.confidence == 0.9
        assert score.degraded_factors == ()

    def test_parking_saturation_override(self, model):
        snapshot = SignalSnapshot(
            pass_volume=0, parking_occupancy_pct=96, weather_code=0,
            historical_baseline=0, report_score=0,
        )
        score = model.compute_score("ooty-lake", snapshot)
        assert score.score == 90
        assert score.level == TrafficLevel.RED

    @pytest.mark.parametrize("occupancy", [95, 97.5, 100])
    def test_override_holds_regardless_of_other_factors(self, model, occupancy):
        snapshot = SignalSnapshot(pass_volume=0, parking_occupancy_pct=occupancy,
                                  weather_code=0, historical_baseline=0, report_score=0)
        assert model.compute_score("x", snapshot).score >= 90

    def test_override_needs_live_parking_reading(self, model):
        snapshot = SignalSnapshot(pass_volume=0, weather_code=0, historical_baseline=0,
                                  report_score=0)
        score = model.compute_score("x", snapshot)
        assert score.score < 90
        assert score.factors.parking_score == 50

    def test_missing_factors_degrade_to_neutral_defaults(self, model):
        snapshot = SignalSnapshot(collected_at=WEDNESDAY_2PM)
        score = model.compute_score("x", snapshot)

        assert score.factors == CongestionFactors(
            pass_score=50, parking_score=50, weather_score=50, historical_score=50, report_score=0
        )
        assert score.data_quality == "LOW"
        assert score.confidence == 0.5
        assert set(score.degraded_factors) == {
            "pass_volume", "parking_occupancy_pct", "weather_code",
            "historical_baseline", "report_score",
        }
        assert 0 <= score.score <= 100

    def test_missing_historical_uses_weekend_peak_heuristic(self, model):
        snapshot = SignalSnapshot(pass_volume=0, parking_occupancy_pct=0, weather_code=0,
                                  report_score=0, collected_at=SATURDAY_11AM)
        score = model.compute_score("x", snapshot)
        assert score.factors.historical_score == 85  # 50 + 주말 20 + 피크 15

    def test_one_live_signal_is_medium_quality(self, model):
        score = model.compute_score("x", SignalSnapshot(pass_volume=10))
        assert score.data_quality == "MEDIUM"
        assert score.confidence == 0.7

    def test_deterministic_for_identical_input(self, model):
        snapshot = SignalSnapshot(pass_volume=123, parking_occupancy_pct=47.5, weather_code=61,
                                  historical_baseline=66, report_score=10)
        first = model.compute_score("x", snapshot, computed_at=1.0)
        second = model.compute_score("x", snapshot, computed_at=1.0)
        assert first == second

    def test_score_always_within_bounds(self, model):
        for parking in (0, 33, 66, 100):
            for volume in (0, 150, 10_000):
                for code in (0, 45, 95):
                    snapshot = SignalSnapshot(pass_volume=volume, parking_occupancy_pct=parking,
                                              weather_code=code, historical_baseline=100,
                                              report_score=100)
                    assert 0 <= model.compute_score("x", snapshot).score <= 100

    def test_custom_weights(self):
        weights = CongestionWeights(parking=1.0, passes=0.0, historical=0.0, weather=0.0, reports=0.0)
        model = CongestionModel(EngineConfig(weights=weights))
        snapshot = SignalSnapshot(pass_volume=200, parking_occupancy_pct=42, weather_code=95,
                                  historical_baseline=100, report_score=100)
        assert model.compute_score("x", snapshot).score == 42


class TestMalformedSnapshot:
    def test_rejects_non_snapshot(self, model):
        with pytest.raises(MalformedSnapshot):
            model.compute_score("x", {"pass_volume": 10})

    def test_rejects_negative_volume(self, model):
        with pytest.raises(MalformedSnapshot):
            model.compute_score("x", SignalSnapshot(pass_volume=-1))

    def test_rejects_nan(self, model):
        with pytest.raises(MalformedSnapshot):
            model.compute_score("x", SignalSnapshot(historical_baseline=math.nan))

    def test_rejects_occupancy_out_of_range(self, model):
        with pytest.raises(MalformedSnapshot):
            model.compute_score("x", SignalSnapshot(parking_occupancy_pct=101))

    def test_tolerates_rounding_above_100(self, model):
        score = model.compute_score("x", SignalSnapshot(parking_occupancy_pct=100.4))
        assert score.factors.parking_score == 100


class TestWeights:
    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValueError):
            CongestionWeights(parking=0.5)

    def test_weights_must_be_non_negative(self):
        with pytest.raises(ValueError):
            CongestionWeights(parking=-0.1, passes=0.75)
