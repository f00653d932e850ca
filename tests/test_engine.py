# -*- coding: utf-8 -*-
"""
TrafficEngine 테스트: 캐시, 모니터링 루프, 구독, 지역 통계
"""
import threading
from dataclasses import replace

import pytest

from conftest import FIXED_NOW, FakeClock
from crowdshift.config import EngineConfig
from crowdshift.engine import TrafficEngine
from crowdshift.exceptions import InvalidSpot
from crowdshift.forecast import Trend
from crowdshift.shaping import TrafficLevel


def _seed(provider, directory, parking=0.0):
    """모든 스팟에 live 신호를 채운다 (pass 0, 과거 0, 제보 0)."""
    for spot in directory.spots:
        provider.set_spot(spot.id, pass_volume=0, parking=parking, historical=0, reports=0)


class TestReads:
    def test_score_is_cached_while_fresh(self, engine, provider, directory, clock):
        _seed(provider, directory)
        first = engine.get_congestion_score("ooty-lake")
        calls = provider.calls

        clock.advance(5)
        second = engine.get_congestion_score("ooty-lake")

        assert second is first
        assert provider.calls == calls

    def test_stale_score_is_recomputed(self, engine, provider, directory, clock):
        _seed(provider, directory)
        first = engine.get_congestion_score("ooty-lake")

        provider.parking["ooty-lake"] = 60
        clock.advance(11)
        second = engine.get_congestion_score("ooty-lake")

        assert second.computed_at > first.computed_at
        assert second.factors.parking_score == 60

    def test_unknown_spot(self, engine):
        with pytest.raises(InvalidSpot):
            engine.get_congestion_score("sims-park")

    def test_score_carries_trend_and_prediction(self, engine, provider, directory):
        _seed(provider, directory, parking=40)
        score = engine.get_congestion_score("rose-garden")

        # 14시(shoulder) → 15시(afternoon_peak) 로 상승
        assert score.trend == Trend.RISING
        assert [p.hour_offset for p in score.prediction] == [1, 2, 3]

    def test_get_all_sorted_by_score(self, engine, provider, directory):
        _seed(provider, directory)
        provider.parking["ooty-lake"] = 100
        provider.parking["rose-garden"] = 50

        scores = engine.get_all_congestion()

        assert len(scores) == len(directory)
        assert scores[0].spot_id == "ooty-lake"
        assert scores[1].spot_id == "rose-garden"
        assert [s.score for s in scores] == sorted((s.score for s in scores), reverse=True)

    def test_computed_at_strictly_increases_with_frozen_clock(self, engine, provider, directory):
        _seed(provider, directory)
        stamps = [s.computed_at for s in engine.refresh()]
        assert len(set(stamps)) == len(stamps)

        again = engine.refresh()
        assert min(s.computed_at for s in again) > max(stamps)

    def test_publish_never_regresses(self, engine, provider, directory):
        _seed(provider, directory)
        current = engine.get_congestion_score("ooty-lake")
        older = replace(current, score=5, computed_at=current.computed_at - 1)

        engine._publish([older])

        assert engine.get_congestion_score("ooty-lake") is current

    def test_missing_live_signals_degrade_instead_of_failing(self, engine):
        # provider에는 날씨만 있음
        score = engine.get_congestion_score("pykara-falls")
        assert score.data_quality == "LOW"
        assert "pass_volume" in score.degraded_factors

    def test_invalid_weather_code_does_not_abort_refresh(self, engine, provider, directory):
        _seed(provider, directory)
        provider.weather["Ooty"] = {"code": "rain"}
        received = []
        engine.subscribe(received.append)

        table = engine.refresh()

        assert len(table) == len(directory)
        assert len(received) == 1
        # 날씨는 중립값 50
        assert all(s.factors.weather_score == 50 for s in table)
        assert all("weather_code" in s.degraded_factors for s in table)


class TestSubscriptions:
    def test_broadcast_identical_snapshot(self, engine, provider, directory):
        _seed(provider, directory)
        received_a, received_b = [], []
        engine.subscribe(received_a.append)
        engine.subscribe(received_b.append)

        engine.refresh()

        assert len(received_a) == 1
        assert received_a[0] is received_b[0]
        assert len(received_a[0]) == len(directory)

    def test_failing_subscriber_does_not_affect_others(self, engine, provider, directory):
        _seed(provider, directory)
        received = []

        def broken(_):
            raise RuntimeError("boom")

        engine.subscribe(broken)
        engine.subscribe(received.append)
        engine.refresh()

        assert len(received) == 1

    def test_unsubscribe_stops_delivery(self, engine, provider, directory):
        _seed(provider, directory)
        received = []
        unsubscribe = engine.subscribe(received.append)

        engine.refresh()
        assert unsubscribe() is True
        engine.refresh()

        assert len(received) == 1
        assert unsubscribe() is False

    def test_subscriber_must_be_callable(self, engine):
        with pytest.raises(TypeError):
            engine.subscribe("not callable")

    def test_shutdown_drops_subscribers(self, engine):
        engine.subscribe(lambda _: None)
        engine.shutdown()
        assert engine.subscriber_count == 0


class TestMonitoring:
    @pytest.fixture
    def fast_engine(self, directory, provider):
        config = EngineConfig(refresh_interval_seconds=0.05)
        engine = TrafficEngine(directory, provider, config, clock=FakeClock(),
                               now_fn=lambda: FIXED_NOW)
        _seed(provider, directory)
        yield engine
        engine.shutdown()

    def test_subscriber_receives_table_after_start(self, fast_engine):
        delivered = threading.Event()
        tables = []

        def on_tick(table):
            tables.append(table)
            delivered.set()

        fast_engine.subscribe(on_tick)
        fast_engine.start_monitoring()

        assert delivered.wait(timeout=2.0)
        assert len(tables[0]) == len(fast_engine.directory)

    def test_ticks_repeat_with_increasing_computed_at(self, fast_engine):
        three_ticks = threading.Event()
        tables = []

        def on_tick(table):
            tables.append(table)
            if len(tables) >= 3:
                three_ticks.set()

        fast_engine.subscribe(on_tick)
        fast_engine.start_monitoring()
        assert three_ticks.wait(timeout=5.0)
        fast_engine.stop_monitoring()

        by_spot = [{s.spot_id: s.computed_at for s in t} for t in tables[:3]]
        for earlier, later in zip(by_spot, by_spot[1:]):
            assert all(later[k] > earlier[k] for k in earlier)

    def test_start_is_idempotent(self, fast_engine):
        assert fast_engine.start_monitoring() is True
        thread = fast_engine._thread
        assert fast_engine.start_monitoring() is False
        assert fast_engine._thread is thread
        assert fast_engine.is_monitoring

    def test_stop_without_loop_is_noop(self, fast_engine):
        assert fast_engine.stop_monitoring() is False

    def test_no_delivery_after_stop(self, fast_engine):
        delivered = threading.Event()
        tables = []

        def on_tick(table):
            tables.append(table)
            delivered.set()

        fast_engine.subscribe(on_tick)
        fast_engine.start_monitoring()
        assert delivered.wait(timeout=2.0)

        assert fast_engine.stop_monitoring(wait=True) is True
        count = len(tables)
        threading.Event().wait(0.2)

        assert len(tables) == count
        assert not fast_engine.is_monitoring

    def test_stop_from_subscriber_does_not_deadlock(self, fast_engine):
        stopped = threading.Event()

        def stop_on_first(_):
            fast_engine.stop_monitoring()
            stopped.set()

        fast_engine.subscribe(stop_on_first)
        fast_engine.start_monitoring()

        assert stopped.wait(timeout=2.0)
        assert fast_engine.stop_monitoring() is False

    def test_refresh_interval_reflects_config(self, fast_engine):
        assert fast_engine.refresh_interval == 0.05
        fast_engine.set_config(replace(fast_engine.config, refresh_interval_seconds=2.0))
        assert fast_engine.refresh_interval == 2.0


class TestRegionViews:
    def test_region_stats(self, engine, provider, directory):
        _seed(provider, directory)
        provider.parking["ooty-lake"] = 100  # 포화 → 90 (RED)

        stats = engine.get_region_stats()

        assert stats.total_spots == 8
        assert stats.count_by_level == {"GREEN": 7, "YELLOW": 0, "ORANGE": 0, "RED": 1}
        assert stats.average_score == pytest.approx(90 / 8, abs=0.1)
        assert stats.busiest_spot["spot_id"] == "ooty-lake"
        assert stats.quietest_spot["score"] == 0
        assert stats.estimated_visitors == 450  # 90/100 × 500
        assert stats.entry_rate == 56

    def test_region_stats_empty_directory(self, provider, clock):
        from crowdshift.spots import SpotDirectory

        engine = TrafficEngine(SpotDirectory([]), provider, clock=clock, now_fn=lambda: FIXED_NOW)
        stats = engine.get_region_stats()

        assert stats.total_spots == 0
        assert stats.busiest_spot is None
        assert sum(stats.count_by_level.values()) == 0

    def test_heatmap_intensity(self, engine, provider, directory):
        _seed(provider, directory)
        provider.parking["ooty-lake"] = 100

        points = {p["spot_id"]: p for p in engine.get_region_heatmap()}

        assert points["ooty-lake"]["intensity"] == 0.9
        assert points["ooty-lake"]["level"] == TrafficLevel.RED.value
        assert points["ooty-lake"]["lat"] == directory.get_spot_by_id("ooty-lake").latitude

    def test_region_forecast_length_follows_hours(self, engine, provider, directory):
        _seed(provider, directory, parking=40)
        rows = engine.get_region_forecast(5)
        assert [r["hour_offset"] for r in rows] == [1, 2, 3, 4, 5]
