"""
pytest 설정 파일
"""
import sys
from datetime import datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# 프로젝트 루트를 sys.path에 추가
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from crowdshift.config import EngineConfig
from crowdshift.engine import TrafficEngine
from crowdshift.redirect import CrowdRouter
from crowdshift.signals import StaticSignalProvider
from crowdshift.spots import SpotDirectory

# 2026-03-11 (수요일) 14:00, shoulder 시간대
FIXED_NOW = datetime(2026, 3, 11, 14, 0)


class FakeClock:
    """수동으로 전진시키는 epoch 시계"""

    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def directory():
    """data/spots.json 기반 SpotDirectory 픽스처"""
    return SpotDirectory.from_json(PROJECT_ROOT / "data" / "spots.json")


@pytest.fixture
def provider():
    """맑은 날씨(WMO 0)만 채워진 StaticSignalProvider 픽스처"""
    return StaticSignalProvider(weather={"Ooty": {"code": 0, "temp": 18.0}})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(directory, provider, clock):
    """고정 시각/시계를 쓰는 TrafficEngine 픽스처"""
    engine = TrafficEngine(directory, provider, EngineConfig(), clock=clock,
                           now_fn=lambda: FIXED_NOW)
    yield engine
    engine.shutdown()


@pytest.fixture
def crowd_router(engine, directory):
    return CrowdRouter(engine, directory)


@pytest.fixture
def test_client(monkeypatch):
    """FastAPI 테스트 클라이언트 픽스처 (모니터링 off, 날씨 고정, 인메모리 제보 DB)"""
    monkeypatch.setenv("CROWDSHIFT_MONITORING", "false")
    monkeypatch.setenv("CROWDSHIFT_REPORTS_DB", ":memory:")
    monkeypatch.delenv("CROWDSHIFT_API_KEY", raising=False)
    monkeypatch.setattr(
        "crowdshift.weather.WeatherService.fetch_weather",
        lambda self, region_name="Ooty": {"code": 0, "temp": 18.0, "humidity": None,
                                          "wind_speed": None},
    )

    from api.app import app
    from api.cache import reroute_cache

    reroute_cache.invalidate()
    with TestClient(app) as client:
        yield client
