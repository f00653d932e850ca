"""
TrafficEngine 싱글턴 관리.
앱 시작 시 한 번 조립하고, 모든 요청에서 재사용한다.

    SpotDirectory ─┐
    LiveReadings ──┤
    WeatherService ┼─▶ CompositeSignalProvider ─▶ TrafficEngine ─▶ CrowdRouter
    Historical ────┤
    ReportStore ───┘
"""
import logging
import os
import sys
import threading
from pathlib import Path

# 프로젝트 루트를 sys.path에 추가
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from crowdshift.config import EngineConfig
from crowdshift.engine import TrafficEngine
from crowdshift.history import HistoricalPatterns
from crowdshift.redirect import CrowdRouter
from crowdshift.reports import ReportStore
from crowdshift.signals import CompositeSignalProvider, LiveReadings
from crowdshift.spots import SpotDirectory
from crowdshift.weather import WeatherService

logger = logging.getLogger(__name__)


class EngineRegistry:
    def __init__(self):
        self.engine: TrafficEngine | None = None
        self.router: CrowdRouter | None = None
        self.readings: LiveReadings | None = None
        self.reports: ReportStore | None = None
        self.engine_lock = threading.RLock()  # Protects config swaps (calibrate)

    def load(self, data_dir=None, config: EngineConfig | None = None):
        data_dir = Path(data_dir or os.getenv("CROWDSHIFT_DATA_DIR") or PROJECT_ROOT / "data")
        config = config or EngineConfig.from_env()

        directory = SpotDirectory.from_json(data_dir / "spots.json")
        history = HistoricalPatterns(data_dir / "historical_patterns.csv").load()
        reports_db = os.getenv("CROWDSHIFT_REPORTS_DB") or data_dir / "processed" / "reports.db"
        self.reports = ReportStore(reports_db)
        self.readings = LiveReadings(directory, max_age_seconds=config.reading_max_age_seconds)
        provider = CompositeSignalProvider(
            self.readings,
            weather=WeatherService(),
            history=history,
            reports=self.reports,
        )

        if self.engine is not None:
            self.engine.shutdown()
        self.engine = TrafficEngine(directory, provider, config)
        self.router = CrowdRouter(self.engine, directory)
        logger.info("Engine registry loaded from %s", data_dir)

    def get_engine(self) -> TrafficEngine:
        if self.engine is None:
            raise RuntimeError("Engine not loaded")
        return self.engine

    def get_router(self) -> CrowdRouter:
        if self.router is None:
            raise RuntimeError("Engine not loaded")
        return self.router

    def get_readings(self) -> LiveReadings:
        if self.readings is None:
            raise RuntimeError("Engine not loaded")
        return self.readings

    def get_reports(self) -> ReportStore:
        if self.reports is None:
            raise RuntimeError("Engine not loaded")
        return self.reports


registry = EngineRegistry()
