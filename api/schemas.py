from pydantic import BaseModel, Field
from typing import List, Literal, Optional, Dict


VALID_LEVEL = Literal["GREEN", "YELLOW", "ORANGE", "RED"]


# --- Congestion Schemas ---

class CongestionFactors(BaseModel):
    pass_score: int
    parking_score: int
    weather_score: int
    historical_score: int
    report_score: int


class HourlyPrediction(BaseModel):
    hour_offset: int
    hour: int  # 0-23
    predicted_score: int
    confidence: float  # 0.0-1.0


class CongestionScore(BaseModel):
    spot_id: str
    name: str = ""
    score: int = Field(ge=0, le=100)
    level: VALID_LEVEL
    factors: CongestionFactors
    trend: Literal["RISING", "FALLING", "STABLE"]
    prediction: List[HourlyPrediction] = []
    computed_at: float
    data_quality: Literal["HIGH", "MEDIUM", "LOW"]
    confidence: float
    degraded_factors: List[str] = []


class SpotCongestionResponse(CongestionScore):
    refresh_interval: float  # 폴링 클라이언트용 갱신 주기 (초)


class SpotSummary(BaseModel):
    spot_id: str
    name: str
    score: int


class RegionStats(BaseModel):
    count_by_level: Dict[str, int]
    average_score: float
    total_spots: int
    busiest_spot: Optional[SpotSummary] = None
    quietest_spot: Optional[SpotSummary] = None
    estimated_visitors: int
    entry_rate: int  # 시간당 입장 추정
    computed_at: float


class CongestionListResponse(BaseModel):
    scores: List[CongestionScore]
    stats: RegionStats
    refresh_interval: float


class RegionStatsResponse(RegionStats):
    refresh_interval: float


class HeatmapPoint(BaseModel):
    spot_id: str
    lat: float
    lng: float
    intensity: float  # score / 100
    level: VALID_LEVEL


class HeatmapResponse(BaseModel):
    points: List[HeatmapPoint]
    refresh_interval: float


class RegionForecastPoint(BaseModel):
    hour_offset: int
    hour: int
    average_score: int
    level: VALID_LEVEL


class SpotForecast(BaseModel):
    spot_id: str
    name: str
    current_score: int
    trend: Literal["RISING", "FALLING", "STABLE"]
    predictions: List[HourlyPrediction]


class PredictResponse(BaseModel):
    hours: int
    spots: List[SpotForecast]
    region: List[RegionForecastPoint]
    refresh_interval: float


# --- Shaping Schemas ---

class ShapingPolicy(BaseModel):
    level: VALID_LEVEL
    intervention: Literal["NONE", "ADVISORY", "SUGGEST", "REDIRECT"]
    recommend: bool
    ranking_modifier: float
    show_alternatives: bool
    block_from_suggestions: bool
    gate_parking_bookings: bool
    alert_users: bool
    message: str


class ShapingResponse(BaseModel):
    score: int
    level: VALID_LEVEL
    should_reroute: bool
    policy: ShapingPolicy


# --- Reroute Schemas ---

class RerouteRequest(BaseModel):
    destination: str = Field(min_length=1, max_length=60)  # spot id 또는 이름
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    limit: Optional[int] = Field(None, ge=1, le=10)


class SuggestedSpot(BaseModel):
    id: str
    name: str
    category: str


class AlternativeSuggestion(BaseModel):
    original_spot_id: str
    suggested_spot: SuggestedSpot
    crowd_score: int
    level: VALID_LEVEL
    parking_available: int  # 추정치, 실시간 재고 아님
    reason: str
    distance_diff_km: float
    distance_diff: str  # "+2.3 km"
    distance_km: float


class RerouteResponse(BaseModel):
    destination: str
    name: str
    should_reroute: bool
    outcome: Literal["CLEAR", "REROUTE", "NO_ALTERNATIVE"]
    score: int
    level: VALID_LEVEL
    policy: ShapingPolicy
    message: str
    alternatives: List[AlternativeSuggestion]
    refresh_interval: float


# --- Spot Schemas ---

class SpotItem(BaseModel):
    id: str
    name: str
    local_name: str = ""
    category: str
    lat: float
    lng: float
    indoor: bool
    open_time: str
    close_time: str
    region: str
    parking_slots: Optional[int] = None


class NearestSpotItem(BaseModel):
    id: str
    name: str
    category: str
    distance_km: float
    lat: float
    lng: float


class NearestSpotResponse(BaseModel):
    spots: List[NearestSpotItem]


# --- Live Signal Schemas ---

class SignalRequest(BaseModel):
    pass_volume: Optional[float] = Field(None, ge=0)  # entries/hour
    parking_occupancy_pct: Optional[float] = Field(None, ge=0, le=100)
    occupied_slots: Optional[int] = Field(None, ge=0)


class SignalResponse(BaseModel):
    spot_id: str
    accepted: List[str]
    score: CongestionScore


# --- Report Schemas ---

class ReportRequest(BaseModel):
    spot_id: str = Field(max_length=60)
    severity: int = Field(ge=1, le=5)  # 1: 한산 ~ 5: 매우 혼잡
    comment: Optional[str] = Field(None, max_length=500)


class ReportResponse(BaseModel):
    id: int
    message: str


class SpotReportStats(BaseModel):
    spot_id: str
    count: int
    avg_severity: float
    report_score: int


class ReportStatsResponse(BaseModel):
    total_count: int
    window_minutes: int
    per_spot: List[SpotReportStats]


# --- Calibration Schemas ---

class CalibrationRequest(BaseModel):
    weight_parking: Optional[float] = Field(None, ge=0.0, le=1.0)
    weight_passes: Optional[float] = Field(None, ge=0.0, le=1.0)
    weight_historical: Optional[float] = Field(None, ge=0.0, le=1.0)
    weight_weather: Optional[float] = Field(None, ge=0.0, le=1.0)
    weight_reports: Optional[float] = Field(None, ge=0.0, le=1.0)
    yellow_threshold: Optional[int] = Field(None, ge=1, le=100)
    orange_threshold: Optional[int] = Field(None, ge=1, le=100)
    red_threshold: Optional[int] = Field(None, ge=1, le=100)
    alternative_cutoff: Optional[int] = Field(None, ge=0, le=100)
    multiplier_morning_peak: Optional[float] = Field(None, ge=0.1, le=3.0)
    multiplier_afternoon_peak: Optional[float] = Field(None, ge=0.1, le=3.0)
    multiplier_shoulder: Optional[float] = Field(None, ge=0.1, le=3.0)
    multiplier_off_peak: Optional[float] = Field(None, ge=0.1, le=3.0)


class CalibrationResponse(BaseModel):
    weights: Dict[str, float]
    thresholds: Dict[str, int]
    peak_multipliers: Dict[str, float]
    alternative_cutoff: int
    refresh_interval: float
