"""Open-Meteo current-conditions weather provider."""

import json
import logging
import os
import time
from urllib.parse import urlencode
from urllib.request import urlopen

from crowdshift.exceptions import SignalUnavailable

logger = logging.getLogger(__name__)

# Region name → (lat, lng)
REGIONS = {
    "Ooty": (11.4102, 76.6950),
    "Coonoor": (11.3530, 76.7959),
    "Kotagiri": (11.4218, 76.8603),
    "Pykara": (11.4780, 76.6020),
}


class WeatherService:
    """Open-Meteo API를 조회해 지역별 현재 날씨(WMO 코드, 기온)를 반환한다."""

    _API_URL = "https://api.open-meteo.com/v1/forecast"

    def __init__(self, api_url=None, cache_ttl_seconds=600, timeout_seconds=4, regions=None):
        self.api_url = api_url or os.getenv("WEATHER_API_URL", self._API_URL)
        self.cache_ttl_seconds = cache_ttl_seconds
        self.timeout_seconds = timeout_seconds
        self.regions = dict(regions or REGIONS)
        self._cache = {}

    def fetch_weather(self, region_name="Ooty"):
        """Return {"code", "temp", "wind_speed", "humidity"} for a region."""
        cached = self._cache.get(region_name)
        now_ts = time.time()
        if cached and now_ts - cached[0] < self.cache_ttl_seconds:
            return cached[1]

        coords = self.regions.get(region_name)
        if coords is None:
            raise SignalUnavailable("weather", reason=f"unknown region {region_name!r}")

        lat, lng = coords
        payload = {
            "latitude": lat,
            "longitude": lng,
            "current": "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m",
            "timezone": "Asia/Kolkata",
        }
        url = f"{self.api_url}?{urlencode(payload)}"
        try:
            with urlopen(url, timeout=self.timeout_seconds) as response:
                raw = response.read().decode("utf-8")
            weather = self._extract_current(raw)
        except SignalUnavailable:
            raise
        except Exception as e:
            logger.warning("Weather fetch failed for %s: %s", region_name, e)
            raise SignalUnavailable("weather", reason=str(e)) from e

        self._cache[region_name] = (now_ts, weather)
        return weather

    def _extract_current(self, raw_body):
        """응답의 current 블록에서 날씨 코드/기온을 추출한다."""
        data = json.loads(raw_body)
        current = data.get("current") or {}
        code = current.get("weather_code")
        if code is None:
            raise SignalUnavailable("weather", reason="response has no weather_code")

        def _num(key):
            try:
                return float(current[key])
            except (KeyError, TypeError, ValueError):
                return None

        return {
            "code": int(code),
            "temp": _num("temperature_2m"),
            "humidity": _num("relative_humidity_2m"),
            "wind_speed": _num("wind_speed_10m"),
        }
