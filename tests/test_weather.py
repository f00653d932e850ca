# -*- coding: utf-8 -*-
import json
from unittest.mock import MagicMock, patch

import pytest

from crowdshift.exceptions import SignalUnavailable
from crowdshift.weather import WeatherService


def _mock_http_response(payload):
    resp = MagicMock()
    resp.read.return_value = json.dumps(payload).encode("utf-8")
    ctx = MagicMock()
    ctx.__enter__.return_value = resp
    ctx.__exit__.return_value = False
    return ctx


def _open_meteo_payload(code=0, temp=18.5):
    return {
        "current": {
            "time": "2026-03-11T14:00",
            "temperature_2m": temp,
            "relative_humidity_2m": 72,
            "weather_code": code,
            "wind_speed_10m": 9.4,
        }
    }


def test_current_conditions_parsed():
    service = WeatherService()
    with patch("crowdshift.weather.urlopen",
               return_value=_mock_http_response(_open_meteo_payload(code=61, temp=14.2))):
        weather = service.fetch_weather("Ooty")

    assert weather == {"code": 61, "temp": 14.2, "humidity": 72.0, "wind_speed": 9.4}


def test_request_uses_region_coordinates():
    service = WeatherService(api_url="http://weather.test/v1/forecast")
    with patch("crowdshift.weather.urlopen",
               return_value=_mock_http_response(_open_meteo_payload())) as mocked_urlopen:
        service.fetch_weather("Coonoor")

    url = mocked_urlopen.call_args[0][0]
    assert url.startswith("http://weather.test/v1/forecast?")
    assert "latitude=11.353" in url
    assert "weather_code" in url


def test_weather_cache_ttl():
    service = WeatherService(cache_ttl_seconds=600)
    with patch("crowdshift.weather.urlopen",
               return_value=_mock_http_response(_open_meteo_payload(code=3))) as mocked_urlopen:
        with patch("crowdshift.weather.time.time", side_effect=[1000, 1010, 1700]):
            first = service.fetch_weather("Ooty")
            second = service.fetch_weather("Ooty")
            third = service.fetch_weather("Ooty")

    assert first == second == third
    assert mocked_urlopen.call_count == 2


def test_cache_is_per_region():
    service = WeatherService()
    with patch("crowdshift.weather.urlopen",
               return_value=_mock_http_response(_open_meteo_payload())) as mocked_urlopen:
        service.fetch_weather("Ooty")
        service.fetch_weather("Kotagiri")

    assert mocked_urlopen.call_count == 2


def test_api_failure_raises_signal_unavailable():
    service = WeatherService()
    with patch("crowdshift.weather.urlopen", side_effect=RuntimeError("open-meteo down")):
        with pytest.raises(SignalUnavailable) as exc_info:
            service.fetch_weather("Ooty")

    assert exc_info.value.factor == "weather"


def test_response_without_weather_code():
    service = WeatherService()
    payload = {"current": {"temperature_2m": 20.0}}
    with patch("crowdshift.weather.urlopen", return_value=_mock_http_response(payload)):
        with pytest.raises(SignalUnavailable):
            service.fetch_weather("Ooty")


def test_unknown_region_does_not_call_api():
    service = WeatherService()
    with patch("crowdshift.weather.urlopen") as mocked_urlopen:
        with pytest.raises(SignalUnavailable):
            service.fetch_weather("Atlantis")
    mocked_urlopen.assert_not_called()
