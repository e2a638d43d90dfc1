"""Unit tests for parley.conversation.extensions.weather.WeatherExtension.

HTTP is served by ``httpx.MockTransport``; no network access is needed.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Callable

import httpx
import pytest

from parley.conversation.extensions.weather import (
    AIR_QUALITY_URL,
    ARCHIVE_URL,
    FORECAST_URL,
    GEOCODING_URL,
    WeatherExtension,
    describe_aqi,
)
from parley.conversation.models import FunctionCall


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _geo_response(
    name: str = "Kansas City",
    admin1: str = "Missouri",
    country: str = "United States",
    lat: float = 39.0997,
    lon: float = -94.5786,
) -> dict[str, Any]:
    return {
        "results": [
            {
                "name": name,
                "admin1": admin1,
                "country": country,
                "latitude": lat,
                "longitude": lon,
            }
        ]
    }


def _weather_response(
    temp: float = 22.5,
    humidity: int = 55,
    weather_code: int = 1,
    wind_kmh: float = 14.4,
) -> dict[str, Any]:
    return {
        "current": {
            "temperature_2m": temp,
            "relative_humidity_2m": humidity,
            "weather_code": weather_code,
            "wind_speed_10m": wind_kmh,
        }
    }


def _transport(
    geo: dict[str, Any] | None = None,
    weather: dict[str, Any] | None = None,
    seen: list[httpx.Request] | None = None,
    handler: Callable[[httpx.Request], httpx.Response] | None = None,
    air: dict[str, Any] | None = None,
    archive: dict[str, Any] | None = None,
) -> httpx.MockTransport:
    """Serve canned geocoding, forecast, air-quality and archive payloads."""

    def _handle(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if handler is not None:
            return handler(request)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        if url == GEOCODING_URL:
            return httpx.Response(200, json=geo if geo is not None else _geo_response())
        if url == FORECAST_URL:
            return httpx.Response(200, json=weather if weather is not None else _weather_response())
        if url == AIR_QUALITY_URL and air is not None:
            return httpx.Response(200, json=air)
        if url == ARCHIVE_URL and archive is not None:
            return httpx.Response(200, json=archive)
        return httpx.Response(404)

    return httpx.MockTransport(_handle)


def _daily(**columns: list[Any]) -> dict[str, Any]:
    return {"daily": columns}


def _alerts_day(**overrides: Any) -> dict[str, Any]:
    day = {
        "time": ["2025-07-01"],
        "weather_code": [1],
        "temperature_2m_max": [24.0],
        "temperature_2m_min": [14.0],
        "precipitation_sum": [0.0],
        "snowfall_sum": [0.0],
        "wind_gusts_10m_max": [20.0],
    }
    day.update({key: [value] for key, value in overrides.items()})
    return _daily(**day)


# ---------------------------------------------------------------------------
# Definition
# ---------------------------------------------------------------------------


def test_definitions() -> None:
    definitions = {d.name: d for d in WeatherExtension().get_function_definitions()}

    assert list(definitions) == [
        "get_current_weather",
        "get_weather_forecast",
        "get_weather_alerts",
        "get_air_quality",
        "get_historical_weather",
    ]
    assert all(d.extension_name == "Weather" for d in definitions.values())
    assert definitions["get_current_weather"].required_parameters == ["location"]
    assert definitions["get_historical_weather"].required_parameters == ["location", "date"]


# ---------------------------------------------------------------------------
# get_weather
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_get_weather_success() -> None:
    seen: list[httpx.Request] = []
    extension = WeatherExtension(transport=_transport(seen=seen))

    result = await extension.get_weather("Kansas City")

    assert result == {
        "location_name": "Kansas City, Missouri, United States",
        "temperature": 22.5,
        "units": "Celsius",
        "conditions": "Mainly clear",
        "humidity_percent": 55,
        "wind_speed_kmh": 14.4,
    }
    assert seen[0].url.params["name"] == "Kansas City"
    assert seen[1].url.params["latitude"] == "39.0997"
    assert seen[1].url.params["temperature_unit"] == "celsius"


@pytest.mark.anyio
async def test_get_weather_fahrenheit() -> None:
    seen: list[httpx.Request] = []
    extension = WeatherExtension(transport=_transport(seen=seen))

    result = await extension.get_weather("Kansas City", units="Fahrenheit")

    assert result["units"] == "Fahrenheit"
    assert seen[1].url.params["temperature_unit"] == "fahrenheit"


@pytest.mark.anyio
async def test_unknown_weather_code() -> None:
    extension = WeatherExtension(transport=_transport(weather=_weather_response(weather_code=42)))
    result = await extension.get_weather("Kansas City")
    assert result["conditions"] == "Unknown conditions (code 42)"


@pytest.mark.anyio
async def test_location_not_found() -> None:
    extension = WeatherExtension(transport=_transport(geo={"results": []}))
    with pytest.raises(ValueError, match="Location not found"):
        await extension.get_weather("Atlantis")


@pytest.mark.anyio
async def test_unsupported_units() -> None:
    with pytest.raises(ValueError, match="Unsupported units"):
        await WeatherExtension(transport=_transport()).get_weather("Paris", units="Kelvin")


# ---------------------------------------------------------------------------
# execute_function
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_execute_function_success() -> None:
    extension = WeatherExtension(transport=_transport())

    result = await extension.execute_function(
        FunctionCall(name="get_current_weather", arguments={"location": "Kansas City"})
    )

    assert result.success
    assert json.loads(result.result)["temperature"] == 22.5


@pytest.mark.anyio
async def test_execute_function_http_error() -> None:
    extension = WeatherExtension(transport=_transport(handler=lambda r: httpx.Response(503)))

    result = await extension.execute_function(
        FunctionCall(name="get_current_weather", arguments={"location": "Kansas City"})
    )

    assert not result.success
    assert result.error == "Weather service error: 503"


@pytest.mark.anyio
async def test_execute_function_timeout() -> None:
    def _timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    extension = WeatherExtension(transport=_transport(handler=_timeout))

    result = await extension.execute_function(
        FunctionCall(name="get_current_weather", arguments={"location": "Kansas City"})
    )

    assert not result.success
    assert result.error == "Weather service timed out"


@pytest.mark.anyio
async def test_execute_function_unknown_location() -> None:
    extension = WeatherExtension(transport=_transport(geo={}))

    result = await extension.execute_function(
        FunctionCall(name="get_current_weather", arguments={"location": "Atlantis"})
    )

    assert not result.success
    assert result.error == "Location not found: 'Atlantis'"


# ---------------------------------------------------------------------------
# Forecast, alerts, air quality, history
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_forecast_days() -> None:
    seen: list[httpx.Request] = []
    forecast = _daily(
        time=["2025-07-01", "2025-07-02"],
        weather_code=[0, 63],
        temperature_2m_max=[28.1, 21.4],
        temperature_2m_min=[17.0, 15.2],
        precipitation_probability_max=[5, 80],
    )
    extension = WeatherExtension(transport=_transport(weather=forecast, seen=seen))

    result = await extension.get_forecast("Kansas City", days=2, units="Fahrenheit")

    assert result["location_name"] == "Kansas City, Missouri, United States"
    assert result["units"] == "Fahrenheit"
    assert result["days"][1] == {
        "date": "2025-07-02",
        "conditions": "Moderate rain",
        "temperature_max": 21.4,
        "temperature_min": 15.2,
        "precipitation_probability_percent": 80,
    }
    assert seen[1].url.params["forecast_days"] == "2"
    assert seen[1].url.params["temperature_unit"] == "fahrenheit"


@pytest.mark.anyio
async def test_forecast_days_are_clamped() -> None:
    seen: list[httpx.Request] = []
    forecast = _daily(
        time=[], weather_code=[], temperature_2m_max=[], temperature_2m_min=[],
        precipitation_probability_max=[],
    )
    extension = WeatherExtension(transport=_transport(weather=forecast, seen=seen))

    await extension.execute_function(
        FunctionCall(name="get_weather_forecast", arguments={"location": "Tokyo", "days": 30})
    )

    assert seen[1].url.params["forecast_days"] == "7"


@pytest.mark.anyio
async def test_alerts_none_on_calm_day() -> None:
    extension = WeatherExtension(transport=_transport(weather=_alerts_day()))

    result = await extension.get_alerts("Kansas City")

    assert result == {
        "location_name": "Kansas City, Missouri, United States",
        "date": "2025-07-01",
        "alerts": [],
    }


@pytest.mark.anyio
async def test_alerts_from_thresholds() -> None:
    stormy = _alerts_day(
        weather_code=95, wind_gusts_10m_max=90.0, precipitation_sum=42.0, temperature_2m_max=36.5
    )
    extension = WeatherExtension(transport=_transport(weather=stormy))

    result = await extension.get_alerts("Kansas City")

    assert result["alerts"] == [
        "Thunderstorm Warning",
        "High Wind Warning",
        "Heavy Rain Advisory",
        "Heat Advisory",
    ]


@pytest.mark.anyio
async def test_air_quality() -> None:
    air = {
        "current": {
            "us_aqi": 112,
            "pm2_5": 40.2,
            "pm10": 55.0,
            "ozone": 61.0,
            "nitrogen_dioxide": None,
        }
    }
    extension = WeatherExtension(transport=_transport(air=air))

    result = await extension.execute_function(
        FunctionCall(name="get_air_quality", arguments={"location": "Kansas City"})
    )

    assert result.success
    payload = json.loads(result.result)
    assert payload["aqi"] == 112
    assert payload["quality"] == "Unhealthy for Sensitive Groups"
    assert payload["pollutants"] == {"PM2.5": 40.2, "PM10": 55.0, "O3": 61.0}


@pytest.mark.parametrize(
    ("aqi", "label"),
    [(0, "Good"), (50, "Good"), (51, "Moderate"), (200, "Unhealthy"), (301, "Hazardous")],
)
def test_describe_aqi(aqi: int, label: str) -> None:
    assert describe_aqi(aqi) == label


@pytest.mark.anyio
async def test_historical_weather() -> None:
    seen: list[httpx.Request] = []
    archive = _daily(
        time=["2023-12-25"],
        weather_code=[71],
        temperature_2m_max=[3.2],
        temperature_2m_min=[-1.5],
        precipitation_sum=[2.4],
        wind_speed_10m_max=[18.0],
    )
    extension = WeatherExtension(
        transport=_transport(archive=archive, seen=seen), today=lambda: date(2025, 1, 1)
    )

    result = await extension.get_historical("Paris", "2023-12-25")

    assert result["conditions"] == "Slight snow"
    assert result["temperature_min"] == -1.5
    assert result["units"] == "Celsius"
    assert seen[1].url.params["start_date"] == "2023-12-25"
    assert seen[1].url.params["end_date"] == "2023-12-25"


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("day", "error"),
    [
        ("25/12/2023", "Invalid date format. Use YYYY-MM-DD."),
        ("2025-06-01", "Cannot get historical data for future dates."),
    ],
)
async def test_historical_weather_rejects_bad_dates(day: str, error: str) -> None:
    seen: list[httpx.Request] = []
    extension = WeatherExtension(transport=_transport(seen=seen), today=lambda: date(2025, 1, 1))

    result = await extension.execute_function(
        FunctionCall(name="get_historical_weather", arguments={"location": "Paris", "date": day})
    )

    assert not result.success
    assert result.error == error
    assert seen == []
