"""
Weather extension backed by Open-Meteo (https://open-meteo.com/).

No API key is needed. Every lookup first resolves the location string to
coordinates through the geocoding endpoint, then queries one of:

* the forecast endpoint: current conditions, daily forecasts and the
  threshold-based alerts derived from today's forecast,
* the air-quality endpoint: current US AQI and pollutant levels,
* the archive endpoint: observed weather for a past date.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Awaitable, Callable

import httpx

from parley.conversation.extensions.base import BaseFunctionExtension

logger = logging.getLogger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
AIR_QUALITY_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"
ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"

MAX_FORECAST_DAYS = 7

# WMO weather interpretation codes (subset used by Open-Meteo).
_WMO_CONDITIONS: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    80: "Rain showers",
    85: "Snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Thunderstorm with heavy hail",
}

_UNITS = {"celsius": "celsius", "fahrenheit": "fahrenheit"}

# Upper bound of each US AQI band.
_AQI_BANDS: list[tuple[int, str]] = [
    (50, "Good"),
    (100, "Moderate"),
    (150, "Unhealthy for Sensitive Groups"),
    (200, "Unhealthy"),
    (300, "Very Unhealthy"),
]

_POLLUTANTS = {
    "pm2_5": "PM2.5",
    "pm10": "PM10",
    "ozone": "O3",
    "nitrogen_dioxide": "NO2",
    "sulphur_dioxide": "SO2",
    "carbon_monoxide": "CO",
}

# Alert thresholds on today's metric forecast.
HIGH_WIND_GUST_KMH = 75.0
HEAVY_RAIN_MM = 30.0
HEAVY_SNOW_CM = 10.0
HEAT_C = 35.0
EXTREME_COLD_C = -20.0

_LOCATION = {"type": "string", "description": "City name, 'City, State' or 'City, Country'"}
_UNITS_PARAMETER = {
    "type": "string",
    "description": "Temperature units",
    "enum": ["Celsius", "Fahrenheit"],
}


def _conditions(code: Any) -> str:
    code = int(code)
    return _WMO_CONDITIONS.get(code, f"Unknown conditions (code {code})")


def describe_aqi(aqi: float) -> str:
    for upper, label in _AQI_BANDS:
        if aqi <= upper:
            return label
    return "Hazardous"


class WeatherExtension(BaseFunctionExtension):
    """Current conditions, forecasts, alerts, air quality and history.

    Args:
        timeout: HTTP timeout per request, in seconds.
        default_units: ``"Celsius"`` or ``"Fahrenheit"``.
        transport: Optional ``httpx`` transport (tests pass a ``MockTransport``).
        today: Returns the current date; history lookups reject later dates.
    """

    name = "Weather"
    description = "Provides weather information and forecasting functions"

    def __init__(
        self,
        timeout: float = 10.0,
        default_units: str = "Celsius",
        transport: httpx.AsyncBaseTransport | None = None,
        today: Callable[[], date] = date.today,
        enabled: bool = True,
    ) -> None:
        self.timeout = timeout
        self.default_units = default_units
        self._transport = transport
        self._today = today
        super().__init__(enabled=enabled)

    def register_functions(self) -> None:
        self.add_function(
            "get_current_weather",
            "Get current weather for a location",
            {
                "type": "object",
                "properties": {"location": _LOCATION, "units": _UNITS_PARAMETER},
                "required": ["location"],
            },
            lambda args: self._guarded(args, self.get_weather(args["location"], args.get("units"))),
            "get_current_weather('London', 'Celsius')",
        )
        self.add_function(
            "get_weather_forecast",
            f"Get a daily weather forecast for up to {MAX_FORECAST_DAYS} days",
            {
                "type": "object",
                "properties": {
                    "location": _LOCATION,
                    "days": {"type": "number", "description": "Number of days to forecast"},
                    "units": _UNITS_PARAMETER,
                },
                "required": ["location"],
            },
            lambda args: self._guarded(
                args,
                self.get_forecast(args["location"], args.get("days") or 5, args.get("units")),
            ),
            "get_weather_forecast('Tokyo', 3, 'Celsius')",
        )
        self.add_function(
            "get_weather_alerts",
            "Get weather alerts and warnings for today",
            {"type": "object", "properties": {"location": _LOCATION}, "required": ["location"]},
            lambda args: self._guarded(args, self.get_alerts(args["location"])),
            "get_weather_alerts('Miami')",
        )
        self.add_function(
            "get_air_quality",
            "Get air quality information",
            {"type": "object", "properties": {"location": _LOCATION}, "required": ["location"]},
            lambda args: self._guarded(args, self.get_air_quality(args["location"])),
            "get_air_quality('Beijing')",
        )
        self.add_function(
            "get_historical_weather",
            "Get historical weather data for a specific date",
            {
                "type": "object",
                "properties": {
                    "location": _LOCATION,
                    "date": {"type": "string", "description": "Date in YYYY-MM-DD format"},
                    "units": _UNITS_PARAMETER,
                },
                "required": ["location", "date"],
            },
            lambda args: self._guarded(
                args, self.get_historical(args["location"], args["date"], args.get("units"))
            ),
            "get_historical_weather('Paris', '2023-12-25', 'Celsius')",
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_weather(self, location: str, units: str | None = None) -> dict[str, Any]:
        """Fetch current conditions for *location*.

        Raises:
            ValueError: If the location cannot be geocoded or *units* is unknown.
            httpx.HTTPError: On transport failures or non-2xx responses.
        """
        unit_key = self._unit_key(units)
        async with self._client() as client:
            place, resolved = await self._geocode(client, location)
            current = (
                await self._get_json(
                    client,
                    FORECAST_URL,
                    {
                        **_coordinates(place),
                        "current": "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m",
                        "temperature_unit": unit_key,
                        "wind_speed_unit": "kmh",
                    },
                )
            )["current"]

        return {
            "location_name": resolved,
            "temperature": current["temperature_2m"],
            "units": unit_key.capitalize(),
            "conditions": _conditions(current["weather_code"]),
            "humidity_percent": int(current["relative_humidity_2m"]),
            "wind_speed_kmh": current["wind_speed_10m"],
        }

    async def get_forecast(
        self, location: str, days: int = 5, units: str | None = None
    ) -> dict[str, Any]:
        """Daily forecast for *location*; *days* is clamped to 1..7."""
        unit_key = self._unit_key(units)
        days = max(1, min(int(days), MAX_FORECAST_DAYS))
        async with self._client() as client:
            place, resolved = await self._geocode(client, location)
            daily = (
                await self._get_json(
                    client,
                    FORECAST_URL,
                    {
                        **_coordinates(place),
                        "daily": (
                            "weather_code,temperature_2m_max,temperature_2m_min,"
                            "precipitation_probability_max"
                        ),
                        "forecast_days": days,
                        "temperature_unit": unit_key,
                        "timezone": "auto",
                    },
                )
            )["daily"]

        forecast = [
            {
                "date": day,
                "conditions": _conditions(daily["weather_code"][i]),
                "temperature_max": daily["temperature_2m_max"][i],
                "temperature_min": daily["temperature_2m_min"][i],
                "precipitation_probability_percent": daily["precipitation_probability_max"][i],
            }
            for i, day in enumerate(daily["time"])
        ]
        return {"location_name": resolved, "units": unit_key.capitalize(), "days": forecast}

    async def get_alerts(self, location: str) -> dict[str, Any]:
        """Derive alerts for *location* from today's forecast.

        Open-Meteo publishes no warning feed, so alerts come from fixed
        thresholds on the metric forecast.
        """
        async with self._client() as client:
            place, resolved = await self._geocode(client, location)
            daily = (
                await self._get_json(
                    client,
                    FORECAST_URL,
                    {
                        **_coordinates(place),
                        "daily": (
                            "weather_code,temperature_2m_max,temperature_2m_min,"
                            "precipitation_sum,snowfall_sum,wind_gusts_10m_max"
                        ),
                        "forecast_days": 1,
                        "timezone": "auto",
                    },
                )
            )["daily"]

        today = {key: values[0] for key, values in daily.items()}
        alerts: list[str] = []
        code = int(today["weather_code"])
        if code in (95, 96, 99):
            alerts.append("Thunderstorm Warning")
        if code in (45, 48):
            alerts.append("Fog Advisory")
        if (today.get("wind_gusts_10m_max") or 0) >= HIGH_WIND_GUST_KMH:
            alerts.append("High Wind Warning")
        if (today.get("precipitation_sum") or 0) >= HEAVY_RAIN_MM:
            alerts.append("Heavy Rain Advisory")
        if (today.get("snowfall_sum") or 0) >= HEAVY_SNOW_CM:
            alerts.append("Heavy Snow Advisory")
        if today["temperature_2m_max"] >= HEAT_C:
            alerts.append("Heat Advisory")
        if today["temperature_2m_min"] <= EXTREME_COLD_C:
            alerts.append("Extreme Cold Warning")

        logger.debug("Alerts for %s: %s", resolved, alerts or "none")
        return {"location_name": resolved, "date": today["time"], "alerts": alerts}

    async def get_air_quality(self, location: str) -> dict[str, Any]:
        """Current US AQI and pollutant concentrations (ug/m3) for *location*."""
        async with self._client() as client:
            place, resolved = await self._geocode(client, location)
            current = (
                await self._get_json(
                    client,
                    AIR_QUALITY_URL,
                    {**_coordinates(place), "current": ",".join(["us_aqi", *_POLLUTANTS])},
                )
            )["current"]

        pollutants = {
            label: current[key] for key, label in _POLLUTANTS.items() if current.get(key) is not None
        }
        aqi = int(current["us_aqi"])
        return {
            "location_name": resolved,
            "aqi": aqi,
            "quality": describe_aqi(aqi),
            "pollutants": pollutants,
        }

    async def get_historical(
        self, location: str, day: str, units: str | None = None
    ) -> dict[str, Any]:
        """Observed weather for *location* on *day* (``YYYY-MM-DD``).

        Raises:
            ValueError: For a malformed or future date.
        """
        try:
            requested = date.fromisoformat(day)
        except (TypeError, ValueError) as exc:
            raise ValueError("Invalid date format. Use YYYY-MM-DD.") from exc
        if requested > self._today():
            raise ValueError("Cannot get historical data for future dates.")

        unit_key = self._unit_key(units)
        async with self._client() as client:
            place, resolved = await self._geocode(client, location)
            daily = (
                await self._get_json(
                    client,
                    ARCHIVE_URL,
                    {
                        **_coordinates(place),
                        "start_date": requested.isoformat(),
                        "end_date": requested.isoformat(),
                        "daily": (
                            "weather_code,temperature_2m_max,temperature_2m_min,"
                            "precipitation_sum,wind_speed_10m_max"
                        ),
                        "temperature_unit": unit_key,
                        "timezone": "auto",
                    },
                )
            )["daily"]

        if not daily.get("time"):
            raise ValueError(f"No historical data for {requested.isoformat()}")
        return {
            "location_name": resolved,
            "date": requested.isoformat(),
            "units": unit_key.capitalize(),
            "conditions": _conditions(daily["weather_code"][0]),
            "temperature_max": daily["temperature_2m_max"][0],
            "temperature_min": daily["temperature_2m_min"][0],
            "precipitation_mm": daily["precipitation_sum"][0],
            "wind_speed_max_kmh": daily["wind_speed_10m_max"][0],
        }

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _unit_key(self, units: str | None) -> str:
        unit_key = (units or self.default_units).lower()
        if unit_key not in _UNITS:
            raise ValueError(f"Unsupported units: {units!r}")
        return _UNITS[unit_key]

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _get_json(self, client: httpx.AsyncClient, url: str, params: dict[str, Any]) -> Any:
        response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def _geocode(self, client: httpx.AsyncClient, location: str) -> tuple[dict[str, Any], str]:
        payload = await self._get_json(
            client,
            GEOCODING_URL,
            {"name": location, "count": 1, "language": "en", "format": "json"},
        )
        places = payload.get("results")
        if not places:
            raise ValueError(f"Location not found: {location!r}")
        place = places[0]
        resolved = ", ".join(
            part for part in (place.get("name", location), place.get("admin1"), place.get("country"))
            if part
        )
        logger.debug("Geocoded %r as %s", location, resolved)
        return place, resolved

    async def _guarded(self, args: dict[str, Any], lookup: Awaitable[dict[str, Any]]) -> dict[str, Any]:
        try:
            return await lookup
        except httpx.HTTPStatusError as exc:
            logger.error("Weather API HTTP error: %s", exc)
            raise RuntimeError(f"Weather service error: {exc.response.status_code}") from exc
        except httpx.TimeoutException as exc:
            logger.error("Weather API timed out for location: %r", args.get("location"))
            raise RuntimeError("Weather service timed out") from exc


def _coordinates(place: dict[str, Any]) -> dict[str, Any]:
    return {"latitude": place["latitude"], "longitude": place["longitude"]}
