"""Open-Meteo weather data service for elevation-aware mountain forecasts."""

import logging

import requests
from pydantic import ValidationError

from models.weather import OpenMeteoForecast
from utils.http import SourceFetchError, is_not_found, request_with_retry

logger = logging.getLogger(__name__)

FEET_TO_METERS = 0.3048

CURRENT_VARIABLES = [
    "temperature_2m",
    "relative_humidity_2m",
    "apparent_temperature",
    "is_day",
    "precipitation",
    "rain",
    "snowfall",
    "weather_code",
    "wind_speed_10m",
    "wind_direction_10m",
    "wind_gusts_10m",
]
HOURLY_VARIABLES = [
    "temperature_2m",
    "relative_humidity_2m",
    "apparent_temperature",
    "precipitation_probability",
    "precipitation",
    "rain",
    "snowfall",
    "snow_depth",
    "weather_code",
    "visibility",
    "wind_speed_10m",
    "wind_direction_10m",
    "wind_gusts_10m",
    "uv_index",
]
DAILY_VARIABLES = [
    "weather_code",
    "temperature_2m_max",
    "temperature_2m_min",
    "apparent_temperature_max",
    "apparent_temperature_min",
    "sunrise",
    "sunset",
    "uv_index_max",
    "precipitation_sum",
    "rain_sum",
    "snowfall_sum",
    "precipitation_hours",
    "precipitation_probability_max",
    "wind_speed_10m_max",
    "wind_gusts_10m_max",
    "wind_direction_10m_dominant",
]

# WMO weather interpretation codes
WEATHER_CODE_DESCRIPTIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Rime fog",
    51: "Light drizzle",
    53: "Drizzle",
    55: "Heavy drizzle",
    56: "Light freezing drizzle",
    57: "Freezing drizzle",
    61: "Light rain",
    63: "Rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Freezing rain",
    71: "Light snow",
    73: "Snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Light showers",
    81: "Showers",
    82: "Heavy showers",
    85: "Light snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Heavy thunderstorm",
}


def weather_code_description(code: int | None) -> str:
    if code is None:
        return "Unknown"
    return WEATHER_CODE_DESCRIPTIONS.get(code, "Unknown")


def feet_to_meters(feet: float) -> int:
    return round(feet * FEET_TO_METERS)


class OpenMeteoService:
    """Service for fetching forecasts from the Open-Meteo API.

    Open-Meteo provides:
    - Free API (no key required)
    - Elevation-aware data
    - Current conditions, hourly and daily forecasts
    """

    def __init__(
        self,
        base_url: str = "https://api.open-meteo.com/v1/forecast",
        timezone: str = "America/Denver",
        forecast_days: int = 7,
    ):
        self.base_url = base_url
        self.timezone = timezone
        self.forecast_days = forecast_days

    def build_params(
        self, latitude: float, longitude: float, elevation_meters: int | None = None
    ) -> dict[str, str | int | float]:
        params: dict[str, str | int | float] = {
            "latitude": latitude,
            "longitude": longitude,
            "current": ",".join(CURRENT_VARIABLES),
            "hourly": ",".join(HOURLY_VARIABLES),
            "daily": ",".join(DAILY_VARIABLES),
            # Imperial units (Fahrenheit, mph, inches)
            "temperature_unit": "fahrenheit",
            "wind_speed_unit": "mph",
            "precipitation_unit": "inch",
            "timezone": self.timezone,
            "forecast_days": self.forecast_days,
        }
        if elevation_meters:
            params["elevation"] = elevation_meters
        return params

    def get_forecast(
        self,
        latitude: float,
        longitude: float,
        elevation_meters: int | None = None,
    ) -> OpenMeteoForecast | None:
        """
        Fetch the forecast for a location, optionally at a given elevation.

        Returns None when the API has no data for the location.

        Raises:
            SourceFetchError: On network errors or a malformed response
        """
        params = self.build_params(latitude, longitude, elevation_meters)
        try:
            response = request_with_retry("GET", self.base_url, params=params)
        except requests.exceptions.RequestException as e:
            if is_not_found(e):
                return None
            raise SourceFetchError(f"Open-Meteo request failed: {e}") from e

        try:
            return OpenMeteoForecast.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SourceFetchError(f"Invalid Open-Meteo response: {e}") from e
