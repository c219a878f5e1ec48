"""Rows written to the resort_conditions table.

Liftie and Open-Meteo each own a subset of the columns; an upsert from
either source replaces only the columns that source knows about.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LiftieConditions(BaseModel):
    """Lift, weather-summary and webcam columns sourced from Liftie."""

    resort_id: str
    lifts_open: int = 0
    lifts_total: int = 0
    lifts_percentage: float = 0
    lifts_status: dict[str, str] = Field(default_factory=dict)
    weather_high: float | None = None
    weather_condition: str | None = None
    weather_text: str | None = None
    weather_icon: list[str] = Field(default_factory=list)
    weather_date: str | None = None
    webcams: list[dict[str, Any]] = Field(default_factory=list)
    has_webcams: bool = False
    has_lifts: bool = False
    has_weather: bool = False
    liftie_id: str | None = None
    source_timestamp: str | None = None


class DailyForecast(BaseModel):
    date: str
    high: float | None = None
    low: float | None = None
    weather_code: int | None = None
    precip_chance: float = 0
    snowfall: float = 0
    wind_speed_max: float = 0


class HourlyForecast(BaseModel):
    time: str
    temp: float | None = None
    feels_like: float | None = None
    weather_code: int | None = None
    precip_chance: float = 0
    snowfall: float = 0
    wind_speed: float = 0
    wind_gust: float = 0


class WeatherConditions(BaseModel):
    """Forecast columns sourced from Open-Meteo (imperial units)."""

    resort_id: str
    current_temp: float | None = None
    current_feels_like: float | None = None
    current_humidity: float | None = None
    current_wind_speed: float | None = None
    current_wind_gust: float | None = None
    current_wind_direction: float | None = None
    current_precipitation: float | None = None
    current_snowfall: float | None = None
    current_weather_code: int | None = None
    current_visibility: float | None = None
    current_weather_description: str | None = None
    is_day: bool = True
    today_high: float | None = None
    today_low: float | None = None
    today_precip_chance: float | None = None
    today_snowfall: float | None = None
    today_weather_code: int | None = None
    sunrise: str | None = None
    sunset: str | None = None
    uv_index: float | None = None
    snow_next_24h: float = 0
    snow_next_48h: float = 0
    snow_next_72h: float = 0
    daily_forecast: list[DailyForecast] = Field(default_factory=list)
    hourly_forecast: list[HourlyForecast] = Field(default_factory=list)
    elevation_used: float | None = None
    weather_fetched_at: str | None = None
    weather_source: str = "open-meteo"
    has_weather: bool = True


class ConditionsUpdate(BaseModel):
    """Admin payload for manually setting a resort's conditions."""

    lifts_open: int | None = Field(None, ge=0, alias="liftsOpen")
    lifts_total: int | None = Field(None, ge=0, alias="liftsTotal")
    weather_condition: str | None = Field(None, alias="weatherCondition")
    weather_high: float | None = Field(None, alias="weatherHigh")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
