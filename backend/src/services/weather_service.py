"""Mapping Open-Meteo forecasts onto resort_conditions weather columns."""

from typing import Any

from models.conditions import DailyForecast, HourlyForecast, WeatherConditions
from models.weather import OpenMeteoForecast, OpenMeteoHourly
from services.openmeteo_service import weather_code_description

HOURLY_FORECAST_HOURS = 24

# Minimum change that justifies rewriting a stored forecast
TEMP_CHANGE_F = 2.0
SNOW_CHANGE_IN = 0.5
WIND_CHANGE_MPH = 5.0


def snowfall_total(hourly: OpenMeteoHourly | None, hours: int) -> float:
    """Sum of forecast snowfall (inches) over the next ``hours`` hours."""
    if hourly is None or not hourly.snowfall:
        return 0.0
    return round(sum(value or 0 for value in hourly.snowfall[:hours]), 2)


def map_forecast_to_conditions(
    resort_id: str,
    forecast: OpenMeteoForecast,
    fetched_at: str,
) -> WeatherConditions:
    current = forecast.current
    hourly = forecast.hourly
    daily = forecast.daily

    daily_forecast = []
    if daily:
        for i, date in enumerate(daily.time):
            daily_forecast.append(
                DailyForecast(
                    date=date,
                    high=daily.value_at("temperature_2m_max", i),
                    low=daily.value_at("temperature_2m_min", i),
                    weather_code=daily.value_at("weather_code", i),
                    precip_chance=daily.value_at("precipitation_probability_max", i) or 0,
                    snowfall=daily.value_at("snowfall_sum", i) or 0,
                    wind_speed_max=daily.value_at("wind_speed_10m_max", i) or 0,
                )
            )

    hourly_forecast = []
    if hourly:
        for i, time in enumerate(hourly.time[:HOURLY_FORECAST_HOURS]):
            hourly_forecast.append(
                HourlyForecast(
                    time=time,
                    temp=hourly.value_at("temperature_2m", i),
                    feels_like=hourly.value_at("apparent_temperature", i),
                    weather_code=hourly.value_at("weather_code", i),
                    precip_chance=hourly.value_at("precipitation_probability", i) or 0,
                    snowfall=hourly.value_at("snowfall", i) or 0,
                    wind_speed=hourly.value_at("wind_speed_10m", i) or 0,
                    wind_gust=hourly.value_at("wind_gusts_10m", i) or 0,
                )
            )

    current_code = current.weather_code if current else None

    return WeatherConditions(
        resort_id=resort_id,
        current_temp=current.temperature_2m if current else None,
        current_feels_like=current.apparent_temperature if current else None,
        current_humidity=current.relative_humidity_2m if current else None,
        current_wind_speed=current.wind_speed_10m if current else None,
        current_wind_gust=current.wind_gusts_10m if current else None,
        current_wind_direction=current.wind_direction_10m if current else None,
        current_precipitation=current.precipitation if current else None,
        current_snowfall=current.snowfall if current else None,
        current_weather_code=current_code,
        current_visibility=hourly.value_at("visibility", 0) if hourly else None,
        current_weather_description=(
            weather_code_description(current_code) if current_code is not None else None
        ),
        is_day=(current.is_day if current and current.is_day is not None else 1) == 1,
        today_high=daily.value_at("temperature_2m_max", 0) if daily else None,
        today_low=daily.value_at("temperature_2m_min", 0) if daily else None,
        today_precip_chance=daily.value_at("precipitation_probability_max", 0) if daily else None,
        today_snowfall=daily.value_at("snowfall_sum", 0) if daily else None,
        today_weather_code=daily.value_at("weather_code", 0) if daily else None,
        sunrise=daily.value_at("sunrise", 0) if daily else None,
        sunset=daily.value_at("sunset", 0) if daily else None,
        uv_index=daily.value_at("uv_index_max", 0) if daily else None,
        snow_next_24h=snowfall_total(hourly, 24),
        snow_next_48h=snowfall_total(hourly, 48),
        snow_next_72h=snowfall_total(hourly, 72),
        daily_forecast=daily_forecast,
        hourly_forecast=hourly_forecast,
        elevation_used=forecast.elevation,
        weather_fetched_at=fetched_at,
    )


def has_weather_changed(existing: dict[str, Any] | None, updated: WeatherConditions) -> bool:
    """True when temperature, 24h snow or wind moved past their thresholds."""
    if not existing or not existing.get("weather_source"):
        return True

    def delta(column: str) -> float:
        return abs((existing.get(column) or 0) - (getattr(updated, column) or 0))

    return (
        delta("current_temp") >= TEMP_CHANGE_F
        or delta("snow_next_24h") >= SNOW_CHANGE_IN
        or delta("current_wind_speed") >= WIND_CHANGE_MPH
    )


def format_weather_summary(weather: WeatherConditions) -> str:
    parts = []
    if weather.current_temp is not None:
        parts.append(f"{round(weather.current_temp)}°F")
    if weather.current_weather_description:
        parts.append(weather.current_weather_description)
    if weather.snow_next_24h > 0:
        parts.append(f'{weather.snow_next_24h:.1f}" snow next 24h')
    if weather.current_wind_speed is not None:
        parts.append(f"wind {round(weather.current_wind_speed)} mph")
    return " | ".join(parts) if parts else "No data"
