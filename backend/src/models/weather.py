"""Open-Meteo forecast response models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Series(BaseModel):
    """Column-oriented time series; every column is aligned with ``time``."""

    time: list[str]

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def _check_lengths(self):
        size = len(self.time)
        for name, value in self:
            if isinstance(value, list) and value and len(value) != size:
                raise ValueError(f"{name} has {len(value)} values, expected {size}")
        return self

    def value_at(self, name: str, index: int) -> Any:
        values = getattr(self, name, None) or []
        if index < len(values):
            return values[index]
        return None


class OpenMeteoCurrent(BaseModel):
    time: str | None = None
    temperature_2m: float | None = None
    relative_humidity_2m: float | None = None
    apparent_temperature: float | None = None
    is_day: int | None = None
    precipitation: float | None = None
    rain: float | None = None
    snowfall: float | None = None
    weather_code: int | None = None
    wind_speed_10m: float | None = None
    wind_direction_10m: float | None = None
    wind_gusts_10m: float | None = None

    model_config = ConfigDict(extra="ignore")


class OpenMeteoHourly(_Series):
    temperature_2m: list[float | None] = Field(default_factory=list)
    relative_humidity_2m: list[float | None] = Field(default_factory=list)
    apparent_temperature: list[float | None] = Field(default_factory=list)
    precipitation_probability: list[float | None] = Field(default_factory=list)
    precipitation: list[float | None] = Field(default_factory=list)
    rain: list[float | None] = Field(default_factory=list)
    snowfall: list[float | None] = Field(default_factory=list)
    snow_depth: list[float | None] = Field(default_factory=list)
    weather_code: list[int | None] = Field(default_factory=list)
    visibility: list[float | None] = Field(default_factory=list)
    wind_speed_10m: list[float | None] = Field(default_factory=list)
    wind_direction_10m: list[float | None] = Field(default_factory=list)
    wind_gusts_10m: list[float | None] = Field(default_factory=list)
    uv_index: list[float | None] = Field(default_factory=list)


class OpenMeteoDaily(_Series):
    weather_code: list[int | None] = Field(default_factory=list)
    temperature_2m_max: list[float | None] = Field(default_factory=list)
    temperature_2m_min: list[float | None] = Field(default_factory=list)
    apparent_temperature_max: list[float | None] = Field(default_factory=list)
    apparent_temperature_min: list[float | None] = Field(default_factory=list)
    sunrise: list[str | None] = Field(default_factory=list)
    sunset: list[str | None] = Field(default_factory=list)
    uv_index_max: list[float | None] = Field(default_factory=list)
    precipitation_sum: list[float | None] = Field(default_factory=list)
    rain_sum: list[float | None] = Field(default_factory=list)
    snowfall_sum: list[float | None] = Field(default_factory=list)
    precipitation_hours: list[float | None] = Field(default_factory=list)
    precipitation_probability_max: list[float | None] = Field(default_factory=list)
    wind_speed_10m_max: list[float | None] = Field(default_factory=list)
    wind_gusts_10m_max: list[float | None] = Field(default_factory=list)
    wind_direction_10m_dominant: list[float | None] = Field(default_factory=list)


class OpenMeteoForecast(BaseModel):
    """Validated /v1/forecast response."""

    latitude: float
    longitude: float
    elevation: float | None = None
    timezone: str | None = None
    current: OpenMeteoCurrent | None = None
    hourly: OpenMeteoHourly | None = None
    daily: OpenMeteoDaily | None = None

    model_config = ConfigDict(extra="ignore")
