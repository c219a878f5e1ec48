"""Lift status payloads published by Liftie."""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

LiftStatus = Literal["open", "closed", "hold", "scheduled"]


def _latest_timestamp(value: Any) -> str | None:
    """ISO time of the newest entry in the API's {lifts, weather, webcams} epoch-ms map."""
    if isinstance(value, str):
        return value
    if not isinstance(value, dict):
        return None
    stamps = [v for v in value.values() if isinstance(v, (int, float)) and not isinstance(v, bool)]
    if not stamps:
        return None
    return datetime.fromtimestamp(max(stamps) / 1000, tz=UTC).isoformat()


class _LiftieModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LiftCounts(_LiftieModel):
    """Lift counts by status."""

    open: float = 0
    hold: float = 0
    scheduled: float = 0
    closed: float = 0

    @property
    def total(self) -> int:
        return int(self.open + self.hold + self.scheduled + self.closed)


class LiftStats(LiftCounts):
    """Lift counts plus the percentage breakdown Liftie precomputes."""

    percentage: LiftCounts | None = None


class LiftieSummary(_LiftieModel):
    """Contents of liftie/summary.json."""

    id: str | None = None
    name: str | None = None
    has_lifts: bool | None = Field(None, alias="hasLifts")
    has_weather: bool | None = Field(None, alias="hasWeather")
    has_webcams: bool | None = Field(None, alias="hasWebcams")
    lift_stats: LiftStats | None = Field(None, alias="liftStats")
    timestamp: str | None = None


class LiftieLifts(_LiftieModel):
    """Contents of liftie/lifts.json."""

    status: dict[str, LiftStatus] = Field(default_factory=dict)
    stats: LiftStats | None = None


class LiftieTemperature(_LiftieModel):
    max: float | None = None


class LiftieWeather(_LiftieModel):
    """Contents of liftie/weather.json."""

    date: str | None = None
    icon: list[str] = Field(default_factory=list)
    text: str | None = None
    conditions: str | None = None
    temperature: LiftieTemperature | None = None


class LiftieWebcam(_LiftieModel):
    name: str | None = None
    source: str | None = None
    image: str | None = None


class LiftieWebcams(_LiftieModel):
    """Contents of liftie/webcams.json."""

    webcams: list[LiftieWebcam] = Field(default_factory=list)


class LiftieSnapshot(BaseModel):
    """Everything Liftie knows about one resort."""

    summary: LiftieSummary | None = None
    lifts: LiftieLifts | None = None
    weather: LiftieWeather | None = None
    webcams: LiftieWebcams | None = None

    @property
    def is_empty(self) -> bool:
        return self.summary is None and self.lifts is None and self.weather is None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "LiftieSnapshot":
        """Build a snapshot from a GET /api/resort/{id} response."""
        lifts_payload = payload.get("lifts") or {}
        lifts = LiftieLifts.model_validate(lifts_payload) if lifts_payload else None
        lift_stats = lifts.stats if lifts else None

        weather_payload = payload.get("weather")
        weather = LiftieWeather.model_validate(weather_payload) if weather_payload else None

        webcams_payload = payload.get("webcams") or []
        webcams = LiftieWebcams(
            webcams=[LiftieWebcam.model_validate(w) for w in webcams_payload]
        )

        summary = LiftieSummary(
            id=payload.get("id"),
            name=payload.get("name"),
            has_lifts=bool(lifts and lifts.status),
            has_weather=weather is not None,
            has_webcams=bool(webcams.webcams),
            lift_stats=lift_stats,
            timestamp=_latest_timestamp(payload.get("timestamp")),
        )
        return cls(summary=summary, lifts=lifts, weather=weather, webcams=webcams)
