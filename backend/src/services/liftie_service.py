"""Liftie lift-status data: API client, stored snapshots and conditions mapping."""

import logging
from typing import Any

import requests
from pydantic import BaseModel, ValidationError

from models.conditions import LiftieConditions
from models.liftie import (
    LiftieLifts,
    LiftieSnapshot,
    LiftieSummary,
    LiftieWeather,
    LiftieWebcams,
)
from services.storage_service import AssetStore, resort_key
from utils.http import SourceFetchError, is_not_found, request_with_retry

logger = logging.getLogger(__name__)

SNAPSHOT_FILES: dict[str, type[BaseModel]] = {
    "summary": LiftieSummary,
    "lifts": LiftieLifts,
    "weather": LiftieWeather,
    "webcams": LiftieWebcams,
}


class LiftieService:
    """Client for the public Liftie API."""

    def __init__(self, base_url: str = "https://liftie.info", session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.session = session

    def get_resort(self, liftie_id: str) -> LiftieSnapshot | None:
        """Current status for one resort, or None when Liftie does not know it.

        Raises:
            SourceFetchError: On network errors or an invalid payload
        """
        url = f"{self.base_url}/api/resort/{liftie_id}"
        try:
            response = request_with_retry("GET", url, session=self.session)
        except requests.exceptions.RequestException as e:
            if is_not_found(e):
                return None
            raise SourceFetchError(f"Liftie request for {liftie_id} failed: {e}") from e

        try:
            return LiftieSnapshot.from_api(response.json())
        except (ValueError, ValidationError) as e:
            raise SourceFetchError(f"Invalid Liftie payload for {liftie_id}: {e}") from e


def liftie_prefix(asset_path: str) -> str:
    return resort_key(asset_path, "liftie")


def has_liftie_data(store: AssetStore, asset_path: str) -> bool:
    return store.exists(f"{liftie_prefix(asset_path)}/summary.json")


def load_snapshot(store: AssetStore, asset_path: str) -> LiftieSnapshot | None:
    """Stored Liftie files for a resort, or None when there is no summary.json.

    A file that fails validation is dropped on its own; the other files
    are still used.
    """
    if not has_liftie_data(store, asset_path):
        return None

    parts: dict[str, Any] = {}
    for name, model in SNAPSHOT_FILES.items():
        key = f"{liftie_prefix(asset_path)}/{name}.json"
        payload = store.get_json(key)
        if payload is None:
            continue
        try:
            parts[name] = model.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid {key}: {e.error_count()} error(s)")
    return LiftieSnapshot(**parts)


def map_liftie_to_conditions(resort_id: str, snapshot: LiftieSnapshot) -> LiftieConditions:
    """Flatten a Liftie snapshot into resort_conditions columns."""
    summary, lifts, weather, webcams = (
        snapshot.summary,
        snapshot.lifts,
        snapshot.weather,
        snapshot.webcams,
    )

    lifts_open = 0
    lifts_total = 0
    lifts_percentage = 0.0
    lifts_status: dict[str, str] = {}

    if summary and summary.lift_stats:
        lifts_open = int(summary.lift_stats.open)
        lifts_total = summary.lift_stats.total
        if summary.lift_stats.percentage:
            lifts_percentage = summary.lift_stats.percentage.open

    if lifts and lifts.status:
        lifts_status = dict(lifts.status)
        # Individual lift data but no summary counts
        if lifts_total == 0:
            lifts_total = len(lifts.status)
            lifts_open = sum(1 for s in lifts.status.values() if s == "open")
            lifts_percentage = lifts_open / lifts_total * 100 if lifts_total else 0.0

    weather_condition = weather.conditions if weather else None
    webcam_list = [w.model_dump() for w in webcams.webcams] if webcams else []

    has_lifts = summary.has_lifts if summary and summary.has_lifts is not None else lifts_total > 0
    if summary and summary.has_weather is not None:
        has_weather = summary.has_weather
    else:
        has_weather = weather_condition is not None

    return LiftieConditions(
        resort_id=resort_id,
        lifts_open=lifts_open,
        lifts_total=lifts_total,
        lifts_percentage=lifts_percentage,
        lifts_status=lifts_status,
        weather_high=weather.temperature.max if weather and weather.temperature else None,
        weather_condition=weather_condition,
        weather_text=weather.text if weather else None,
        weather_icon=list(weather.icon) if weather else [],
        weather_date=weather.date if weather else None,
        webcams=webcam_list,
        has_webcams=bool(webcam_list),
        has_lifts=has_lifts,
        has_weather=has_weather,
        liftie_id=summary.id if summary else None,
        source_timestamp=summary.timestamp if summary else None,
    )


def has_conditions_changed(existing: dict[str, Any] | None, updated: LiftieConditions) -> bool:
    """True when a stored row differs from ``updated`` in any Liftie column."""
    if not existing:
        return True
    for column, value in updated.model_dump().items():
        if column == "lifts_percentage":
            if abs(float(existing.get(column) or 0) - float(value)) > 0.01:
                return True
            continue
        if existing.get(column) != value:
            return True
    return False


def format_conditions_summary(conditions: LiftieConditions) -> str:
    parts = []
    if conditions.has_lifts:
        parts.append(
            f"Lifts: {conditions.lifts_open}/{conditions.lifts_total} "
            f"({conditions.lifts_percentage:.0f}%)"
        )
    if conditions.has_weather and conditions.weather_condition:
        temp = f" {conditions.weather_high:g}°F" if conditions.weather_high is not None else ""
        parts.append(f"Weather: {conditions.weather_condition}{temp}")
    if conditions.has_webcams:
        parts.append(f"Webcams: {len(conditions.webcams)}")
    return " | ".join(parts) if parts else "No data"
