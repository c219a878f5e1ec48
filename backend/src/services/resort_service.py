"""Resort management service behind the admin and public routes."""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from models.conditions import ConditionsUpdate
from models.resort import LifecycleStatus, Resort, ResortCreate, ResortUpdate
from services.database_service import DatabaseError, ResortRepository
from utils.geo_utils import find_nearby

logger = logging.getLogger(__name__)

NEARBY_MAX_MILES = 100
NEARBY_LIMIT = 3
STATE_LIMIT = 3


class ResortServiceError(Exception):
    """Error with an API error code and HTTP status."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(ResortServiceError):
    code = "VALIDATION_ERROR"
    status_code = 400


class CreateFailed(ResortServiceError):
    code = "CREATE_FAILED"
    status_code = 400


class UpdateFailed(ResortServiceError):
    code = "UPDATE_FAILED"
    status_code = 400


class ResortNotFound(ResortServiceError):
    code = "NOT_FOUND"
    status_code = 404


REQUIRED_CREATE_FIELDS = ("slug", "name", "countryCode", "stateSlug")


def _validation_message(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
    )


def serialize_resort(resort: Resort) -> dict[str, Any]:
    """Resort as returned by the API, with its resolved status."""
    data = resort.model_dump()
    data["display_status"] = resort.display_status.value
    return data


class ResortService:
    """CRUD over resorts and conditions, plus related-resort lookups."""

    def __init__(self, repository: ResortRepository):
        self.repository = repository

    def list_resorts(self) -> list[Resort]:
        return self.repository.list_resorts()

    def get_resort(self, resort_id: str) -> Resort:
        resort = self.repository.get_resort_by_id(resort_id)
        if not resort:
            raise ResortNotFound(f'Resort with ID "{resort_id}" not found')
        return resort

    def get_resort_by_slug(self, slug: str) -> Resort:
        resort = self.repository.get_resort_by_slug(slug)
        if not resort:
            raise ResortNotFound(f'Resort "{slug}" not found')
        return resort

    def create_resort(self, payload: dict[str, Any]) -> Resort:
        """Create a resort from an admin payload (camelCase keys)."""
        missing = [field for field in REQUIRED_CREATE_FIELDS if not payload.get(field)]
        if missing:
            raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")

        try:
            data = ResortCreate.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailed(_validation_message(e)) from e

        if self.repository.get_resort_by_slug(data.slug):
            raise CreateFailed(f'Resort with slug "{data.slug}" already exists')

        row = data.to_row()
        logger.info(f"Creating resort {row['id']}")
        try:
            self.repository.insert_resort(row)
        except DatabaseError as e:
            raise CreateFailed(str(e)) from e

        return self.repository.get_resort_by_id(row["id"]) or Resort.from_row(row)

    def update_resort(self, resort_id: str, payload: dict[str, Any]) -> Resort:
        """Apply the fields present in ``payload``; others are left alone."""
        existing = self.get_resort(resort_id)

        try:
            changes = ResortUpdate.model_validate(payload).to_updates()
        except ValidationError as e:
            raise ValidationFailed(_validation_message(e)) from e

        new_slug = changes.get("slug")
        if new_slug and new_slug != existing.slug:
            conflict = self.repository.get_resort_by_slug(new_slug)
            if conflict and conflict.id != resort_id:
                raise UpdateFailed(f'Resort with slug "{new_slug}" already exists')

        if not changes:
            return existing

        logger.info(f"Updating resort {resort_id}: {', '.join(sorted(changes))}")
        try:
            self.repository.update_resort(resort_id, changes)
        except DatabaseError as e:
            raise UpdateFailed(str(e)) from e
        return self.get_resort(resort_id)

    def delete_resort(self, resort_id: str, hard: bool = False) -> None:
        """Soft-delete (mark defunct and lost) unless ``hard`` is set."""
        self.get_resort(resort_id)

        try:
            if hard:
                logger.info(f"Hard deleting resort {resort_id}")
                self.repository.delete_resort(resort_id)
            else:
                logger.info(f"Soft deleting resort {resort_id}")
                self.repository.update_resort(
                    resort_id, {"status": LifecycleStatus.DEFUNCT.value, "is_lost": True}
                )
        except DatabaseError as e:
            raise UpdateFailed(str(e)) from e

    # MARK: - Conditions

    def get_conditions(self, resort_id: str) -> dict[str, Any] | None:
        return self.repository.get_conditions(resort_id)

    def get_conditions_by_slug(self, slug: str) -> dict[str, Any] | None:
        resort = self.get_resort_by_slug(slug)
        return self.repository.get_conditions(resort.id)

    def update_conditions(self, resort_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Upsert the manually maintained lift and weather summary."""
        self.get_resort(resort_id)

        try:
            update = ConditionsUpdate.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailed(_validation_message(e)) from e

        lifts_open = update.lifts_open or 0
        lifts_total = update.lifts_total or 0
        record = {
            "resort_id": resort_id,
            "lifts_open": lifts_open,
            "lifts_total": lifts_total,
            "lifts_percentage": round(lifts_open / lifts_total * 100) if lifts_total else 0,
            "weather_condition": update.weather_condition,
            "weather_high": update.weather_high,
            "updated_at": datetime.now(UTC).isoformat(),
        }

        try:
            self.repository.upsert_conditions(record)
        except DatabaseError as e:
            raise UpdateFailed(str(e)) from e
        return self.repository.get_conditions(resort_id) or record

    # MARK: - Related resorts

    def get_related_resorts(self, slug: str) -> dict[str, Any]:
        """Closest resorts within 100 miles, then others from the same state."""
        current = self.get_resort_by_slug(slug)
        candidates = [
            r
            for r in self.repository.list_resorts(active_only=True)
            if r.is_listed and r.id != current.id
        ]

        nearby = find_nearby(current, candidates, NEARBY_MAX_MILES, NEARBY_LIMIT)
        nearby_ids = {resort.id for resort, _ in nearby}

        same_state = [
            r
            for r in candidates
            if r.state_slug == current.state_slug
            and r.country_code == current.country_code
            and r.id not in nearby_ids
        ][:STATE_LIMIT]

        return {
            "resort_slug": slug,
            "nearby_resorts": [
                {**serialize_resort(resort), "distance_miles": miles} for resort, miles in nearby
            ],
            "state_resorts": [serialize_resort(r) for r in same_state],
        }
