"""Parsing and normalization of nearby places suggested by the model."""

import logging
import re
import unicodedata
from typing import Any, Iterable
from urllib.parse import urlparse

from pydantic import ValidationError

from models.places import (
    AMBIANCES,
    CUISINE_TYPES,
    DINING_FEATURES,
    MOUNTAIN_LOCATIONS,
    PRICE_RANGES,
    SHOP_SERVICES,
    SHOP_TYPES,
    VENUE_TYPES,
    DiningCandidate,
    DiningVenue,
    ParseResult,
    Place,
    PlaceCandidate,
    SkiShop,
    SkiShopCandidate,
)

logger = logging.getLogger(__name__)

# Bounding box for North America
MIN_LATITUDE, MAX_LATITUDE = 24.0, 72.0
MIN_LONGITUDE, MAX_LONGITUDE = -170.0, -50.0

ON_MOUNTAIN_MILES = 1.0
DRIVE_SPEED_MPH = 30


def generate_slug(*parts: str) -> str:
    """URL-safe slug built from the given parts, e.g. name, city and state."""
    text = " ".join(p for p in parts if p)
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = text.lower().replace("&", " and ")
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def normalize_choice(value: str) -> str:
    return re.sub(r"\s+", "_", value.strip().lower())


def pick_choices(
    values: Iterable[str] | None, allowed: tuple[str, ...], default: list[str] | None = None
) -> list[str]:
    """Normalized values that appear in ``allowed``, without repeats."""
    picked: list[str] = []
    for value in values or []:
        if not isinstance(value, str):
            continue
        choice = normalize_choice(value)
        if choice in allowed and choice not in picked:
            picked.append(choice)
    if not picked and default:
        return list(default)
    return picked


def clean_phone(phone: str | None) -> str | None:
    """Digits and dashes only; ten-digit numbers become xxx-xxx-xxxx."""
    if not phone:
        return None
    cleaned = re.sub(r"[^\d-]", "", phone)
    digits = cleaned.replace("-", "")
    if len(digits) == 10:
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    return cleaned or None


def clean_website(url: str | None) -> str | None:
    if not url:
        return None
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return url


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    return (
        MIN_LATITUDE <= latitude <= MAX_LATITUDE
        and MIN_LONGITUDE <= longitude <= MAX_LONGITUDE
    )


def is_on_mountain(distance_miles: float) -> bool:
    return distance_miles < ON_MOUNTAIN_MILES


def estimate_drive_time(distance_miles: float) -> int:
    """Rough drive time in minutes at mountain-road speed."""
    return max(1, round(distance_miles * 60 / DRIVE_SPEED_MPH))


def proximity_label(distance_miles: float | None, on_mountain: bool = False) -> str:
    if on_mountain:
        return "On Mountain"
    if distance_miles is None:
        return "In Area"
    if distance_miles < 0.5:
        return "At Base"
    if distance_miles < 1:
        return "Walking Distance"
    if distance_miles < 5:
        return "Short Drive"
    if distance_miles < 15:
        return "Nearby"
    return "In Area"


def _common_fields(candidate: PlaceCandidate) -> dict[str, Any]:
    name = candidate.name.strip()
    city = candidate.city.strip()
    state = candidate.state.strip().upper()
    return {
        "name": name,
        "slug": generate_slug(name, city, state),
        "description": candidate.description,
        "address_line1": candidate.address.strip(),
        "city": city,
        "state": state,
        "postal_code": candidate.postal_code.strip(),
        "latitude": candidate.latitude,
        "longitude": candidate.longitude,
        "phone": clean_phone(candidate.phone),
        "website_url": clean_website(candidate.website_url),
    }


def _dining_venue(candidate: DiningCandidate) -> DiningVenue:
    price = candidate.price_range.strip() if candidate.price_range else None
    location = candidate.mountain_location and normalize_choice(candidate.mountain_location)
    return DiningVenue(
        **_common_fields(candidate),
        venue_type=pick_choices(candidate.venue_type, VENUE_TYPES, ["restaurant"]),
        cuisine_type=pick_choices(candidate.cuisine_type, CUISINE_TYPES, ["american"]),
        price_range=price if price in PRICE_RANGES else "$$",
        ambiance=pick_choices(candidate.ambiance, AMBIANCES),
        features=pick_choices(candidate.features, DINING_FEATURES),
        is_ski_in_ski_out=candidate.is_ski_in_ski_out,
        is_on_mountain=candidate.is_on_mountain,
        mountain_location=location if location in MOUNTAIN_LOCATIONS else None,
        serves_breakfast=candidate.serves_breakfast,
        serves_lunch=candidate.serves_lunch,
        serves_dinner=candidate.serves_dinner,
        serves_drinks=candidate.serves_drinks,
        has_full_bar=candidate.has_full_bar,
        hours_notes=candidate.hours_notes,
    )


def _ski_shop(candidate: SkiShopCandidate) -> SkiShop:
    return SkiShop(
        **_common_fields(candidate),
        shop_type=pick_choices(candidate.shop_type, SHOP_TYPES, ["retail"]),
        services=pick_choices(candidate.services, SHOP_SERVICES),
    )


def _parse(data: dict[str, Any], key: str, candidate_type, build) -> ParseResult:
    result = ParseResult()
    items = data.get(key)
    if not isinstance(items, list):
        result.errors.append(f'Response has no "{key}" array')
        return result

    for index, item in enumerate(items):
        if not isinstance(item, dict):
            result.invalid_count += 1
            result.errors.append(f"Item {index}: not an object")
            continue
        try:
            candidate = candidate_type.model_validate(item)
        except ValidationError as e:
            result.invalid_count += 1
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            result.errors.append(f"Item {index} ({item.get('name', '?')}): invalid {fields}")
            continue
        if not is_valid_coordinate(candidate.latitude, candidate.longitude):
            result.invalid_count += 1
            result.errors.append(f"Item {index} ({candidate.name}): coordinates out of range")
            continue
        result.places.append(build(candidate))

    if result.errors:
        logger.debug(f"Dropped {result.invalid_count} invalid {key}: {result.errors}")
    return result


def parse_dining_response(data: dict[str, Any]) -> ParseResult:
    """Validate each entry of a {"venues": [...]} response."""
    return _parse(data, "venues", DiningCandidate, _dining_venue)


def parse_ski_shop_response(data: dict[str, Any]) -> ParseResult:
    """Validate each entry of a {"shops": [...]} response."""
    return _parse(data, "shops", SkiShopCandidate, _ski_shop)


class Deduplicator:
    """Matches places against earlier ones in the run and existing rows.

    A place is an existing row when its slug matches, or when name, city
    and state match a row stored under a different slug.
    """

    def __init__(self, repository):
        self.repository = repository
        self.seen: set[str] = set()

    def resolve(self, place: Place) -> tuple[Place, bool] | None:
        """(place, is_new), with the stored id and slug when it already exists.

        Returns None for a repeat of a place seen earlier in this run.
        """
        if place.slug in self.seen:
            return None
        self.seen.add(place.slug)

        existing = self.repository.find_by_slug(place.slug)
        if existing is None:
            existing = self.repository.find_by_name_and_city(place.name, place.city, place.state)
        if existing is None:
            return place, True

        self.seen.add(existing["slug"])
        return place.model_copy(update={"id": existing["id"], "slug": existing["slug"]}), False

    def reset(self) -> None:
        self.seen.clear()


def serialize_place(row: dict[str, Any]) -> dict[str, Any]:
    """Public representation of a resort-to-place row."""
    distance = row.get("distance_miles")
    return {
        **row,
        "proximity_label": proximity_label(distance, bool(row.get("is_on_mountain"))),
    }
