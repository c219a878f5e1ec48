"""Wikidata entity claims used as structured evidence for enrichment."""

import logging
from typing import Any

import requests

from utils.http import RateLimiter, SourceFetchError, request_with_retry

logger = logging.getLogger(__name__)

API_URL = "https://www.wikidata.org/w/api.php"

PROP_OFFICIAL_WEBSITE = "P856"
PROP_COORDINATES = "P625"
PROP_ELEVATION = "P2044"
PROP_INCEPTION = "P571"

METERS_TO_FEET = 3.28084
# Wikidata unit entity for metres
UNIT_METRE = "http://www.wikidata.org/entity/Q11573"


def _main_values(claims: dict[str, Any], prop: str) -> list[Any]:
    values = []
    for claim in claims.get(prop, []):
        snak = claim.get("mainsnak", {})
        if snak.get("snaktype") != "value":
            continue
        values.append(snak.get("datavalue", {}).get("value"))
    return values


def parse_entity_facts(entity: dict[str, Any]) -> dict[str, Any]:
    """Reduce an entity's claims to the facts a resort record can use."""
    claims = entity.get("claims", {})
    facts: dict[str, Any] = {"wikidataId": entity.get("id")}

    websites = _main_values(claims, PROP_OFFICIAL_WEBSITE)
    if websites:
        facts["officialWebsite"] = websites[0]

    coordinates = _main_values(claims, PROP_COORDINATES)
    if coordinates and isinstance(coordinates[0], dict):
        facts["coordinates"] = {
            "lat": coordinates[0].get("latitude"),
            "lng": coordinates[0].get("longitude"),
        }

    elevations = []
    for value in _main_values(claims, PROP_ELEVATION):
        if not isinstance(value, dict) or "amount" not in value:
            continue
        amount = float(value["amount"])
        if value.get("unit") == UNIT_METRE:
            amount *= METERS_TO_FEET
        elevations.append(round(amount))
    if elevations:
        facts["elevationFeet"] = sorted(elevations)

    inception = _main_values(claims, PROP_INCEPTION)
    if inception and isinstance(inception[0], dict) and inception[0].get("time"):
        facts["opened"] = inception[0]["time"].lstrip("+")[:4]

    return facts


class WikidataService:
    """Client for the Wikidata wbgetentities API."""

    def __init__(
        self,
        user_agent: str,
        rate_limiter: RateLimiter | None = None,
        session: requests.Session | None = None,
    ):
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self.rate_limiter = rate_limiter or RateLimiter(500)

    def get_entity(self, entity_id: str) -> dict[str, Any] | None:
        self.rate_limiter.wait()
        params = {
            "action": "wbgetentities",
            "ids": entity_id,
            "props": "claims",
            "format": "json",
        }
        try:
            data = request_with_retry("GET", API_URL, session=self.session, params=params).json()
        except requests.exceptions.RequestException as e:
            raise SourceFetchError(f"Wikidata request for {entity_id} failed: {e}") from e

        entity = data.get("entities", {}).get(entity_id)
        if not entity or "missing" in entity:
            return None
        return entity

    def get_facts(self, entity_id: str) -> dict[str, Any] | None:
        entity = self.get_entity(entity_id)
        return parse_entity_facts(entity) if entity else None
