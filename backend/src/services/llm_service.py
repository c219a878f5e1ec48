"""Structured extraction with an OpenAI chat model."""

import json
import logging
from typing import Any, TypeVar

from openai import OpenAI
from pydantic import BaseModel, ValidationError

from models.enrichment import AggregatedData, EnrichmentResult, ExtractedData, TokenUsage
from models.places import (
    AMBIANCES,
    CUISINE_TYPES,
    DINING_FEATURES,
    MOUNTAIN_LOCATIONS,
    SHOP_SERVICES,
    SHOP_TYPES,
    VENUE_TYPES,
)
from models.resort import Resort
from utils.config import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a data extraction assistant. "
    "Return only valid JSON with no additional text or formatting."
)
TEMPERATURE = 0.3

DINING_SYSTEM_PROMPT = (
    "You are an expert on restaurants, bars, and dining near ski resorts in North America. "
    "You provide accurate, factual information about businesses. Always respond with valid JSON."
)
SKI_SHOP_SYSTEM_PROMPT = (
    "You are an expert on ski shops and ski resorts in North America. "
    "You provide accurate, factual information about businesses. Always respond with valid JSON."
)
DINING_MAX_TOKENS = 6000
SKI_SHOP_MAX_TOKENS = 4000

ModelT = TypeVar("ModelT", bound=BaseModel)


class TransformError(Exception):
    """Raised when model output cannot be used."""


def create_openai_client(settings: Settings) -> OpenAI:
    # Model calls are never retried automatically
    return OpenAI(api_key=settings.openai_api_key, max_retries=0)


class LLMExtractor:
    """Runs one JSON-mode completion per resort."""

    def __init__(self, client: OpenAI, model: str):
        self.client = client
        self.model = model

    def complete_json(
        self,
        prompt: str,
        system: str = SYSTEM_PROMPT,
        max_tokens: int | None = None,
    ) -> tuple[dict[str, Any], TokenUsage]:
        """Send ``prompt`` and return the parsed JSON object and token usage.

        Raises:
            TransformError: If the response is empty or not a JSON object
        """
        kwargs: dict[str, Any] = {}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=TEMPERATURE,
            response_format={"type": "json_object"},
            **kwargs,
        )

        usage = TokenUsage(
            prompt_tokens=getattr(response.usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(response.usage, "completion_tokens", 0) or 0,
        )

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise TransformError("No content in model response")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.debug(f"Unparseable model response: {content[:500]}")
            raise TransformError(f"Failed to parse model response as JSON: {e}") from e

        if not isinstance(data, dict):
            raise TransformError("Model response is not a JSON object")
        return data, usage

    def extract(self, prompt: str, schema: type[ModelT]) -> tuple[ModelT, TokenUsage]:
        """Complete ``prompt`` and validate the result against ``schema``."""
        data, usage = self.complete_json(prompt)
        try:
            return schema.model_validate(data), usage
        except ValidationError as e:
            raise TransformError(
                f"Model response does not match {schema.__name__}: "
                f"{e.error_count()} invalid field(s)"
            ) from e

    def enrich(self, data: AggregatedData) -> tuple[EnrichmentResult, TokenUsage]:
        return self.extract(build_enrichment_prompt(data), EnrichmentResult)

    def extract_resort_data(
        self,
        resort: Resort,
        wiki_data: dict[str, Any],
        entity_facts: dict[str, Any] | None = None,
    ) -> tuple[ExtractedData, TokenUsage]:
        return self.extract(
            build_extraction_prompt(resort, wiki_data, entity_facts), ExtractedData
        )


def _json_block(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _wiki_sections(wiki: dict[str, Any]) -> list[str]:
    parts = [
        "INFOBOX:",
        _json_block(wiki.get("infobox") or {}),
        "",
        "ARTICLE EXTRACT:",
        wiki.get("fullExtract") or wiki.get("extract") or "",
        "",
        "CATEGORIES:",
        ", ".join(wiki.get("categories") or []),
    ]
    coordinates = wiki.get("coordinates")
    if coordinates:
        parts += ["", f"COORDINATES: {coordinates.get('lat')}, {coordinates.get('lng')}"]
    return parts


SCORED_FIELD_RULES = """For each field:
- Provide a "value" (use null if data is not available or uncertain)
- Provide a "confidence" score (0.0 = no data, 1.0 = explicitly stated in source)

For TAGLINE: Create a catchy 5-10 word phrase that captures what makes this resort unique.
- Reference specific features (elevation, terrain, history, snowfall, location)
- Avoid generic phrases like "Great skiing for everyone"

For DESCRIPTION: Write a compelling 2-3 paragraph (300-500 words) description.
- Include specific details: signature runs, elevation, snowfall when available
- Do NOT use markdown formatting

For STATS: Convert to standard units:
- Acres for skiable area
- Feet for elevation and vertical drop
- Inches for annual snowfall
- If sources disagree, weight Wikipedia and official sources higher

For TERRAIN: Percentages should add up to approximately 100."""

_SCORED = '{ "value": %s, "confidence": 0.0-1.0 }'

ENRICHMENT_SHAPE = {
    "content": {"tagline": "string", "description": "string"},
    "stats": {
        key: "number or null"
        for key in (
            "skiableAcres",
            "liftsCount",
            "runsCount",
            "verticalDrop",
            "baseElevation",
            "summitElevation",
            "avgAnnualSnowfall",
        )
    },
    "terrain": {
        key: "number or null" for key in ("beginner", "intermediate", "advanced", "expert")
    },
}

EXTRACTION_SHAPE = {
    **ENRICHMENT_SHAPE,
    "features": {
        key: "true, false or null"
        for key in ("hasPark", "hasHalfpipe", "hasNightSkiing", "hasBackcountryAccess")
    },
    "general": {"websiteUrl": "string or null", "nearestCity": "string or null"},
    "coordinates": {"lat": "number or null", "lng": "number or null"},
}


def render_shape(shape: dict[str, dict[str, str]]) -> str:
    """Render the expected response skeleton for the prompt."""
    lines = ["{"]
    groups = list(shape.items())
    for g, (group, fields) in enumerate(groups):
        lines.append(f'  "{group}": {{')
        items = list(fields.items())
        for i, (name, kind) in enumerate(items):
            comma = "," if i < len(items) - 1 else ""
            lines.append(f'    "{name}": {_SCORED % kind}{comma}')
        lines.append("  }" + ("," if g < len(groups) - 1 else ""))
    lines.append("}")
    return "\n".join(lines)


def build_enrichment_prompt(data: AggregatedData) -> str:
    """Prompt embedding every evidence source gathered for one resort."""
    parts = [
        "You are a ski resort marketing expert and data extraction specialist.",
        "",
        f'Analyze the following data sources for "{data.name}" in {data.state}, '
        f"{data.country} and extract accurate information.",
    ]

    if data.wikipedia:
        parts += ["", "=== WIKIPEDIA DATA ===", ""] + _wiki_sections(data.wikipedia)

    if data.liftie:
        lifts = data.liftie.get("lifts") or {}
        stats = lifts.get("stats") or {}
        parts += [
            "",
            "=== LIFTIE (REAL-TIME) DATA ===",
            "",
            f"Resort Status: {data.liftie.get('status', 'unknown')}",
            f"Lifts - Open: {stats.get('open', 0)}, Closed: {stats.get('closed', 0)}",
            f"Total Lifts: {len(lifts.get('list') or lifts.get('status') or {})}",
            f"Last Updated: {data.liftie.get('lastUpdated', 'unknown')}",
        ]

    if data.on_the_snow and data.on_the_snow.get("stats"):
        parts += [
            "",
            "=== ONTHESNOW DATA ===",
            "",
            "Stats:",
            _json_block(data.on_the_snow["stats"]),
            "",
            "Terrain:",
            _json_block(data.on_the_snow["terrain"])
            if data.on_the_snow.get("terrain")
            else "Not available",
        ]

    if data.ski_resort_info and data.ski_resort_info.get("stats"):
        parts += ["", "=== SKI RESORT INFO DATA ===", "", _json_block(data.ski_resort_info["stats"])]

    parts += [
        "",
        "=== INSTRUCTIONS ===",
        "",
        "Extract the following information and return as JSON. " + SCORED_FIELD_RULES,
        "",
        "Return ONLY this JSON structure:",
        "",
        render_shape(ENRICHMENT_SHAPE),
    ]
    return "\n".join(parts)


def build_extraction_prompt(
    resort: Resort,
    wiki_data: dict[str, Any],
    entity_facts: dict[str, Any] | None = None,
) -> str:
    """Prompt for extracting structured resort fields from Wikipedia and Wikidata."""
    parts = [
        "You are a ski resort marketing expert and data extraction specialist.",
        "",
        f'Given the following Wikipedia data for "{resort.name}" in '
        f"{resort.display_state}, {resort.display_country}:",
        "",
    ] + _wiki_sections(wiki_data)

    if entity_facts:
        parts += [
            "",
            "WIKIDATA CLAIMS (structured, high reliability):",
            _json_block(entity_facts),
        ]

    parts += [
        "",
        "Your task is to:",
        "1. Extract factual data from the information above",
        "2. Create compelling marketing content based on what makes this resort unique",
        "",
        "Return a JSON object. " + SCORED_FIELD_RULES,
        "",
        "For FEATURES: true only when the source says the resort has it.",
        "",
        render_shape(EXTRACTION_SHAPE),
    ]
    return "\n".join(parts)


def _choices(values: tuple[str, ...]) -> str:
    return json.dumps(list(values))


def _resort_location(resort: Resort, radius_miles: float, what: str) -> str:
    near = resort.nearest_city or resort.name
    return (
        f'For the ski resort "{resort.name}" located near {near}, {resort.display_state} '
        f"(coordinates: {resort.latitude}, {resort.longitude}), please provide a list of "
        f"{what} within {radius_miles:g} miles."
    )


_PLACE_FIELDS = [
    "name: The official business name",
    "description: A brief 1-2 sentence description",
    "address: Street address",
    "city: City name",
    'state: Two-letter state/province code (e.g., "CO", "UT", "BC")',
    "postal_code: ZIP/postal code",
    "latitude: Precise GPS latitude (decimal degrees)",
    "longitude: Precise GPS longitude (decimal degrees)",
    "phone: Phone number if known (format: xxx-xxx-xxxx)",
    "website_url: Official website URL if known",
]


def _numbered(fields: list[str]) -> list[str]:
    return [f"{i}. {field}" for i, field in enumerate(fields, start=1)]


def build_dining_prompt(resort: Resort, radius_miles: float, max_venues: int) -> str:
    """Prompt asking for dining venues around one resort."""
    fields = _PLACE_FIELDS + [
        f"venue_type: Array of types from: {_choices(VENUE_TYPES)}",
        f"cuisine_type: Array of cuisines from: {_choices(CUISINE_TYPES)}",
        'price_range: One of: "$", "$$", "$$$", "$$$$"',
        "serves_breakfast: Boolean",
        "serves_lunch: Boolean",
        "serves_dinner: Boolean",
        "serves_drinks: Boolean - true if they serve alcoholic beverages",
        "has_full_bar: Boolean - true if they have a full liquor bar",
        f"ambiance: Array from: {_choices(AMBIANCES)}",
        f"features: Array from: {_choices(DINING_FEATURES)}",
        "is_on_mountain: Boolean - true if located at the resort base area or on the mountain",
        f"mountain_location: If on mountain, one of: {_choices(MOUNTAIN_LOCATIONS)}",
        "is_ski_in_ski_out: Boolean - true if accessible directly from ski runs",
        "hours_notes: Brief notes about hours, especially seasonal variations",
    ]
    parts = [
        _resort_location(resort, radius_miles, "dining venues"),
        "",
        "Include restaurants, bars and pubs, breweries, cafes, lodge dining at the base "
        "area, apres-ski spots, and food trucks that are permanent fixtures.",
        "",
        "For each venue, provide:",
        *_numbered(fields),
        "",
        f"Return {max_venues} venues, prioritizing:",
        "1. On-mountain dining and apres-ski spots at the resort",
        "2. Restaurants and bars in the resort village or base area",
        f"3. Venues in nearby towns within {radius_miles:g} miles",
        "4. A variety of cuisines and price ranges",
        "",
        "IMPORTANT:",
        "- Only include businesses you are confident actually exist",
        "- Provide accurate GPS coordinates",
        "",
        'Return your response as a JSON object with a "venues" array.',
    ]
    return "\n".join(parts)


def build_ski_shop_prompt(resort: Resort, radius_miles: float, max_shops: int) -> str:
    """Prompt asking for ski and snowboard shops around one resort."""
    fields = _PLACE_FIELDS + [
        f"shop_type: Array of types from: {_choices(SHOP_TYPES)}",
        f"services: Array of services from: {_choices(SHOP_SERVICES)}",
        "is_on_mountain: Boolean - true if the shop is at the resort base area or on the mountain",
    ]
    parts = [
        _resort_location(resort, radius_miles, "ski and snowboard shops"),
        "",
        "Include shops that rent or sell ski and snowboard equipment, shops that tune, "
        "wax and repair gear, both on the mountain and in nearby towns.",
        "",
        "For each shop, provide:",
        *_numbered(fields),
        "",
        f"Return up to {max_shops} shops, prioritizing:",
        "1. Shops closest to the resort",
        "2. Shops with the most services",
        "3. Well-known and reputable shops",
        "",
        "IMPORTANT:",
        "- Only include businesses you are highly confident actually exist",
        "- Provide accurate GPS coordinates, not approximations",
        "- Do not include big-box stores unless they have a dedicated ski department",
        "",
        'Return your response as a JSON object with a "shops" array.',
    ]
    return "\n".join(parts)
