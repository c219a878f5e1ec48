"""Evidence gathering and confidence policy for model-derived resort fields."""

import logging
from typing import Any

from pydantic import BaseModel

from models.enrichment import (
    AggregatedData,
    DataQuality,
    EnrichmentResult,
    ExtractedData,
    ProposedChange,
    ScoredValue,
    SkippedField,
)
from models.resort import Resort
from services.storage_service import AssetStore, resort_key

logger = logging.getLogger(__name__)

WIKI_DATA_FILE = "wiki-data.json"

# Evidence files and their weight in the data quality score
SOURCE_FILES = {
    "wikipedia": (WIKI_DATA_FILE, 0.5),
    "liftie": ("liftie/current.json", 0.2),
    "on_the_snow": ("onthesnow/ots-details.json", 0.2),
    "ski_resort_info": ("skiresortinfo/sri-details.json", 0.1),
}

# JSON columns whose keys are merged rather than replaced
JSON_COLUMNS = ("stats", "terrain", "features")


def aggregate_resort_data(
    store: AssetStore,
    asset_path: str,
    name: str,
    state: str = "",
    country: str = "",
) -> AggregatedData:
    """Read every available evidence file for one resort."""
    sources: dict[str, Any] = {}
    score = 0.0
    for source, (filename, weight) in SOURCE_FILES.items():
        payload = store.get_json(resort_key(asset_path, filename))
        sources[source] = payload if isinstance(payload, dict) else None
        if sources[source] is not None:
            score += weight

    quality = DataQuality(
        has_wikipedia=sources["wikipedia"] is not None,
        has_liftie=sources["liftie"] is not None,
        has_on_the_snow=sources["on_the_snow"] is not None,
        has_ski_resort_info=sources["ski_resort_info"] is not None,
        source_count=sum(1 for payload in sources.values() if payload is not None),
        overall_score=round(score, 2),
    )
    return AggregatedData(
        slug=asset_path.rstrip("/").rsplit("/", 1)[-1],
        name=name,
        asset_path=asset_path,
        state=state,
        country=country,
        data_quality=quality,
        **sources,
    )


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)):
        return value != 0
    return True


def _normalize(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _scored_fields(group: BaseModel) -> list[tuple[str, ScoredValue]]:
    """(json key, scored value) pairs of a field group, in declaration order."""
    return [
        (field.alias or name, getattr(group, name))
        for name, field in type(group).model_fields.items()
    ]


def map_extracted_data(
    resort: Resort,
    extracted: EnrichmentResult,
    skip_existing: bool,
    min_confidence: float,
) -> tuple[list[ProposedChange], list[SkippedField]]:
    """Decide which extracted fields may be written.

    A field is skipped when the model gave no value, when its confidence is
    below ``min_confidence``, or (with ``skip_existing``) when the resort
    already has a value for it.
    """
    proposed: list[ProposedChange] = []
    skipped: list[SkippedField] = []

    def check(field: str, scored: ScoredValue, current: Any) -> None:
        if scored.value is None:
            skipped.append(SkippedField(field=field, reason="no data extracted"))
            return
        if scored.confidence < min_confidence:
            skipped.append(
                SkippedField(
                    field=field,
                    reason=(
                        f"low confidence ({scored.confidence * 100:.0f}% < "
                        f"{min_confidence * 100:.0f}%)"
                    ),
                    confidence=scored.confidence,
                )
            )
            return
        if skip_existing and _has_value(current):
            skipped.append(SkippedField(field=field, reason="already has value"))
            return
        proposed.append(
            ProposedChange(
                field=field,
                old_value=current,
                new_value=_normalize(scored.value),
                confidence=scored.confidence,
            )
        )

    check("tagline", extracted.content.tagline, resort.tagline)
    check("description", extracted.content.description, resort.description)

    for key, scored in _scored_fields(extracted.stats):
        check(f"stats.{key}", scored, resort.stats.get(key))
    for key, scored in _scored_fields(extracted.terrain):
        check(f"terrain.{key}", scored, resort.terrain.get(key))

    if isinstance(extracted, ExtractedData):
        for key, scored in _scored_fields(extracted.features):
            check(f"features.{key}", scored, resort.features.get(key))
        check("website_url", extracted.general.website_url, resort.website_url)
        check("nearest_city", extracted.general.nearest_city, resort.nearest_city)
        # Coordinates are only filled in, never replaced
        if resort.has_coordinates:
            skipped.append(SkippedField(field="coordinates", reason="already has value"))
        elif extracted.coordinates.lat.value is not None and extracted.coordinates.lng.value is not None:
            check("latitude", extracted.coordinates.lat, None)
            check("longitude", extracted.coordinates.lng, None)
            accepted = [c for c in proposed if c.field in ("latitude", "longitude")]
            if len(accepted) == 1:
                proposed.remove(accepted[0])
                skipped.append(SkippedField(field=accepted[0].field, reason="incomplete coordinates"))
        else:
            skipped.append(SkippedField(field="coordinates", reason="no data extracted"))

    return proposed, skipped


def build_updates(resort: Resort, changes: list[ProposedChange]) -> dict[str, Any]:
    """Column updates for the accepted changes.

    JSON columns are merged with the resort's existing keys.
    """
    updates: dict[str, Any] = {}
    nested: dict[str, dict[str, Any]] = {column: {} for column in JSON_COLUMNS}

    for change in changes:
        column, _, key = change.field.partition(".")
        if key and column in nested:
            nested[column][key] = change.new_value
        else:
            updates[change.field] = change.new_value

    for column, values in nested.items():
        if values:
            updates[column] = {**getattr(resort, column), **values}
    return updates


def format_changes(changes: list[ProposedChange], skipped: list[SkippedField], verbose: bool) -> str:
    lines = []
    for change in changes:
        new_value = change.new_value
        if isinstance(new_value, str) and len(new_value) > 60:
            new_value = new_value[:57] + "..."
        lines.append(
            f"    + {change.field}: {change.old_value!r} -> {new_value!r} "
            f"({change.confidence * 100:.0f}%)"
        )
    if verbose:
        for field in skipped:
            lines.append(f"    - {field.field}: {field.reason}")
    return "\n".join(lines)
