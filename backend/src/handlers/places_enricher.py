"""
Places enrichers: ask the model for dining venues or ski shops around each
resort, store them deduplicated, and link them to the resort by distance.

Writes by default; --dry-run previews. The raw model answer for each resort
is kept next to its other assets for auditing.
"""

import logging
import sys
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Callable

from openai import OpenAIError

from models.places import DINING, SKI_SHOPS, ParseResult, Place, PlaceKind
from models.resort import Resort
from services.cost_tracker import calculate_cost
from services.database_service import (
    PlaceRepository,
    ResortRepository,
    create_supabase_client,
)
from services.llm_service import (
    DINING_MAX_TOKENS,
    DINING_SYSTEM_PROMPT,
    SKI_SHOP_MAX_TOKENS,
    SKI_SHOP_SYSTEM_PROMPT,
    LLMExtractor,
    TransformError,
    build_dining_prompt,
    build_ski_shop_prompt,
    create_openai_client,
)
from services.places_service import (
    Deduplicator,
    estimate_drive_time,
    is_on_mountain,
    parse_dining_response,
    parse_ski_shop_response,
)
from services.storage_service import AssetStore, StorageError, create_s3_client, resort_key
from utils.batch import apply_window, filter_resorts, new_stats, print_summary, run_batch
from utils.cli import build_parser, print_banner, settings_from_args
from utils.config import OPENAI_REQUIRED, SUPABASE_REQUIRED
from utils.geo_utils import haversine_miles

logger = logging.getLogger(__name__)

OUTPUT_VERSION = "1.0"
# Links beyond this multiple of the search radius are dropped
LINK_RADIUS_FACTOR = 1.5


@dataclass(frozen=True)
class PlaceSearch:
    """How to ask for and read back one kind of place."""

    kind: PlaceKind
    build_prompt: Callable[[Resort, float, int], str]
    system_prompt: str
    max_tokens: int
    parse: Callable[[dict[str, Any]], ParseResult]
    # Dining trusts the model's on-mountain flag; shops go by distance only
    trust_model_location: bool


DINING_SEARCH = PlaceSearch(
    kind=DINING,
    build_prompt=build_dining_prompt,
    system_prompt=DINING_SYSTEM_PROMPT,
    max_tokens=DINING_MAX_TOKENS,
    parse=parse_dining_response,
    trust_model_location=True,
)

SKI_SHOP_SEARCH = PlaceSearch(
    kind=SKI_SHOPS,
    build_prompt=build_ski_shop_prompt,
    system_prompt=SKI_SHOP_SYSTEM_PROMPT,
    max_tokens=SKI_SHOP_MAX_TOKENS,
    parse=parse_ski_shop_response,
    trust_model_location=False,
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class PlaceEnricher:
    def __init__(
        self,
        places: PlaceRepository,
        store: AssetStore,
        extractor: LLMExtractor,
        search: PlaceSearch,
        radius_miles: float = 20,
        max_places: int | None = None,
        verbose: bool = False,
    ):
        self.places = places
        self.store = store
        self.extractor = extractor
        self.search = search
        self.radius_miles = radius_miles
        self.max_places = max_places or search.kind.max_per_resort
        self.verbose = verbose
        self.deduplicator = Deduplicator(places)
        self.stats: dict[str, Any] = new_stats("no_results", "found", "added", "linked")
        self.stats["cost"] = 0.0

    @property
    def kind(self) -> PlaceKind:
        return self.search.kind

    def process_resort(self, resort: Resort) -> None:
        if not resort.has_coordinates:
            print("  No coordinates, skipping")
            self.stats["skipped"] += 1
            return

        self.deduplicator.reset()
        started_at = _now()
        started = time.monotonic()
        prompt = self.search.build_prompt(resort, self.radius_miles, self.max_places)

        try:
            data, usage = self.extractor.complete_json(
                prompt, system=self.search.system_prompt, max_tokens=self.search.max_tokens
            )
        except (TransformError, OpenAIError) as e:
            self._log(resort, "failed", started_at, started, error_message=str(e))
            raise

        cost = calculate_cost(self.extractor.model, usage.prompt_tokens, usage.completion_tokens)
        self.stats["cost"] += cost

        parsed = self.search.parse(data)
        found = [self._with_distance(resort, place) for place in parsed.places]
        self.stats["found"] += len(found)
        print(
            f"  {len(found)} valid {self.kind.noun}"
            + (f", {parsed.invalid_count} invalid" if parsed.invalid_count else "")
            + f" (${cost:.4f})"
        )
        if self.verbose:
            for error in parsed.errors:
                print(f"    - {error}")

        self._save_report(resort, found, parsed, usage, cost, data)

        counts = {"found": len(found), "added": 0, "updated": 0, "linked": 0}
        usage_fields = {
            "prompt_tokens": usage.prompt_tokens,
            "completion_tokens": usage.completion_tokens,
            "total_cost": cost,
            "raw_response": data,
        }
        if not found:
            self.stats["no_results"] += 1
            self.stats["skipped"] += 1
            self._log(resort, "no_results", started_at, started, counts, **usage_fields)
            return

        self._store(resort, found, counts)
        status = "success" if counts["linked"] else "partial"
        print(
            f"  Added {counts['added']}, updated {counts['updated']}, linked {counts['linked']}"
        )
        self.stats["added"] += counts["added"]
        self.stats["linked"] += counts["linked"]
        self.stats["updated"] += 1
        self._log(resort, status, started_at, started, counts, **usage_fields)

    def _with_distance(self, resort: Resort, place: Place) -> Place:
        distance = haversine_miles(
            resort.latitude, resort.longitude, place.latitude, place.longitude
        )
        return place.model_copy(update={"distance_miles": distance})

    def _store(self, resort: Resort, places: list[Place], counts: dict[str, int]) -> None:
        limit = self.radius_miles * LINK_RADIUS_FACTOR
        for place in places:
            resolved = self.deduplicator.resolve(place)
            if resolved is None:
                logger.debug(f"Duplicate {place.slug} in response, skipping")
                continue
            place, is_new = resolved

            place_id = self.places.upsert_place(place)
            counts["added" if is_new else "updated"] += 1

            if place.distance_miles > limit:
                logger.info(
                    f"{place.name} is {place.distance_miles:.1f} mi from {resort.name}, not linking"
                )
                continue

            on_mountain = is_on_mountain(place.distance_miles)
            if self.search.trust_model_location:
                on_mountain = on_mountain or bool(getattr(place, "is_on_mountain", False))
            self.places.link(
                resort.id,
                place_id,
                place.distance_miles,
                estimate_drive_time(place.distance_miles),
                on_mountain,
            )
            counts["linked"] += 1

    def _save_report(self, resort, places, parsed, usage, cost, raw) -> None:
        """Audit copy of the model's answer; a failed upload does not stop the run."""
        report = {
            "version": OUTPUT_VERSION,
            "enriched_at": _now(),
            "model": self.extractor.model,
            "resort": {
                "id": resort.id,
                "name": resort.name,
                "slug": resort.slug,
                "asset_path": resort.storage_path,
            },
            "search": {
                "radius_miles": self.radius_miles,
                "latitude": resort.latitude,
                "longitude": resort.longitude,
            },
            "statistics": {
                "found": len(places) + parsed.invalid_count,
                "valid": len(places),
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "total_cost": cost,
            },
            "raw_response": raw,
            self.kind.noun: [place.to_report() for place in places],
        }
        try:
            self.store.put_json(resort_key(resort.storage_path, self.kind.output_file), report)
        except StorageError as e:
            logger.warning(f"Could not save {self.kind.output_file} for {resort.slug}: {e}")

    def _log(
        self,
        resort: Resort,
        status: str,
        started_at: str,
        started: float,
        counts: dict[str, int] | None = None,
        **fields,
    ) -> None:
        noun = self.kind.noun
        entry = {
            "resort_id": resort.id,
            "status": status,
            "started_at": started_at,
            "completed_at": _now(),
            "duration_ms": int((time.monotonic() - started) * 1000),
            **{f"{noun}_{name}": value for name, value in (counts or {}).items()},
            **fields,
        }
        self.places.log_enrichment(entry)

    def run(self, resorts: list[Resort], delay_seconds: float = 0.0) -> dict[str, Any]:
        return run_batch(
            resorts,
            self.process_resort,
            self.stats,
            label=lambda r: r.name,
            item_delay_seconds=delay_seconds,
        )


def select_resorts(
    resorts: list[Resort],
    slug: str | None = None,
    state: str | None = None,
    pattern: str | None = None,
    limit: int | None = None,
) -> list[Resort]:
    """Narrow the resort list by exact slug, state and slug substring."""
    if slug:
        resorts = [r for r in resorts if r.slug == slug]
    if state:
        wanted = state.strip().lower().replace(" ", "-")
        resorts = [
            r
            for r in resorts
            if wanted in (r.state_slug.lower(), r.display_state.lower().replace(" ", "-"))
        ]
    return apply_window(filter_resorts(resorts, pattern), limit=limit)


def print_status(places: PlaceRepository) -> None:
    print(f"\n{places.kind.label} status:\n")
    for name, count in places.get_stats().items():
        print(f"  {name.replace('_', ' ').capitalize() + ':':<20} {count}")


def main_for(search: PlaceSearch, prog: str, argv: list[str] | None = None) -> int:
    kind = search.kind
    parser = build_parser(
        prog,
        f"Find {kind.noun} near resorts and link them by distance",
        f"""
Examples:
  {prog} --status                 Show table counts
  {prog} --resort vail            Enrich one resort
  {prog} --state colorado -l 5    Five resorts in a state
  {prog} --dry-run -v             Preview every resort
""",
    )
    parser.add_argument("--resort", default=None, help="Only the resort with this slug")
    parser.add_argument("--state", default=None, help="Only resorts in this state")
    parser.add_argument("--limit", "-l", type=int, default=None, help="Process only N resorts")
    parser.add_argument(
        "--radius", "-r", type=float, default=None, help="Search radius in miles"
    )
    parser.add_argument(
        "--max-places", type=int, default=None, help=f"Maximum {kind.noun} per resort"
    )
    parser.add_argument("--status", action="store_true", help="Show table counts and exit")
    args = parser.parse_args(argv)

    required = SUPABASE_REQUIRED if args.status else OPENAI_REQUIRED
    settings = settings_from_args(
        args,
        required,
        search_radius_miles=args.radius,
        max_places_per_resort=args.max_places,
    )
    if settings is None:
        return 1

    client = create_supabase_client(settings)
    places = PlaceRepository(client, kind, dry_run=settings.dry_run)
    if args.status:
        print_status(places)
        return 0

    print_banner(kind.label, settings)
    max_places = settings.max_places_per_resort or kind.max_per_resort
    print(f"Model: {settings.openai_model}")
    print(f"Radius: {settings.search_radius_miles:g} miles, up to {max_places} {kind.noun}\n")

    resorts = select_resorts(
        ResortRepository(client).list_resorts(active_only=True, with_coordinates=True),
        slug=args.resort,
        state=args.state,
        pattern=settings.filter,
        limit=args.limit,
    )
    if not resorts:
        print("No matching resorts")
        return 0
    print(f"Processing {len(resorts)} resorts...\n")

    store = AssetStore(
        create_s3_client(settings), settings.gcs_bucket_name, dry_run=settings.dry_run
    )
    enricher = PlaceEnricher(
        places,
        store,
        LLMExtractor(create_openai_client(settings), settings.openai_model),
        search,
        radius_miles=settings.search_radius_miles,
        max_places=max_places,
        verbose=settings.verbose,
    )
    stats = enricher.run(resorts, delay_seconds=settings.place_delay_seconds)
    print_summary(kind.label, stats, settings.dry_run)
    return 0


def dining_main(argv: list[str] | None = None) -> int:
    return main_for(DINING_SEARCH, "dining-enricher", argv)


def ski_shop_main(argv: list[str] | None = None) -> int:
    return main_for(SKI_SHOP_SEARCH, "ski-shop-enricher", argv)


if __name__ == "__main__":
    sys.exit(dining_main())
