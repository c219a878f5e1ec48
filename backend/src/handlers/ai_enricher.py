"""
AI enricher: generate taglines, descriptions, stats and terrain for resorts
from every evidence file stored under their asset path.

Runs as a dry run unless --apply is given. Each run's token usage and cost
is saved as a cost report.
"""

import logging
import sys
import time
from datetime import UTC, datetime

from models.resort import Resort
from services.cost_tracker import CostTracker
from services.database_service import ResortRepository, create_supabase_client
from services.enrichment_service import (
    WIKI_DATA_FILE,
    aggregate_resort_data,
    build_updates,
    format_changes,
    map_extracted_data,
)
from services.llm_service import LLMExtractor, create_openai_client
from services.storage_service import AssetStore, create_s3_client, normalize_asset_path, resort_key
from utils.batch import apply_window, filter_resorts, new_stats, print_summary, run_batch
from utils.cli import build_parser, settings_from_args
from utils.config import OPENAI_REQUIRED

logger = logging.getLogger(__name__)

ENRICHMENT_FILE = "ai-enrichment.json"
OUTPUT_VERSION = "1.0.0"
RESORT_DELAY_SECONDS = 0.5

EXAMPLES = """
Examples:
  ai-enricher --list                    List resorts with source data
  ai-enricher -f vail                   Preview Vail (dry run)
  ai-enricher -l 5 -v                   Preview five resorts with details
  ai-enricher -f breck --apply          Enrich Breckenridge and save
  ai-enricher --apply --skip-existing   Only resorts without enrichment
"""


class AIEnricher:
    def __init__(
        self,
        repository: ResortRepository,
        store: AssetStore,
        extractor: LLMExtractor,
        cost_tracker: CostTracker,
        skip_existing: bool = False,
        overwrite: bool = False,
        min_confidence: float = 0.7,
        verbose: bool = False,
    ):
        self.repository = repository
        self.store = store
        self.extractor = extractor
        self.cost_tracker = cost_tracker
        self.skip_existing = skip_existing
        self.overwrite = overwrite
        self.min_confidence = min_confidence
        self.verbose = verbose
        self.stats = new_stats("no_wiki_data", "fields_updated")

    @property
    def dry_run(self) -> bool:
        return self.repository.dry_run

    def process_resort(self, resort: Resort) -> None:
        asset_path = resort.storage_path
        output_key = resort_key(asset_path, ENRICHMENT_FILE)

        if self.skip_existing and not self.overwrite and self.store.exists(output_key):
            print("  Skipping (enrichment exists)")
            self.stats["skipped"] += 1
            return

        started = time.monotonic()
        data = aggregate_resort_data(
            self.store, asset_path, resort.name, resort.display_state, resort.display_country
        )
        if not data.data_quality.has_wikipedia:
            print("  No Wikipedia data, skipping")
            self.stats["no_wiki_data"] += 1
            self.stats["skipped"] += 1
            return
        if self.verbose:
            quality = data.data_quality
            print(f"  Data quality: {quality.overall_score:.0%} ({quality.source_count} sources)")

        result, usage = self.extractor.enrich(data)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        cost = self.cost_tracker.add_resort(
            resort.slug, usage.prompt_tokens, usage.completion_tokens, elapsed_ms
        )
        print(f"  Cost: ${cost:.4f} ({usage.total_tokens} tokens)")

        proposed, skipped = map_extracted_data(
            resort, result, self.skip_existing, self.min_confidence
        )

        output = {
            "slug": resort.slug,
            "assetPath": normalize_asset_path(asset_path),
            "enrichment": result.model_dump(mode="json", by_alias=True),
            "metadata": {
                "version": OUTPUT_VERSION,
                "processedAt": datetime.now(UTC).isoformat(),
                "processingTimeMs": elapsed_ms,
                "model": self.extractor.model,
                "promptTokens": usage.prompt_tokens,
                "completionTokens": usage.completion_tokens,
                "estimatedCost": cost,
                "minConfidenceThreshold": self.min_confidence,
            },
            "inputDataQuality": data.data_quality.model_dump(),
        }
        if not self.overwrite and not self.dry_run and self.store.exists(output_key):
            print(f"  Keeping existing {ENRICHMENT_FILE} (use --overwrite to replace)")
        else:
            self.store.put_json(output_key, output)

        if proposed:
            print(format_changes(proposed, skipped, self.verbose))
            self.repository.update_resort(resort.id, build_updates(resort, proposed))
            self.stats["fields_updated"] += len(proposed)
            self.stats["updated"] += 1
        else:
            print("  No fields above the confidence threshold")
            self.stats["skipped"] += 1

    def save_cost_report(self) -> None:
        if self.dry_run or not self.cost_tracker.resort_count:
            return
        report = self.cost_tracker.get_report()
        self.store.put_json(self.cost_tracker.report_key(), report.model_dump(), cache_control=None)
        print(f"\nCost report saved to {self.cost_tracker.report_key()}")

    def run(self, resorts: list[Resort]) -> dict:
        stats = run_batch(
            resorts,
            self.process_resort,
            self.stats,
            label=lambda r: r.name,
            item_delay_seconds=RESORT_DELAY_SECONDS,
        )
        self.save_cost_report()
        return stats


def select_candidates(
    asset_paths: list[str],
    resorts: list[Resort],
    pattern: str | None,
    skip: int = 0,
    limit: int | None = None,
) -> list[Resort]:
    """Resorts that have source data, narrowed before anything is fetched."""
    by_path = {normalize_asset_path(r.storage_path): r for r in resorts}
    paths = apply_window(filter_resorts(asset_paths, pattern), skip=skip, limit=limit)

    selected = []
    for path in paths:
        resort = by_path.get(normalize_asset_path(path))
        if resort is None:
            logger.warning(f"No resort record for {path}, skipping")
            continue
        selected.append(resort)
    return selected


def main(argv: list[str] | None = None) -> int:
    parser = build_parser(
        "ai-enricher",
        "Generate resort content and stats from aggregated source data",
        EXAMPLES,
    )
    parser.add_argument(
        "--apply", "-a", action="store_true", help="Write changes (default: dry run)"
    )
    parser.add_argument("--limit", "-l", type=int, default=None, help="Process only N resorts")
    parser.add_argument("--skip", "-s", type=int, default=0, help="Skip the first N resorts")
    parser.add_argument(
        "--skip-existing",
        action="store_true",
        help="Skip resorts with enrichment and fields that already have values",
    )
    parser.add_argument(
        "--overwrite", action="store_true", help="Replace existing enrichment files"
    )
    parser.add_argument(
        "--min-confidence", "-c", type=float, default=None, help="Confidence threshold (0-1)"
    )
    parser.add_argument("--list", action="store_true", help="List resorts with source data")
    parser.add_argument(
        "--list-enriched", action="store_true", help="List resorts with existing enrichment"
    )
    args = parser.parse_args(argv)

    if not args.apply:
        args.dry_run = True

    settings = settings_from_args(args, OPENAI_REQUIRED, min_confidence=args.min_confidence)
    if settings is None:
        return 1

    store = AssetStore(
        create_s3_client(settings), settings.gcs_bucket_name, dry_run=settings.dry_run
    )

    print("=" * 60)
    print("AI Enricher - Resort Content Generation")
    print("=" * 60)

    if args.list or args.list_enriched:
        marker = ENRICHMENT_FILE if args.list_enriched else WIKI_DATA_FILE
        paths = filter_resorts(store.list_asset_paths(marker), settings.filter)
        print(f"\nResorts with {marker} ({len(paths)}):\n")
        for path in paths:
            print(f"  {path}")
        return 0

    print(f"\nMode: {'DRY RUN' if settings.dry_run else 'APPLY'}")
    print(f"Model: {settings.openai_model}")
    print(f"Min confidence: {settings.min_confidence * 100:.0f}%\n")

    repository = ResortRepository(create_supabase_client(settings), dry_run=settings.dry_run)
    resorts = select_candidates(
        store.list_asset_paths(WIKI_DATA_FILE),
        repository.list_resorts(),
        settings.filter,
        skip=args.skip,
        limit=args.limit,
    )
    print(f"Processing {len(resorts)} resorts...\n")

    tracker = CostTracker(settings.openai_model)
    enricher = AIEnricher(
        repository,
        store,
        LLMExtractor(create_openai_client(settings), settings.openai_model),
        tracker,
        skip_existing=args.skip_existing,
        overwrite=args.overwrite,
        min_confidence=settings.min_confidence,
        verbose=settings.verbose,
    )

    stats = enricher.run(resorts)
    stats["cost"] = tracker.total_cost
    print_summary("AI Enricher", stats, settings.dry_run)
    print()
    print(tracker.format_summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
