"""
Wikidata enricher: extract structured resort fields from stored Wikipedia
data, backed by the article's Wikidata claims.

Runs as a dry run unless --apply is given.
"""

import logging
import sys
import time
from datetime import UTC, datetime

from models.enrichment import ExtractedData, TokenUsage
from models.resort import Resort
from services.cost_tracker import calculate_cost
from services.database_service import ResortRepository, create_supabase_client
from services.enrichment_service import (
    WIKI_DATA_FILE,
    build_updates,
    format_changes,
    map_extracted_data,
)
from services.llm_service import LLMExtractor, create_openai_client
from services.storage_service import AssetStore, create_s3_client, resort_key
from services.wikidata_service import WikidataService
from services.wikipedia_service import WikipediaService
from utils.batch import apply_window, filter_resorts, new_stats, print_summary, run_batch
from utils.cli import build_parser, settings_from_args
from utils.config import OPENAI_REQUIRED
from utils.http import RateLimiter, SourceFetchError

logger = logging.getLogger(__name__)

ENRICHED_DATA_FILE = "enriched-data.json"
LLM_DELAY_SECONDS = 0.5

EXAMPLES = """
Examples:
  wikidata-enricher --list                   List resorts with wiki data
  wikidata-enricher -f vail                  Process Vail only (dry run)
  wikidata-enricher -l 5 -v                  Process 5 resorts with details
  wikidata-enricher -f vail --apply          Process Vail and apply changes
  wikidata-enricher --apply --skip-existing  Apply all, keep existing values
"""


class WikidataEnricher:
    def __init__(
        self,
        repository: ResortRepository,
        store: AssetStore,
        extractor: LLMExtractor,
        wikipedia: WikipediaService | None = None,
        wikidata: WikidataService | None = None,
        skip_existing: bool = False,
        min_confidence: float = 0.7,
        verbose: bool = False,
        sleep=time.sleep,
    ):
        self.repository = repository
        self.store = store
        self.extractor = extractor
        self.wikipedia = wikipedia
        self.wikidata = wikidata
        self.skip_existing = skip_existing
        self.min_confidence = min_confidence
        self.verbose = verbose
        self.sleep = sleep
        self.stats = new_stats("no_wiki_data", "extracted", "fields_applied", "tokens")
        self.stats["cost"] = 0.0

    @property
    def dry_run(self) -> bool:
        return self.repository.dry_run

    def entity_facts(self, wiki_data: dict) -> dict | None:
        """Wikidata claims for the article, if it links to an entity."""
        title = wiki_data.get("title")
        if not title or self.wikipedia is None or self.wikidata is None:
            return None
        try:
            entity_id = self.wikipedia.get_wikidata_id(title)
            return self.wikidata.get_facts(entity_id) if entity_id else None
        except SourceFetchError as e:
            # Claims are supporting evidence only
            logger.warning(f"Wikidata lookup failed for {title}: {e}")
            return None

    def record_usage(self, usage: TokenUsage) -> None:
        self.stats["tokens"] += usage.total_tokens
        self.stats["cost"] += calculate_cost(
            self.extractor.model, usage.prompt_tokens, usage.completion_tokens
        )

    def process_resort(self, resort: Resort) -> None:
        wiki_data = self.store.get_json(resort_key(resort.storage_path, WIKI_DATA_FILE))
        if not isinstance(wiki_data, dict):
            print(f"  No {WIKI_DATA_FILE} found, skipping")
            self.stats["no_wiki_data"] += 1
            self.stats["skipped"] += 1
            return

        facts = self.entity_facts(wiki_data)
        try:
            extracted, usage = self.extractor.extract_resort_data(resort, wiki_data, facts)
        finally:
            self.sleep(LLM_DELAY_SECONDS)
        self.record_usage(usage)
        self.stats["extracted"] += 1
        print(
            f"  Tokens: {usage.total_tokens} "
            f"(prompt: {usage.prompt_tokens}, completion: {usage.completion_tokens})"
        )

        proposed, skipped = map_extracted_data(
            resort, extracted, self.skip_existing, self.min_confidence
        )
        if not proposed:
            print("  No changes proposed")
            if self.verbose and skipped:
                print(format_changes([], skipped, verbose=True))
            self.stats["skipped"] += 1
            return

        print(format_changes(proposed, skipped, self.verbose))
        if self.dry_run:
            return

        self.repository.update_resort(resort.id, build_updates(resort, proposed))
        self.store.put_json(
            resort_key(resort.storage_path, ENRICHED_DATA_FILE),
            self.audit_record(extracted, proposed, skipped, usage),
        )
        self.stats["fields_applied"] += len(proposed)
        self.stats["updated"] += 1

    def audit_record(self, extracted: ExtractedData, proposed, skipped, usage: TokenUsage) -> dict:
        return {
            "extractedAt": datetime.now(UTC).isoformat(),
            "model": self.extractor.model,
            "minConfidence": self.min_confidence,
            "extractedData": extracted.model_dump(mode="json", by_alias=True),
            "proposedChanges": [c.model_dump(mode="json") for c in proposed],
            "skippedFields": [s.model_dump(mode="json") for s in skipped],
            "tokenUsage": usage.model_dump(),
            "applied": True,
        }

    def run(self, resorts: list[Resort]) -> dict:
        return run_batch(resorts, self.process_resort, self.stats, label=lambda r: r.name)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser(
        "wikidata-enricher",
        "Enrich resort records from Wikipedia and Wikidata using an LLM",
        EXAMPLES,
    )
    parser.add_argument(
        "--apply", "-a", action="store_true", help="Write changes (default: dry run)"
    )
    parser.add_argument(
        "--skip-existing", "-s", action="store_true", help="Keep fields that already have values"
    )
    parser.add_argument(
        "--min-confidence", "-c", type=float, default=None, help="Confidence threshold (0-1)"
    )
    parser.add_argument("--limit", "-l", type=int, default=None, help="Process only N resorts")
    parser.add_argument("--list", action="store_true", help="List resorts with wiki data and exit")
    args = parser.parse_args(argv)

    # Dry run unless explicitly applied
    if not args.apply:
        args.dry_run = True

    settings = settings_from_args(args, OPENAI_REQUIRED, min_confidence=args.min_confidence)
    if settings is None:
        return 1

    store = AssetStore(
        create_s3_client(settings), settings.gcs_bucket_name, dry_run=settings.dry_run
    )

    print("=" * 50)
    print("  WIKIDATA ENRICHER")
    print("=" * 50)

    if args.list:
        paths = filter_resorts(store.list_asset_paths(WIKI_DATA_FILE), settings.filter)
        print(f"\nResorts with {WIKI_DATA_FILE} ({len(paths)}):\n")
        for path in paths:
            print(f"  {path}")
        return 0

    print(f"\nMode: {'DRY RUN' if settings.dry_run else 'APPLY'}")
    print(f"Min confidence: {settings.min_confidence * 100:.0f}%")
    print(f"Skip existing: {args.skip_existing}\n")

    repository = ResortRepository(create_supabase_client(settings), dry_run=settings.dry_run)
    rate_limiter = RateLimiter(settings.wikipedia_rate_limit_ms)
    enricher = WikidataEnricher(
        repository,
        store,
        LLMExtractor(create_openai_client(settings), settings.openai_model),
        wikipedia=WikipediaService(settings.wikipedia_user_agent, rate_limiter=rate_limiter),
        wikidata=WikidataService(settings.wikipedia_user_agent, rate_limiter=rate_limiter),
        skip_existing=args.skip_existing,
        min_confidence=settings.min_confidence,
        verbose=settings.verbose,
    )

    resorts = filter_resorts(repository.list_resorts(), settings.filter)
    resorts = apply_window(resorts, limit=args.limit)
    print(f"Processing {len(resorts)} resorts...\n")

    stats = enricher.run(resorts)
    print_summary("Wikidata Enricher", stats, settings.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
