"""
Wikipedia updater: README, wiki-data.json and a hero image for each resort.

A resort is marked inactive when it has no dedicated article, and active
only when its article also has images.
"""

import logging
import sys

from models.resort import Resort
from services.database_service import ResortRepository, create_supabase_client
from services.readme_formatter import format_readme
from services.storage_service import IMAGE_CACHE_CONTROL, AssetStore, create_s3_client, resort_key
from services.wikipedia_service import WikipediaService
from utils.batch import apply_window, filter_resorts, new_stats, print_summary, run_batch
from utils.cli import build_parser, print_banner, settings_from_args
from utils.config import SUPABASE_REQUIRED

logger = logging.getLogger(__name__)

EXAMPLES = """
Examples:
  wikipedia-updater --limit 10             First ten resorts
  wikipedia-updater --skip 100 --limit 50  Resorts 101-150
  wikipedia-updater -f alta --dry-run      Preview resorts matching "alta"
  wikipedia-updater --delay 5              Wait five seconds between resorts
"""


class WikipediaUpdater:
    def __init__(
        self,
        repository: ResortRepository,
        store: AssetStore,
        wikipedia: WikipediaService,
        verbose: bool = False,
    ):
        self.repository = repository
        self.store = store
        self.wikipedia = wikipedia
        self.verbose = verbose
        self.stats = new_stats("no_wiki_data", "images")

    def process_resort(self, resort: Resort) -> None:
        asset_path = resort.storage_path
        article = self.wikipedia.fetch_article(resort.name, resort.display_state)

        if article is None:
            print("  No dedicated Wikipedia article found, marking inactive")
            self.repository.set_resort_active(resort.id, False)
            self.stats["no_wiki_data"] += 1
            self.stats["skipped"] += 1
            return

        has_images = bool(article.media)
        print(f'  Found article "{article.title}" with {len(article.media)} images')
        self.repository.set_resort_active(resort.id, has_images)

        self.store.put_text(
            resort_key(asset_path, "README.md"),
            format_readme(resort, article),
            content_type="text/markdown",
        )
        self.store.put_json(resort_key(asset_path, "wiki-data.json"), article.to_json())

        lead = article.lead_image
        url = lead.best_url() if lead else None
        if url:
            image = self.wikipedia.download_image(url)
            if image:
                self.store.put_bytes(
                    resort_key(asset_path, "wikipedia", "primary.jpg"),
                    image,
                    "image/jpeg",
                    IMAGE_CACHE_CONTROL,
                )
                self.stats["images"] += 1

        self.stats["updated"] += 1

    def run(self, resorts: list[Resort], delay_seconds: float = 0.0) -> dict[str, int]:
        return run_batch(
            resorts,
            self.process_resort,
            self.stats,
            label=lambda r: f"{r.name} ({r.display_state})",
            item_delay_seconds=delay_seconds,
        )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser(
        "wikipedia-updater",
        "Publish Wikipedia content and images for each resort",
        EXAMPLES,
    )
    parser.add_argument("--limit", type=int, default=None, help="Process at most N resorts")
    parser.add_argument("--skip", type=int, default=0, help="Skip the first N resorts")
    parser.add_argument(
        "--delay", type=float, default=0.0, help="Seconds to wait between resorts"
    )
    args = parser.parse_args(argv)

    settings = settings_from_args(args, SUPABASE_REQUIRED)
    if settings is None:
        return 1

    print_banner("Wikipedia Updater - Ski Directory", settings)

    repository = ResortRepository(create_supabase_client(settings), dry_run=settings.dry_run)
    store = AssetStore(
        create_s3_client(settings), settings.gcs_bucket_name, dry_run=settings.dry_run
    )
    wikipedia = WikipediaService(
        settings.wikipedia_user_agent, rate_limit_ms=settings.wikipedia_rate_limit_ms
    )
    updater = WikipediaUpdater(repository, store, wikipedia, verbose=settings.verbose)

    resorts = filter_resorts(repository.list_resorts(), settings.filter)
    resorts = apply_window(resorts, skip=args.skip, limit=args.limit)
    print(f"\nProcessing {len(resorts)} resorts...")
    print(f"Rate limit: {settings.wikipedia_rate_limit_ms}ms between Wikipedia requests\n")

    stats = updater.run(resorts, delay_seconds=args.delay)
    print_summary("Wikipedia Updater", stats, settings.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
