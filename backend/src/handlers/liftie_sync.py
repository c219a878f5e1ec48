"""
Liftie sync: copy lift status, weather and webcams into resort_conditions.

Snapshots are read from the object store (resorts/{asset_path}/liftie/*.json)
or, with --live, straight from the Liftie API. A resort whose Liftie data
has disappeared has its conditions row removed.
"""

import logging
import sys

from models.conditions import LiftieConditions
from models.liftie import LiftieSnapshot
from models.resort import Resort
from services.database_service import ResortRepository, create_supabase_client
from services.liftie_service import (
    LiftieService,
    format_conditions_summary,
    has_conditions_changed,
    load_snapshot,
    map_liftie_to_conditions,
)
from services.storage_service import AssetStore, create_s3_client
from utils.batch import filter_resorts, new_stats, print_summary, run_batch
from utils.cli import build_parser, print_banner, settings_from_args
from utils.config import SUPABASE_REQUIRED

logger = logging.getLogger(__name__)

EXAMPLES = """
Examples:
  liftie-sync                  Sync every resort from stored snapshots
  liftie-sync --dry-run        Show what would change
  liftie-sync -f vail --live   Sync resorts matching "vail" from the Liftie API
"""


class LiftieSync:
    """Runs one sync pass over a list of resorts."""

    def __init__(
        self,
        repository: ResortRepository,
        store: AssetStore | None = None,
        liftie: LiftieService | None = None,
        verbose: bool = False,
    ):
        if store is None and liftie is None:
            raise ValueError("LiftieSync needs an object store or a Liftie client")
        self.repository = repository
        self.store = store
        self.liftie = liftie
        self.verbose = verbose
        self.stats = new_stats("no_liftie_data", "removed")

    def fetch_snapshot(self, resort: Resort) -> LiftieSnapshot | None:
        if self.liftie is not None:
            return self.liftie.get_resort(resort.slug)
        return load_snapshot(self.store, resort.storage_path)

    def remove_stale(self, resort: Resort) -> bool:
        """Drop Liftie data for a resort Liftie no longer covers.

        The row is deleted outright unless it also carries a forecast, in
        which case only the Liftie columns are cleared.
        """
        existing = self.repository.get_conditions(resort.id)
        if not existing:
            return False

        if not existing.get("weather_source"):
            self.repository.delete_conditions(resort.id)
            print(f"  Removed stale conditions for {resort.slug}")
            return True

        cleared = LiftieConditions(resort_id=resort.id, has_weather=True)
        if not has_conditions_changed(existing, cleared):
            return False
        self.repository.upsert_conditions(cleared.model_dump(mode="json"))
        print(f"  Cleared stale Liftie data for {resort.slug}")
        return True

    def process_resort(self, resort: Resort) -> None:
        snapshot = self.fetch_snapshot(resort)

        if snapshot is None or snapshot.is_empty:
            self.stats["no_liftie_data"] += 1
            self.stats["skipped"] += 1
            if self.remove_stale(resort):
                self.stats["removed"] += 1
            elif self.verbose:
                print("  No Liftie data found")
            return

        conditions = map_liftie_to_conditions(resort.id, snapshot)
        existing = self.repository.get_conditions(resort.id)
        # has_weather is shared with weather-sync; never clear a forecast's flag
        if existing and existing.get("weather_source"):
            conditions.has_weather = True
        if not has_conditions_changed(existing, conditions):
            if self.verbose:
                print("  No changes detected")
            self.stats["skipped"] += 1
            return

        self.repository.upsert_conditions(conditions.model_dump(mode="json"))
        if self.verbose or self.repository.dry_run:
            print(f"  {format_conditions_summary(conditions)}")
        self.stats["updated"] += 1

    def run(self, resorts: list[Resort]) -> dict[str, int]:
        return run_batch(resorts, self.process_resort, self.stats, label=lambda r: r.name)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser(
        "liftie-sync",
        "Sync Liftie lift status, weather and webcams into resort_conditions",
        EXAMPLES,
    )
    parser.add_argument(
        "--live",
        action="store_true",
        help="Fetch from the Liftie API instead of stored snapshots",
    )
    args = parser.parse_args(argv)

    settings = settings_from_args(args, SUPABASE_REQUIRED)
    if settings is None:
        return 1

    print_banner("Liftie Sync - Real-time Conditions Updater", settings)

    repository = ResortRepository(create_supabase_client(settings), dry_run=settings.dry_run)
    if args.live:
        sync = LiftieSync(
            repository, liftie=LiftieService(settings.liftie_base_url), verbose=settings.verbose
        )
    else:
        store = AssetStore(
            create_s3_client(settings), settings.gcs_bucket_name, dry_run=settings.dry_run
        )
        sync = LiftieSync(repository, store=store, verbose=settings.verbose)

    resorts = filter_resorts(repository.list_resorts(), settings.filter)
    if settings.filter:
        print(f'\nFiltered to {len(resorts)} resorts matching "{settings.filter}"')
    print(f"\nProcessing {len(resorts)} resorts...\n")

    stats = sync.run(resorts)
    print_summary("Liftie Sync", stats, settings.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
