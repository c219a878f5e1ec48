"""
Weather sync: Open-Meteo forecasts for every active resort with coordinates.

Forecasts are requested at the summit elevation when it is known and
written to the weather columns of resort_conditions.
"""

import logging
import sys
from datetime import UTC, datetime

from models.resort import Resort
from services.database_service import ResortRepository, create_supabase_client
from services.openmeteo_service import OpenMeteoService, feet_to_meters
from services.weather_service import (
    format_weather_summary,
    has_weather_changed,
    map_forecast_to_conditions,
)
from utils.batch import filter_resorts, new_stats, print_summary, run_batch
from utils.cli import build_parser, print_banner, settings_from_args
from utils.config import SUPABASE_REQUIRED

logger = logging.getLogger(__name__)

EXAMPLES = """
Examples:
  weather-sync                        Update every active resort
  weather-sync --dry-run -f copper    Preview resorts matching "copper"
  weather-sync --batch-size 5 --batch-delay-ms 2000
"""


class WeatherSync:
    """Runs one forecast pass over a list of resorts."""

    def __init__(
        self,
        repository: ResortRepository,
        openmeteo: OpenMeteoService,
        verbose: bool = False,
    ):
        self.repository = repository
        self.openmeteo = openmeteo
        self.verbose = verbose
        self.stats = new_stats("no_data")

    def process_resort(self, resort: Resort) -> None:
        if not resort.has_coordinates:
            self.stats["skipped"] += 1
            return

        summit = resort.summit_elevation_feet
        elevation = feet_to_meters(summit) if summit else None
        forecast = self.openmeteo.get_forecast(resort.latitude, resort.longitude, elevation)
        if forecast is None:
            if self.verbose:
                print("  No forecast available")
            self.stats["no_data"] += 1
            self.stats["skipped"] += 1
            return

        weather = map_forecast_to_conditions(
            resort.id, forecast, fetched_at=datetime.now(UTC).isoformat()
        )
        existing = self.repository.get_conditions(resort.id)
        if not has_weather_changed(existing, weather):
            if self.verbose:
                print("  No significant change")
            self.stats["skipped"] += 1
            return

        self.repository.upsert_conditions(weather.model_dump(mode="json"))
        if self.verbose or self.repository.dry_run:
            print(f"  {format_weather_summary(weather)}")
        self.stats["updated"] += 1

    def run(
        self,
        resorts: list[Resort],
        batch_size: int,
        batch_delay_seconds: float,
    ) -> dict[str, int]:
        return run_batch(
            resorts,
            self.process_resort,
            self.stats,
            label=lambda r: r.name,
            batch_size=batch_size,
            batch_delay_seconds=batch_delay_seconds,
        )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser(
        "weather-sync",
        "Sync Open-Meteo forecasts into resort_conditions",
        EXAMPLES,
    )
    parser.add_argument("--batch-size", type=int, default=None, help="Resorts per batch")
    parser.add_argument(
        "--batch-delay-ms", type=int, default=None, help="Pause between batches (ms)"
    )
    args = parser.parse_args(argv)

    settings = settings_from_args(
        args,
        SUPABASE_REQUIRED,
        batch_size=args.batch_size,
        batch_delay_ms=args.batch_delay_ms,
    )
    if settings is None:
        return 1

    print_banner("Weather Sync - Open-Meteo Forecast Updater", settings)

    repository = ResortRepository(create_supabase_client(settings), dry_run=settings.dry_run)
    sync = WeatherSync(
        repository, OpenMeteoService(settings.open_meteo_base_url), verbose=settings.verbose
    )

    resorts = repository.list_resorts(active_only=True, with_coordinates=True)
    resorts = filter_resorts(resorts, settings.filter)
    print(
        f"\nProcessing {len(resorts)} resorts in batches of {settings.batch_size} "
        f"({settings.batch_delay_ms}ms between batches)...\n"
    )

    stats = sync.run(resorts, settings.batch_size, settings.batch_delay_seconds)
    print_summary("Weather Sync", stats, settings.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
