"""Tests for the dining and ski shop enrichers."""

from unittest.mock import Mock, patch

import pytest

from conftest import FakeStore, make_resort
from handlers.places_enricher import (
    DINING_SEARCH,
    SKI_SHOP_SEARCH,
    PlaceEnricher,
    dining_main,
    select_resorts,
    ski_shop_main,
)
from models.enrichment import TokenUsage
from services.database_service import PlaceRepository
from services.llm_service import DINING_SYSTEM_PROMPT, TransformError
from services.storage_service import StorageError

# Vail base area and a shop about 8 miles west in Avon
VAIL = (39.6403, -106.3742)
BOL = {
    "name": "Bol",
    "address": "141 E Meadow Dr",
    "city": "Vail",
    "state": "CO",
    "postal_code": "81657",
    "latitude": 39.6433,
    "longitude": -106.3781,
    "venue_type": ["restaurant"],
    "is_on_mountain": False,
}
AVON_SHOP = {
    "name": "Avon Ski Rental",
    "address": "1 Benchmark Rd",
    "city": "Avon",
    "state": "CO",
    "postal_code": "81620",
    "latitude": 39.6314,
    "longitude": -106.5219,
    "shop_type": ["rental"],
}


@pytest.fixture
def places():
    repo = Mock(spec=PlaceRepository)
    repo.dry_run = False
    repo.find_by_slug.return_value = None
    repo.find_by_name_and_city.return_value = None
    repo.upsert_place.side_effect = lambda place: place.id or f"id:{place.slug}"
    return repo


def _extractor(data=None, error=None):
    extractor = Mock()
    extractor.model = "gpt-4o"
    if error:
        extractor.complete_json.side_effect = error
    else:
        usage = TokenUsage(prompt_tokens=1000, completion_tokens=2000)
        extractor.complete_json.return_value = (data, usage)
    return extractor


def _enricher(places, store, extractor, search=DINING_SEARCH, **kwargs):
    return PlaceEnricher(places, store, extractor, search, **kwargs)


@pytest.fixture
def resort():
    return make_resort("vail", name="Vail", lat=VAIL[0], lon=VAIL[1], nearest_city="Vail")


class TestProcessResort:
    def test_links_new_venue(self, places, resort):
        store = FakeStore()
        extractor = _extractor({"venues": [BOL]})
        enricher = _enricher(places, store, extractor, radius_miles=20, max_places=5)

        enricher.process_resort(resort)

        prompt = extractor.complete_json.call_args.args[0]
        assert '"Vail"' in prompt
        assert "within 20 miles" in prompt
        assert "Return 5 venues" in prompt
        assert extractor.complete_json.call_args.kwargs == {
            "system": DINING_SYSTEM_PROMPT,
            "max_tokens": 6000,
        }

        place = places.upsert_place.call_args.args[0]
        assert place.slug == "bol-vail-co"
        resort_id, place_id, distance, drive_time, on_mountain = places.link.call_args.args
        assert (resort_id, place_id) == ("resort:vail", "id:bol-vail-co")
        assert distance < 0.5
        assert drive_time == 1
        assert on_mountain is True

        entry = places.log_enrichment.call_args.args[0]
        assert entry["status"] == "success"
        assert entry["venues_found"] == 1
        assert entry["venues_added"] == 1
        assert entry["venues_linked"] == 1
        assert entry["prompt_tokens"] == 1000
        assert entry["total_cost"] == pytest.approx(0.0225)
        assert enricher.stats["updated"] == 1
        assert enricher.stats["linked"] == 1

    def test_saves_audit_report(self, places, resort):
        store = FakeStore()
        data = {"venues": [BOL, dict(BOL, name="")]}

        _enricher(places, store, _extractor(data)).process_resort(resort)

        report = store.objects["resorts/us/colorado/vail/dining-venues.json"]
        assert report["version"] == "1.0"
        assert report["resort"]["slug"] == "vail"
        assert report["search"] == {"radius_miles": 20, "latitude": VAIL[0], "longitude": VAIL[1]}
        assert report["statistics"]["found"] == 2
        assert report["statistics"]["valid"] == 1
        assert report["raw_response"] == data
        assert report["venues"][0]["distance_miles"] < 0.5

    def test_existing_venue_is_updated(self, places, resort):
        places.find_by_slug.return_value = {"id": "v1", "slug": "bol-vail-co"}
        enricher = _enricher(places, FakeStore(), _extractor({"venues": [BOL]}))

        enricher.process_resort(resort)

        assert places.link.call_args.args[1] == "v1"
        entry = places.log_enrichment.call_args.args[0]
        assert entry["venues_added"] == 0
        assert entry["venues_updated"] == 1

    def test_far_place_is_stored_but_not_linked(self, places, resort):
        extractor = _extractor({"shops": [AVON_SHOP]})
        enricher = _enricher(places, FakeStore(), extractor, SKI_SHOP_SEARCH, radius_miles=5)

        enricher.process_resort(resort)

        places.upsert_place.assert_called_once()
        places.link.assert_not_called()
        assert places.log_enrichment.call_args.args[0]["status"] == "partial"

    def test_shop_on_mountain_flag_comes_from_distance(self, places, resort):
        shop = dict(AVON_SHOP, is_on_mountain=True)
        enricher = _enricher(places, FakeStore(), _extractor({"shops": [shop]}), SKI_SHOP_SEARCH)

        enricher.process_resort(resort)

        distance = places.link.call_args.args[2]
        assert 7 < distance < 9
        assert places.link.call_args.args[4] is False

    def test_dining_trusts_model_on_mountain_flag(self, places, resort):
        lodge = dict(
            BOL, name="Two Elk", latitude=39.6092, longitude=-106.3565, is_on_mountain=True
        )
        enricher = _enricher(places, FakeStore(), _extractor({"venues": [lodge]}))

        enricher.process_resort(resort)

        assert places.link.call_args.args[2] > 1
        assert places.link.call_args.args[4] is True

    def test_duplicate_in_response_is_stored_once(self, places, resort):
        enricher = _enricher(places, FakeStore(), _extractor({"venues": [BOL, BOL]}))

        enricher.process_resort(resort)

        assert places.upsert_place.call_count == 1
        assert places.link.call_count == 1

    def test_no_results(self, places, resort):
        enricher = _enricher(places, FakeStore(), _extractor({"venues": []}))

        enricher.process_resort(resort)

        places.upsert_place.assert_not_called()
        assert places.log_enrichment.call_args.args[0]["status"] == "no_results"
        assert enricher.stats["no_results"] == 1

    def test_model_failure_is_logged_and_raised(self, places, resort):
        enricher = _enricher(
            places, FakeStore(), _extractor(error=TransformError("No content in model response"))
        )

        with pytest.raises(TransformError):
            enricher.process_resort(resort)

        entry = places.log_enrichment.call_args.args[0]
        assert entry["status"] == "failed"
        assert entry["error_message"] == "No content in model response"

    def test_resort_without_coordinates_is_skipped(self, places):
        extractor = _extractor({"venues": [BOL]})
        enricher = _enricher(places, FakeStore(), extractor)

        enricher.process_resort(make_resort("nowhere", lat=None, lon=None))

        extractor.complete_json.assert_not_called()
        assert enricher.stats["skipped"] == 1

    def test_storage_failure_does_not_stop_linking(self, places, resort):
        store = Mock()
        store.put_json.side_effect = StorageError("bucket unavailable")

        _enricher(places, store, _extractor({"venues": [BOL]})).process_resort(resort)

        places.link.assert_called_once()

    def test_run_counts_failures(self, places, resort):
        enricher = _enricher(places, FakeStore(), _extractor(error=TransformError("bad json")))

        stats = enricher.run([resort, make_resort("alta", lat=40.58, lon=-111.63)])

        assert stats["total"] == 2
        assert stats["errors"] == 2


class TestSelectResorts:
    def test_by_slug_and_state(self):
        resorts = [
            make_resort("vail"),
            make_resort("alta", state_slug="utah", state_name="Utah"),
            make_resort("snowbird", state_slug="utah", state_name="Utah"),
        ]

        assert [r.slug for r in select_resorts(resorts, slug="alta")] == ["alta"]
        assert [r.slug for r in select_resorts(resorts, state="Utah")] == ["alta", "snowbird"]
        assert [r.slug for r in select_resorts(resorts, state="utah", limit=1)] == ["alta"]
        assert [r.slug for r in select_resorts(resorts, pattern="bird")] == ["snowbird"]


class TestMain:
    @pytest.fixture(autouse=True)
    def _env(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("DRY_RUN", raising=False)
        with (
            patch("utils.cli.load_dotenv"),
            patch("handlers.places_enricher.create_supabase_client"),
        ):
            yield

    def test_status_needs_no_openai_key(self, capsys):
        with patch("handlers.places_enricher.PlaceRepository") as repo_cls:
            repo_cls.return_value.kind = SKI_SHOP_SEARCH.kind
            repo_cls.return_value.get_stats.return_value = {"shops": 4}

            assert ski_shop_main(["--status"]) == 0

        assert "Shops:" in capsys.readouterr().out

    def test_enrich_requires_openai_key(self):
        assert dining_main(["--resort", "vail"]) == 1

    def test_dry_run_flag_reaches_repositories(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        with (
            patch("handlers.places_enricher.PlaceRepository") as repo_cls,
            patch("handlers.places_enricher.ResortRepository") as resorts_cls,
            patch("handlers.places_enricher.create_s3_client"),
            patch("handlers.places_enricher.create_openai_client"),
            patch("handlers.places_enricher.PlaceEnricher") as enricher_cls,
        ):
            resorts_cls.return_value.list_resorts.return_value = [make_resort("vail")]
            enricher_cls.return_value.run.return_value = {"total": 1, "errors": 0}

            assert dining_main(["--dry-run", "--resort", "vail", "-r", "10"]) == 0

        assert repo_cls.call_args.kwargs["dry_run"] is True
        assert enricher_cls.call_args.kwargs["radius_miles"] == 10
        assert enricher_cls.call_args.kwargs["max_places"] == 15
        resorts_cls.return_value.list_resorts.assert_called_once_with(
            active_only=True, with_coordinates=True
        )
