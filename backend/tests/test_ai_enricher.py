"""Tests for the AI enricher updater."""

from datetime import UTC, datetime
from unittest.mock import Mock, patch

import pytest

from conftest import FakeStore, make_resort
from handlers.ai_enricher import ENRICHMENT_FILE, AIEnricher, main, select_candidates
from models.enrichment import EnrichmentResult, TokenUsage
from services.cost_tracker import CostTracker
from services.llm_service import LLMExtractor

PREFIX = "resorts/us/colorado/vail"
OUTPUT_KEY = f"{PREFIX}/{ENRICHMENT_FILE}"

RESULT = EnrichmentResult.model_validate(
    {
        "content": {
            "tagline": {"value": "Legendary back bowls", "confidence": 0.92},
            "description": {"value": "Vail is vast.", "confidence": 0.5},
        },
        "terrain": {"expert": {"value": 35, "confidence": 0.8}},
    }
)


@pytest.fixture
def extractor():
    mock = Mock(spec=LLMExtractor)
    mock.model = "gpt-4o"
    mock.enrich.return_value = (RESULT, TokenUsage(prompt_tokens=3000, completion_tokens=500))
    return mock


@pytest.fixture
def tracker():
    return CostTracker("gpt-4o", clock=lambda: datetime(2026, 1, 15, tzinfo=UTC))


@pytest.fixture
def source_store():
    return FakeStore({f"{PREFIX}/wiki-data.json": {"title": "Vail Ski Resort"}})


def _enricher(repository, store, extractor, tracker, **kwargs):
    return AIEnricher(repository, store, extractor, tracker, **kwargs)


class TestProcessResort:
    def test_writes_enrichment_and_updates_resort(
        self, repository, source_store, extractor, tracker
    ):
        enricher = _enricher(repository, source_store, extractor, tracker)
        enricher.process_resort(make_resort("vail"))

        output = source_store.objects[OUTPUT_KEY]
        assert output["slug"] == "vail"
        assert output["assetPath"] == "us/colorado/vail"
        assert output["enrichment"]["content"]["tagline"]["value"] == "Legendary back bowls"
        assert output["metadata"]["promptTokens"] == 3000
        assert output["metadata"]["estimatedCost"] == pytest.approx(0.0125)
        assert output["metadata"]["minConfidenceThreshold"] == 0.7
        assert output["inputDataQuality"]["has_wikipedia"] is True

        updates = repository.update_resort.call_args.args[1]
        assert updates == {"tagline": "Legendary back bowls", "terrain": {"expert": 35}}
        assert enricher.stats["fields_updated"] == 2
        assert tracker.resort_count == 1

    def test_min_confidence_is_configurable(self, repository, source_store, extractor, tracker):
        enricher = _enricher(repository, source_store, extractor, tracker, min_confidence=0.4)
        enricher.process_resort(make_resort("vail"))
        assert "description" in repository.update_resort.call_args.args[1]

    def test_skip_existing_enrichment(self, repository, source_store, extractor, tracker):
        source_store.objects[OUTPUT_KEY] = {"slug": "vail"}
        enricher = _enricher(repository, source_store, extractor, tracker, skip_existing=True)

        enricher.process_resort(make_resort("vail"))

        extractor.enrich.assert_not_called()
        assert enricher.stats["skipped"] == 1

    def test_existing_file_kept_without_overwrite(
        self, repository, source_store, extractor, tracker
    ):
        source_store.objects[OUTPUT_KEY] = {"slug": "vail", "old": True}
        enricher = _enricher(repository, source_store, extractor, tracker)

        enricher.process_resort(make_resort("vail"))

        assert source_store.objects[OUTPUT_KEY] == {"slug": "vail", "old": True}
        repository.update_resort.assert_called_once()

    def test_overwrite_replaces_file(self, repository, source_store, extractor, tracker):
        source_store.objects[OUTPUT_KEY] = {"slug": "vail", "old": True}
        enricher = _enricher(repository, source_store, extractor, tracker, overwrite=True)

        enricher.process_resort(make_resort("vail"))

        assert "old" not in source_store.objects[OUTPUT_KEY]

    def test_no_wikipedia_data(self, repository, extractor, tracker):
        enricher = _enricher(repository, FakeStore(), extractor, tracker)
        enricher.process_resort(make_resort("vail"))

        extractor.enrich.assert_not_called()
        assert enricher.stats["no_wiki_data"] == 1


class TestCostReport:
    def test_saved_after_run(self, repository, source_store, extractor, tracker):
        enricher = _enricher(repository, source_store, extractor, tracker)
        enricher.run([make_resort("vail")])

        report = source_store.objects[tracker.report_key()]
        assert report["totals"]["resort_count"] == 1
        assert report["model"] == "gpt-4o"

    def test_not_saved_in_dry_run(self, repository, extractor, tracker):
        repository.dry_run = True
        store = FakeStore(
            {f"{PREFIX}/wiki-data.json": {"title": "Vail Ski Resort"}}, dry_run=True
        )
        enricher = _enricher(repository, store, extractor, tracker)

        enricher.run([make_resort("vail")])

        assert tracker.report_key() not in store.writes
        assert tracker.resort_count == 1


class TestSelectCandidates:
    def test_joins_paths_to_resorts(self):
        resorts = [make_resort("vail"), make_resort("alta", state_slug="utah")]
        selected = select_candidates(
            ["us/utah/alta", "us/colorado/vail", "us/colorado/unknown"], resorts, None
        )
        assert [r.slug for r in selected] == ["alta", "vail"]

    def test_filter_and_window_applied_to_paths(self):
        resorts = [make_resort(slug) for slug in ("vail", "vail-pass", "beaver-creek")]
        paths = [f"us/colorado/{r.slug}" for r in resorts]

        assert [r.slug for r in select_candidates(paths, resorts, "vail")] == [
            "vail",
            "vail-pass",
        ]
        assert [r.slug for r in select_candidates(paths, resorts, None, skip=1, limit=1)] == [
            "vail-pass"
        ]

    def test_asset_path_column_is_used(self):
        resort = make_resort("alta", asset_path="us/utah/alta-ski-area")
        assert select_candidates(["us/utah/alta-ski-area"], [resort], None) == [resort]


class TestMainDryRun:
    @pytest.fixture(autouse=True)
    def _env(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.delenv("DRY_RUN", raising=False)
        with patch("utils.cli.load_dotenv"), patch("handlers.ai_enricher.create_s3_client"):
            yield

    def _store_dry_run(self, argv):
        with patch("handlers.ai_enricher.AssetStore") as store_cls:
            store_cls.return_value.list_asset_paths.return_value = []
            assert main([*argv, "--list"]) == 0
        return store_cls.call_args.kwargs["dry_run"]

    def test_dry_run_without_apply(self):
        assert self._store_dry_run([]) is True

    def test_apply_writes(self):
        assert self._store_dry_run(["--apply"]) is False

    def test_environment_dry_run_survives_apply(self, monkeypatch):
        monkeypatch.setenv("DRY_RUN", "true")
        assert self._store_dry_run(["--apply"]) is True

    def test_dry_run_flag_beats_apply(self):
        assert self._store_dry_run(["--apply", "--dry-run"]) is True
