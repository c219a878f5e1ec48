"""Tests for the Liftie sync updater."""

from unittest.mock import Mock, patch

import pytest

from conftest import make_query, make_resort
from handlers.liftie_sync import LiftieSync, main
from models.liftie import LiftieSnapshot
from services.liftie_service import LiftieService, map_liftie_to_conditions

SNAPSHOT = LiftieSnapshot.model_validate(
    {
        "summary": {
            "id": "vail",
            "hasLifts": True,
            "hasWeather": False,
            "liftStats": {"open": 2, "closed": 1, "percentage": {"open": 66.7, "closed": 33.3}},
        },
        "lifts": {"status": {"Gondola One": "open", "Chair 2": "open", "Chair 3": "closed"}},
    }
)


@pytest.fixture
def liftie():
    client = Mock(spec=LiftieService)
    client.get_resort.return_value = SNAPSHOT
    return client


class TestProcessResort:
    def test_new_conditions_are_upserted(self, repository, liftie):
        sync = LiftieSync(repository, liftie=liftie)
        sync.process_resort(make_resort("vail"))

        record = repository.upsert_conditions.call_args.args[0]
        assert record["resort_id"] == "resort:vail"
        assert record["lifts_open"] == 2
        assert record["lifts_total"] == 3
        assert sync.stats["updated"] == 1

    def test_second_run_is_a_no_op(self, repository, liftie):
        stored = map_liftie_to_conditions("resort:vail", SNAPSHOT).model_dump(mode="json")
        repository.get_conditions.return_value = stored

        sync = LiftieSync(repository, liftie=liftie)
        sync.process_resort(make_resort("vail"))

        repository.upsert_conditions.assert_not_called()
        assert sync.stats["skipped"] == 1
        assert sync.stats["updated"] == 0

    def test_keeps_forecast_weather_flag(self, repository, liftie):
        stored = map_liftie_to_conditions("resort:vail", SNAPSHOT).model_dump(mode="json")
        stored.update(has_weather=True, weather_source="open-meteo", current_temp=20.0)
        repository.get_conditions.return_value = stored

        sync = LiftieSync(repository, liftie=liftie)
        sync.process_resort(make_resort("vail"))

        repository.upsert_conditions.assert_not_called()
        assert sync.stats["skipped"] == 1

    def test_stale_row_is_deleted(self, repository, liftie):
        liftie.get_resort.return_value = None
        repository.get_conditions.return_value = {"resort_id": "resort:vail", "lifts_open": 2}

        sync = LiftieSync(repository, liftie=liftie)
        sync.process_resort(make_resort("vail"))

        repository.delete_conditions.assert_called_once_with("resort:vail")
        assert sync.stats["removed"] == 1
        assert sync.stats["no_liftie_data"] == 1

    def test_stale_liftie_columns_cleared_when_forecast_exists(self, repository, liftie):
        liftie.get_resort.return_value = None
        stored = map_liftie_to_conditions("resort:vail", SNAPSHOT).model_dump(mode="json")
        stored.update(has_weather=True, weather_source="open-meteo")
        repository.get_conditions.return_value = stored

        sync = LiftieSync(repository, liftie=liftie)
        sync.process_resort(make_resort("vail"))

        repository.delete_conditions.assert_not_called()
        record = repository.upsert_conditions.call_args.args[0]
        assert record["lifts_total"] == 0
        assert record["lifts_status"] == {}
        assert record["has_weather"] is True
        assert sync.stats["removed"] == 1

    def test_no_data_and_no_row(self, repository, liftie):
        liftie.get_resort.return_value = LiftieSnapshot()

        sync = LiftieSync(repository, liftie=liftie)
        sync.process_resort(make_resort("vail"))

        repository.delete_conditions.assert_not_called()
        repository.upsert_conditions.assert_not_called()
        assert sync.stats["removed"] == 0
        assert sync.stats["skipped"] == 1

    def test_requires_a_source(self, repository):
        with pytest.raises(ValueError):
            LiftieSync(repository)


class TestRun:
    def test_errors_are_contained(self, repository, liftie):
        liftie.get_resort.side_effect = [RuntimeError("boom"), SNAPSHOT]

        sync = LiftieSync(repository, liftie=liftie)
        stats = sync.run([make_resort("alta"), make_resort("vail")])

        assert stats["total"] == 2
        assert stats["errors"] == 1
        assert stats["updated"] == 1


ENV = {
    "SUPABASE_URL": "https://example.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "service-role",
}


def resort_rows(*slugs):
    return [
        {
            "id": f"resort:{slug}",
            "slug": slug,
            "name": slug.title(),
            "country_code": "us",
            "state_slug": "colorado",
        }
        for slug in slugs
    ]


class TestMain:
    @pytest.fixture(autouse=True)
    def _env(self, monkeypatch):
        for name in ("DRY_RUN", "FILTER", "VERBOSE", "NEXT_PUBLIC_SUPABASE_URL"):
            monkeypatch.delenv(name, raising=False)
        for name, value in ENV.items():
            monkeypatch.setenv(name, value)
        with patch("utils.cli.load_dotenv"):
            yield

    @pytest.fixture
    def tables(self):
        return {
            "resorts": make_query(resort_rows("alta", "vail", "vail-pass")),
            "resort_conditions": make_query(),
        }

    @pytest.fixture
    def client(self, tables):
        client = Mock()
        client.table.side_effect = tables.__getitem__
        with patch("handlers.liftie_sync.create_supabase_client", return_value=client):
            yield client

    def test_filter_limits_fetches(self, client):
        with patch("handlers.liftie_sync.LiftieService") as service_cls:
            service_cls.return_value.get_resort.return_value = None
            assert main(["--live", "--filter", "vail", "--dry-run"]) == 0

        fetched = [c.args[0] for c in service_cls.return_value.get_resort.call_args_list]
        assert fetched == ["vail", "vail-pass"]

    def test_dry_run_writes_nothing(self, client, tables, capsys):
        with patch("handlers.liftie_sync.LiftieService") as service_cls:
            service_cls.return_value.get_resort.return_value = SNAPSHOT
            assert main(["--live", "--dry-run"]) == 0

        tables["resort_conditions"].upsert.assert_not_called()
        tables["resort_conditions"].delete.assert_not_called()
        out = capsys.readouterr().out
        assert "[DRY RUN] Would upsert conditions for resort resort:vail" in out
        assert "Updated:" in out

    def test_missing_configuration_exits_1(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL")
        assert main(["--live"]) == 1
