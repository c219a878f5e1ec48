"""Unit tests for API handler routes.

Routes are exercised through a TestClient with the service layer mocked,
focusing on authentication, envelopes, status codes and cache headers.
"""

from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import make_resort
from services.database_service import PlaceRepository
from services.resort_service import (
    CreateFailed,
    ResortNotFound,
    ResortService,
    ValidationFailed,
)
from utils.cache import clear_all_caches

ADMIN_KEY = "test-admin-key"
AUTH = {"Authorization": f"Bearer {ADMIN_KEY}"}

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear all API caches before and after each test."""
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.setenv("ADMIN_API_KEY", ADMIN_KEY)
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role")


@pytest.fixture()
def client():
    """Create a FastAPI TestClient with services reset."""
    from handlers.api_handler import app, reset_services

    reset_services()
    return TestClient(app)


@pytest.fixture()
def service():
    mock = Mock(spec=ResortService)
    with patch("handlers.api_handler.get_resort_service", return_value=mock):
        yield mock


@pytest.fixture()
def places():
    mock = Mock(spec=PlaceRepository)
    mock.list_for_resort.return_value = []
    with patch("handlers.api_handler.get_place_repository", return_value=mock):
        yield mock


# ===========================================================================
# Health Check
# ===========================================================================


class TestHealthCheck:
    def test_health_returns_200(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"


# ===========================================================================
# Authentication
# ===========================================================================


class TestAdminAuth:
    """Admin routes accept only the configured bearer token."""

    def test_missing_header_is_401(self, client, service):
        resp = client.get("/api/admin/resorts")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHORIZED"
        service.list_resorts.assert_not_called()

    def test_non_bearer_scheme_is_401(self, client, service):
        resp = client.get("/api/admin/resorts", headers={"Authorization": f"Basic {ADMIN_KEY}"})
        assert resp.status_code == 401

    def test_wrong_token_is_403(self, client, service):
        resp = client.get("/api/admin/resorts", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 403
        assert resp.json() == {"error": {"code": "FORBIDDEN", "message": "Invalid admin API key"}}

    def test_unconfigured_key_is_403(self, client, service, monkeypatch):
        monkeypatch.delenv("ADMIN_API_KEY")
        monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY")
        resp = client.get("/api/admin/resorts", headers=AUTH)
        assert resp.status_code == 403
        assert resp.json()["error"]["message"] == "Admin API key not configured"

    def test_service_role_key_is_accepted(self, client, service, monkeypatch):
        monkeypatch.delenv("ADMIN_API_KEY")
        service.list_resorts.return_value = []
        resp = client.get(
            "/api/admin/resorts", headers={"Authorization": "Bearer service-role"}
        )
        assert resp.status_code == 200


# ===========================================================================
# Admin Resort Endpoints
# ===========================================================================


class TestAdminResorts:
    def test_list(self, client, service):
        service.list_resorts.return_value = [make_resort("vail"), make_resort("alta", is_lost=True)]

        resp = client.get("/api/admin/resorts", headers=AUTH)

        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "private, no-cache"
        data = resp.json()["data"]
        assert [r["slug"] for r in data] == ["vail", "alta"]
        assert data[1]["display_status"] == "lost"

    def test_get_not_found(self, client, service):
        service.get_resort.side_effect = ResortNotFound('Resort with ID "resort:x" not found')

        resp = client.get("/api/admin/resorts/resort:x", headers=AUTH)

        assert resp.status_code == 404
        assert resp.json() == {
            "error": {"code": "NOT_FOUND", "message": 'Resort with ID "resort:x" not found'}
        }

    def test_create_returns_201(self, client, service):
        service.create_resort.return_value = make_resort("new-peak")
        payload = {"slug": "new-peak", "name": "New Peak", "countryCode": "us", "stateSlug": "vt"}

        resp = client.post("/api/admin/resorts", json=payload, headers=AUTH)

        assert resp.status_code == 201
        assert resp.json()["data"]["slug"] == "new-peak"
        service.create_resort.assert_called_once_with(payload)

    def test_create_validation_error(self, client, service):
        service.create_resort.side_effect = ValidationFailed("Missing required fields: slug")
        resp = client.post("/api/admin/resorts", json={"name": "X"}, headers=AUTH)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_create_duplicate(self, client, service):
        service.create_resort.side_effect = CreateFailed('Resort with slug "vail" already exists')
        resp = client.post("/api/admin/resorts", json={"slug": "vail"}, headers=AUTH)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "CREATE_FAILED"

    def test_non_object_body(self, client, service):
        resp = client.post("/api/admin/resorts", json=["not", "an", "object"], headers=AUTH)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
        service.create_resort.assert_not_called()

    @pytest.mark.parametrize("method", ["put", "patch"])
    def test_update(self, client, service, method):
        service.update_resort.return_value = make_resort("vail", tagline="Legendary")

        resp = getattr(client, method)(
            "/api/admin/resorts/resort:vail", json={"tagline": "Legendary"}, headers=AUTH
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["tagline"] == "Legendary"
        service.update_resort.assert_called_once_with("resort:vail", {"tagline": "Legendary"})

    def test_soft_delete(self, client, service):
        resp = client.delete("/api/admin/resorts/resort:vail", headers=AUTH)
        assert resp.status_code == 204
        assert resp.content == b""
        service.delete_resort.assert_called_once_with("resort:vail", hard=False)

    def test_hard_delete(self, client, service):
        resp = client.delete("/api/admin/resorts/resort:vail?hard=true", headers=AUTH)
        assert resp.status_code == 204
        service.delete_resort.assert_called_once_with("resort:vail", hard=True)

    def test_delete_unknown(self, client, service):
        service.delete_resort.side_effect = ResortNotFound('Resort with ID "resort:x" not found')
        resp = client.delete("/api/admin/resorts/resort:x", headers=AUTH)
        assert resp.status_code == 404

    def test_unexpected_error_is_500(self, client, service):
        service.list_resorts.side_effect = RuntimeError("connection reset")

        resp = client.get("/api/admin/resorts", headers=AUTH)

        assert resp.status_code == 500
        assert resp.json() == {
            "error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}
        }


# ===========================================================================
# Admin Conditions Endpoints
# ===========================================================================


class TestAdminConditions:
    def test_get_empty(self, client, service):
        service.get_conditions.return_value = None
        resp = client.get("/api/admin/conditions/resort:vail", headers=AUTH)
        assert resp.status_code == 200
        assert resp.json() == {"data": {}}

    @pytest.mark.parametrize("method", ["post", "put"])
    def test_update(self, client, service, method):
        service.update_conditions.return_value = {"resort_id": "resort:vail", "lifts_open": 5}

        resp = getattr(client, method)(
            "/api/admin/conditions/resort:vail", json={"liftsOpen": 5}, headers=AUTH
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["lifts_open"] == 5
        service.update_conditions.assert_called_once_with("resort:vail", {"liftsOpen": 5})


# ===========================================================================
# Public Endpoints
# ===========================================================================


class TestPublicEndpoints:
    def test_related_resorts(self, client, service):
        service.get_related_resorts.return_value = {
            "resort_slug": "vail",
            "nearby_resorts": [],
            "state_resorts": [],
        }

        resp = client.get("/api/resorts/vail/related")

        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "public, max-age=3600"
        assert resp.json()["resort_slug"] == "vail"

    def test_related_resorts_are_cached(self, client, service):
        service.get_related_resorts.return_value = {
            "resort_slug": "vail",
            "nearby_resorts": [],
            "state_resorts": [],
        }

        client.get("/api/resorts/vail/related")
        client.get("/api/resorts/vail/related")

        service.get_related_resorts.assert_called_once_with("vail")

    def test_related_unknown_resort(self, client, service):
        service.get_related_resorts.side_effect = ResortNotFound('Resort "nowhere" not found')
        resp = client.get("/api/resorts/nowhere/related")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    def test_conditions(self, client, service):
        service.get_conditions_by_slug.return_value = {"resort_id": "resort:vail", "lifts_open": 5}

        resp = client.get("/api/resorts/vail/conditions")

        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "public, max-age=300"
        assert resp.json() == {"conditions": {"resort_id": "resort:vail", "lifts_open": 5}}

    def test_conditions_none(self, client, service):
        service.get_conditions_by_slug.return_value = None
        resp = client.get("/api/resorts/vail/conditions")
        assert resp.json() == {"conditions": None}

    def test_public_routes_need_no_auth(self, client, service):
        service.get_conditions_by_slug.return_value = None
        assert client.get("/api/resorts/vail/conditions").status_code == 200


class TestPlaceEndpoints:
    def test_dining_defaults(self, client, places):
        places.list_for_resort.return_value = [
            {"name": "Bol", "distance_miles": 0.3, "is_on_mountain": False},
            {"name": "Two Elk", "distance_miles": 2.4, "is_on_mountain": True},
        ]

        resp = client.get("/api/resorts/vail/dining")

        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "public, max-age=3600"
        body = resp.json()
        assert body["resort_slug"] == "vail"
        assert (body["count"], body["offset"], body["limit"]) == (2, 0, 30)
        assert [v["proximity_label"] for v in body["venues"]] == ["At Base", "On Mountain"]
        places.list_for_resort.assert_called_once_with(
            "vail",
            30,
            30,
            offset=0,
            contains={},
            equals={},
            order=("distance_miles", False),
        )

    def test_dining_filters_and_sort(self, client, places):
        resp = client.get(
            "/api/resorts/vail/dining",
            params={
                "maxDistance": 5,
                "limit": 500,
                "offset": 10,
                "venue_type": "bar",
                "cuisine_type": "mexican",
                "price_range": "$$",
                "is_on_mountain": "true",
                "is_ski_in_ski_out": "false",
                "sort": "price_desc",
            },
        )

        assert resp.status_code == 200
        assert resp.json()["limit"] == 100
        places.list_for_resort.assert_called_once_with(
            "vail",
            5,
            100,
            offset=10,
            contains={"venue_type": ["bar"], "cuisine_type": ["mexican"]},
            equals={"price_range": "$$", "is_on_mountain": True},
            order=("price_range", True),
        )

    def test_unknown_sort_falls_back_to_distance(self, client, places):
        client.get("/api/resorts/vail/dining?sort=rating")
        assert places.list_for_resort.call_args.kwargs["order"] == ("distance_miles", False)

    def test_bad_query_parameter(self, client, places):
        resp = client.get("/api/resorts/vail/dining?maxDistance=far")
        assert resp.status_code == 400
        assert resp.json()["error"] == {
            "code": "VALIDATION_ERROR",
            "message": "Invalid query parameters",
        }
        places.list_for_resort.assert_not_called()

    def test_ski_shops(self, client, places):
        places.list_for_resort.return_value = [
            {"name": "Christy Sports", "distance_miles": 0.8, "is_on_mountain": False}
        ]

        resp = client.get("/api/resorts/vail/ski-shops?types=rental,%20repair&maxDistance=10")

        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        assert body["shops"][0]["proximity_label"] == "Walking Distance"
        places.list_for_resort.assert_called_once_with(
            "vail", 10, 20, overlaps={"shop_type": ["rental", "repair"]}
        )

    def test_ski_shops_without_types(self, client, places):
        client.get("/api/resorts/vail/ski-shops")
        assert places.list_for_resort.call_args.kwargs == {"overlaps": None}

    def test_database_failure_is_500(self, client, places):
        places.list_for_resort.side_effect = RuntimeError("connection reset")
        resp = client.get("/api/resorts/vail/ski-shops")
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "INTERNAL_ERROR"


class TestServe:
    def test_main_uses_configured_port(self, monkeypatch):
        from handlers import api_handler

        monkeypatch.setenv("PORT", "9100")
        api_handler.reset_services()
        with patch("uvicorn.run") as run:
            api_handler.main()

        assert run.call_args.kwargs == {"host": "0.0.0.0", "port": 9100}
