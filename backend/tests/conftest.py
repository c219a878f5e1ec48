"""Pytest configuration and shared fixtures."""

import json
from unittest.mock import MagicMock, Mock

import pytest

from models.resort import Resort
from services.database_service import ResortRepository


def make_resort(slug="vail", name=None, lat=39.6403, lon=-106.3742, **overrides) -> Resort:
    """Build a Resort with sensible defaults."""
    data = {
        "id": f"resort:{slug}",
        "slug": slug,
        "name": name or slug.replace("-", " ").title(),
        "country_code": "us",
        "state_slug": "colorado",
        "latitude": lat,
        "longitude": lon,
    }
    data.update(overrides)
    return Resort(**data)


@pytest.fixture
def sample_resort():
    """Vail, with a summit elevation and no content yet."""
    return make_resort(
        "vail",
        name="Vail",
        state_name="Colorado",
        nearest_city="Vail",
        stats={"summitElevation": 11570, "liftsCount": 31},
    )


@pytest.fixture
def repository():
    """Mock repository that is not in dry-run mode."""
    repo = Mock(spec=ResortRepository)
    repo.dry_run = False
    repo.get_conditions.return_value = None
    return repo


class FakeStore:
    """In-memory stand-in for AssetStore keyed by object key."""

    def __init__(self, objects=None, dry_run=False):
        self.objects = dict(objects or {})
        self.dry_run = dry_run
        self.writes = []

    def exists(self, key):
        return key in self.objects

    def get_json(self, key):
        value = self.objects.get(key)
        if value is None:
            return None
        return json.loads(value) if isinstance(value, str) else value

    def put_bytes(self, key, body, content_type, cache_control=None):
        self.writes.append(key)
        if not self.dry_run:
            self.objects[key] = body

    def put_text(self, key, text, content_type="text/plain"):
        self.put_bytes(key, text, content_type)

    def put_json(self, key, data, cache_control=None):
        self.put_bytes(key, data, "application/json", cache_control)


@pytest.fixture
def store():
    return FakeStore()


def make_query(data=None) -> MagicMock:
    """Query builder mock whose chained calls all end in ``execute``."""
    query = MagicMock()
    for method in (
        "select",
        "eq",
        "ilike",
        "lte",
        "contains",
        "ov",
        "limit",
        "order",
        "range",
        "insert",
        "update",
        "upsert",
        "delete",
    ):
        getattr(query, method).return_value = query
    query.not_.is_.return_value = query
    query.execute.return_value = MagicMock(data=data or [])
    return query


@pytest.fixture
def supabase_client():
    """MagicMock Supabase client; every table shares one query mock."""
    client = MagicMock()
    client.table.return_value = make_query()
    return client
