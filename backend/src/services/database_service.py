"""Relational store access (Supabase/Postgres) for resorts and conditions."""

import logging
from datetime import UTC, datetime
from typing import Any

from postgrest.exceptions import APIError
from supabase import Client, create_client

from models.places import Place, PlaceKind
from models.resort import Resort
from utils.config import Settings

logger = logging.getLogger(__name__)

RESORTS_TABLE = "resorts"
CONDITIONS_TABLE = "resort_conditions"

RESORT_COLUMNS = (
    "id, slug, name, country_code, state_slug, latitude, longitude, status, "
    "is_active, is_lost, is_open, is_visible, nearest_city, website_url, "
    "description, tagline, stats, terrain, features, asset_path"
)


class DatabaseError(Exception):
    """Raised when a database read or write fails."""


def create_supabase_client(settings: Settings) -> Client:
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class BaseRepository:
    """Shared client handling for the table repositories.

    With ``dry_run`` set, write methods print the operation they would
    have performed and never call the client.
    """

    def __init__(self, client: Client, dry_run: bool = False):
        self.client = client
        self.dry_run = dry_run

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except APIError as e:
            raise DatabaseError(f"Failed to {action}: {e.message}") from e


class ResortRepository(BaseRepository):
    """Reads and writes the resorts and resort_conditions tables."""

    # MARK: - Resorts

    def list_resorts(
        self,
        active_only: bool = False,
        with_coordinates: bool = False,
        columns: str = RESORT_COLUMNS,
    ) -> list[Resort]:
        """All resorts ordered by name."""
        query = self.client.table(RESORTS_TABLE).select(columns)
        if active_only:
            query = query.eq("is_active", True)
        if with_coordinates:
            query = query.not_.is_("latitude", "null").not_.is_("longitude", "null")
        result = self._execute(query.order("name"), "fetch resorts")
        resorts = [Resort.from_row(row) for row in result.data or []]
        logger.info(f"Fetched {len(resorts)} resorts")
        return resorts

    def get_resort_by_slug(self, slug: str) -> Resort | None:
        result = self._execute(
            self.client.table(RESORTS_TABLE).select("*").eq("slug", slug).limit(1),
            "fetch resort",
        )
        return Resort.from_row(result.data[0]) if result.data else None

    def get_resort_by_id(self, resort_id: str) -> Resort | None:
        result = self._execute(
            self.client.table(RESORTS_TABLE).select("*").eq("id", resort_id).limit(1),
            "fetch resort",
        )
        return Resort.from_row(result.data[0]) if result.data else None

    def insert_resort(self, row: dict[str, Any]) -> dict[str, Any]:
        if self.dry_run:
            print(f"  [DRY RUN] Would insert resort {row.get('slug')}")
            return row
        result = self._execute(self.client.table(RESORTS_TABLE).insert(row), "create resort")
        return result.data[0] if result.data else row

    def update_resort(self, resort_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        """Update columns of one resort; returns the updated row."""
        if not updates:
            return None
        payload = {**updates, "updated_at": _now()}
        if self.dry_run:
            print(f"  [DRY RUN] Would update {resort_id}: {', '.join(sorted(updates))}")
            return None
        result = self._execute(
            self.client.table(RESORTS_TABLE).update(payload).eq("id", resort_id),
            "update resort",
        )
        return result.data[0] if result.data else None

    def set_resort_active(self, resort_id: str, is_active: bool) -> None:
        self.update_resort(resort_id, {"is_active": is_active})

    def delete_resort(self, resort_id: str) -> None:
        if self.dry_run:
            print(f"  [DRY RUN] Would delete resort {resort_id}")
            return
        self._execute(
            self.client.table(RESORTS_TABLE).delete().eq("id", resort_id), "delete resort"
        )

    # MARK: - Conditions

    def get_conditions(self, resort_id: str) -> dict[str, Any] | None:
        result = self._execute(
            self.client.table(CONDITIONS_TABLE).select("*").eq("resort_id", resort_id).limit(1),
            "fetch existing conditions",
        )
        return result.data[0] if result.data else None

    def upsert_conditions(self, record: dict[str, Any]) -> None:
        """Insert or replace the conditions columns for one resort."""
        if self.dry_run:
            print(f"  [DRY RUN] Would upsert conditions for resort {record['resort_id']}")
            return
        self._execute(
            self.client.table(CONDITIONS_TABLE).upsert(record, on_conflict="resort_id"),
            "upsert conditions",
        )

    def delete_conditions(self, resort_id: str) -> None:
        if self.dry_run:
            print(f"  [DRY RUN] Would delete conditions for resort {resort_id}")
            return
        self._execute(
            self.client.table(CONDITIONS_TABLE).delete().eq("resort_id", resort_id),
            "delete conditions",
        )


class PlaceRepository(BaseRepository):
    """Reads and writes one kind of nearby place and its resort links."""

    def __init__(self, client: Client, kind: PlaceKind, dry_run: bool = False):
        super().__init__(client, dry_run)
        self.kind = kind

    def find_by_slug(self, slug: str) -> dict[str, Any] | None:
        result = self._execute(
            self.client.table(self.kind.table).select("id, slug").eq("slug", slug).limit(1),
            f"look up {self.kind.noun}",
        )
        return result.data[0] if result.data else None

    def find_by_name_and_city(self, name: str, city: str, state: str) -> dict[str, Any] | None:
        """Case-insensitive match on name and city within a state."""
        query = (
            self.client.table(self.kind.table)
            .select("id, slug")
            .ilike("name", name)
            .ilike("city", city)
            .eq("state", state)
            .limit(1)
        )
        result = self._execute(query, f"look up {self.kind.noun}")
        return result.data[0] if result.data else None

    def upsert_place(self, place: Place) -> str | None:
        """Insert or refresh a place keyed by slug; returns its id."""
        now = _now()
        row = {**place.to_row(), "updated_at": now, "last_enriched_at": now}
        if self.dry_run:
            print(f"  [DRY RUN] Would upsert {self.kind.table} {place.slug}")
            return place.id
        result = self._execute(
            self.client.table(self.kind.table).upsert(row, on_conflict="slug"),
            f"upsert {place.slug}",
        )
        return result.data[0]["id"] if result.data else place.id

    def link(
        self,
        resort_id: str,
        place_id: str | None,
        distance_miles: float,
        drive_time_minutes: int,
        on_mountain: bool,
    ) -> None:
        if self.dry_run:
            print(f"  [DRY RUN] Would link {resort_id} to {place_id or 'new place'}")
            return
        row = {
            "resort_id": resort_id,
            self.kind.link_column: place_id,
            "distance_miles": round(distance_miles, 2),
            "drive_time_minutes": drive_time_minutes,
            "is_on_mountain": on_mountain,
            "is_preferred": False,
        }
        query = self.client.table(self.kind.link_table).upsert(
            row, on_conflict=self.kind.link_conflict
        )
        self._execute(query, f"link {self.kind.noun} to {resort_id}")

    def log_enrichment(self, entry: dict[str, Any]) -> None:
        """Record one resort's run; failures are logged, never raised."""
        if self.dry_run:
            print(f"  [DRY RUN] Would log {entry.get('status')} to {self.kind.log_table}")
            return
        try:
            self._execute(self.client.table(self.kind.log_table).insert(entry), "log enrichment")
        except DatabaseError as e:
            logger.error(str(e))

    def _count(self, table: str) -> int:
        result = self._execute(
            self.client.table(table).select("id", count="exact", head=True), f"count {table}"
        )
        return result.count or 0

    def get_stats(self) -> dict[str, int]:
        """Row counts for the places table, links and run log."""
        return {
            self.kind.noun: self._count(self.kind.table),
            "resort_links": self._count(self.kind.link_table),
            "enrichment_runs": self._count(self.kind.log_table),
        }

    def list_for_resort(
        self,
        resort_slug: str,
        max_distance: float,
        limit: int,
        offset: int = 0,
        contains: dict[str, list[str]] | None = None,
        overlaps: dict[str, list[str]] | None = None,
        equals: dict[str, Any] | None = None,
        order: tuple[str, bool] = ("distance_miles", False),
    ) -> list[dict[str, Any]]:
        """Places linked to a resort, nearest first unless ``order`` says otherwise."""
        query = (
            self.client.table(self.kind.view)
            .select("*")
            .eq("resort_slug", resort_slug)
            .lte("distance_miles", max_distance)
        )
        for column, values in (contains or {}).items():
            query = query.contains(column, values)
        for column, values in (overlaps or {}).items():
            query = query.ov(column, values)
        for column, value in (equals or {}).items():
            query = query.eq(column, value)
        column, descending = order
        query = query.order(column, desc=descending).range(offset, offset + limit - 1)
        result = self._execute(query, f"fetch {self.kind.noun} for {resort_slug}")
        return result.data or []
