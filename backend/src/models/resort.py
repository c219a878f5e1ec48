"""Resort data models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# JSON column keys, as stored in the resorts table
STATS_KEYS = (
    "skiableAcres",
    "liftsCount",
    "runsCount",
    "verticalDrop",
    "baseElevation",
    "summitElevation",
    "avgAnnualSnowfall",
)
TERRAIN_KEYS = ("beginner", "intermediate", "advanced", "expert")
FEATURES_KEYS = ("hasPark", "hasHalfpipe", "hasNightSkiing", "hasBackcountryAccess")

COUNTRY_NAMES = {"us": "United States", "ca": "Canada"}


class ResortStatus(str, Enum):
    """Effective status shown for a resort."""

    OPEN = "open"
    CLOSED = "closed"
    LOST = "lost"


class LifecycleStatus(str, Enum):
    """Value of the resorts.status column."""

    ACTIVE = "active"
    DEFUNCT = "defunct"


class Resort(BaseModel):
    """Ski resort row from the resorts table."""

    id: str = Field(..., description="Primary key, e.g. 'resort:vail'")
    slug: str = Field(..., description="Unique URL-safe identifier")
    name: str = Field(..., description="Resort display name")
    country_code: str = Field(..., description="Lowercase country code (us, ca)")
    state_slug: str = Field(..., description="State/province slug")
    state_name: str | None = Field(None, description="State/province display name")
    country_name: str | None = Field(None, description="Country display name")
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    status: LifecycleStatus = LifecycleStatus.ACTIVE
    is_active: bool = True
    is_lost: bool = False
    is_open: bool | None = None
    is_visible: bool | None = None
    nearest_city: str | None = None
    website_url: str | None = None
    description: str | None = None
    tagline: str | None = None
    stats: dict[str, Any] = Field(default_factory=dict)
    terrain: dict[str, Any] = Field(default_factory=dict)
    features: dict[str, Any] = Field(default_factory=dict)
    asset_path: str | None = Field(
        None, description="Object store prefix, '{country}/{state}/{slug}'"
    )
    created_at: str | None = None
    updated_at: str | None = None

    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Resort":
        """Build a Resort from a database row, tolerating null JSON columns."""
        data = dict(row)
        for key in ("stats", "terrain", "features"):
            if data.get(key) is None:
                data[key] = {}
        return cls(**data)

    @property
    def display_status(self) -> ResortStatus:
        """Resolve the status flags into a single effective status.

        Precedence: lost (is_lost or defunct) > closed (inactive or not
        open) > open. ``is_visible`` only affects listing visibility.
        """
        if self.is_lost or self.status == LifecycleStatus.DEFUNCT.value:
            return ResortStatus.LOST
        if not self.is_active or self.is_open is False:
            return ResortStatus.CLOSED
        return ResortStatus.OPEN

    @property
    def is_listed(self) -> bool:
        """Whether the resort appears in public listings."""
        return self.is_visible is not False and self.display_status != ResortStatus.LOST

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def display_state(self) -> str:
        if self.state_name:
            return self.state_name
        return self.state_slug.replace("-", " ").title()

    @property
    def display_country(self) -> str:
        if self.country_name:
            return self.country_name
        return COUNTRY_NAMES.get(self.country_code.lower(), self.country_code.upper())

    @property
    def storage_path(self) -> str:
        """Asset path, derived from country/state/slug when the column is empty."""
        return self.asset_path or build_asset_path(self.country_code, self.state_slug, self.slug)

    @property
    def summit_elevation_feet(self) -> float | None:
        value = self.stats.get("summitElevation")
        if isinstance(value, (int, float)) and value > 0:
            return float(value)
        return None


def build_resort_id(slug: str) -> str:
    """Primary key for a resort slug."""
    return f"resort:{slug}"


def build_asset_path(country_code: str, state_slug: str, slug: str) -> str:
    """Object store prefix for a resort."""
    return f"{country_code.lower()}/{state_slug}/{slug}"


class ResortCreate(BaseModel):
    """Admin payload for creating a resort."""

    slug: str = Field(..., min_length=1, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    name: str = Field(..., min_length=1)
    country_code: str = Field(..., min_length=2, alias="countryCode")
    state_slug: str = Field(..., min_length=1, alias="stateSlug")
    status: LifecycleStatus = LifecycleStatus.ACTIVE
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    nearest_city: str | None = Field(None, alias="nearestCity")
    website_url: str | None = Field(None, alias="websiteUrl")
    description: str | None = None
    stats: dict[str, Any] | None = None
    terrain: dict[str, Any] | None = None
    features: dict[str, Any] | None = None

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="ignore")

    def to_row(self) -> dict[str, Any]:
        country = self.country_code.lower()
        return {
            "id": build_resort_id(self.slug),
            "slug": self.slug,
            "name": self.name,
            "country_code": country,
            "state_slug": self.state_slug,
            "status": LifecycleStatus(self.status).value,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "nearest_city": self.nearest_city,
            "website_url": self.website_url,
            "description": self.description,
            "stats": self.stats or {},
            "terrain": self.terrain or {},
            "features": self.features or {},
            "asset_path": build_asset_path(country, self.state_slug, self.slug),
        }


class ResortUpdate(BaseModel):
    """Admin payload for updating a resort; only fields that were sent change."""

    slug: str | None = Field(None, min_length=1, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    name: str | None = Field(None, min_length=1)
    country_code: str | None = Field(None, min_length=2, alias="countryCode")
    state_slug: str | None = Field(None, min_length=1, alias="stateSlug")
    status: LifecycleStatus | None = None
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    nearest_city: str | None = Field(None, alias="nearestCity")
    website_url: str | None = Field(None, alias="websiteUrl")
    description: str | None = None
    tagline: str | None = None
    is_active: bool | None = Field(None, alias="isActive")
    is_open: bool | None = Field(None, alias="isOpen")
    is_visible: bool | None = Field(None, alias="isVisible")
    stats: dict[str, Any] | None = None
    terrain: dict[str, Any] | None = None
    features: dict[str, Any] | None = None

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, extra="ignore")

    def to_updates(self) -> dict[str, Any]:
        updates = self.model_dump(exclude_unset=True)
        if updates.get("country_code"):
            updates["country_code"] = updates["country_code"].lower()
        return updates
