"""Dining venues and ski shops found near a resort."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

VENUE_TYPES = ("restaurant", "bar", "brewery", "cafe", "food_truck", "lodge_dining")
CUISINE_TYPES = (
    "american",
    "italian",
    "mexican",
    "asian",
    "japanese",
    "chinese",
    "thai",
    "indian",
    "french",
    "mediterranean",
    "pizza",
    "burgers",
    "seafood",
    "steakhouse",
    "bbq",
    "pub_food",
    "deli",
    "bakery",
    "coffee",
    "vegetarian",
    "vegan",
    "international",
)
PRICE_RANGES = ("$", "$$", "$$$", "$$$$")
AMBIANCES = (
    "casual",
    "upscale",
    "family_friendly",
    "apres_ski",
    "fine_dining",
    "sports_bar",
    "romantic",
    "lively",
    "cozy",
)
DINING_FEATURES = (
    "outdoor_seating",
    "fireplace",
    "live_music",
    "sports_tv",
    "reservations_required",
    "happy_hour",
    "dog_friendly",
    "takeout",
    "delivery",
    "private_events",
    "craft_cocktails",
    "local_beer",
)
MOUNTAIN_LOCATIONS = ("base", "mid_mountain", "summit", "village")
SHOP_TYPES = ("rental", "retail", "repair", "demo")
SHOP_SERVICES = (
    "ski_rental",
    "snowboard_rental",
    "boot_fitting",
    "tuning",
    "waxing",
    "repairs",
    "lessons",
)


class PlaceCandidate(BaseModel):
    """One entry of the model's response, before normalization."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    description: str | None = None
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=3)
    postal_code: str = Field(min_length=5)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    phone: str | None = None
    website_url: str | None = None


class DiningCandidate(PlaceCandidate):
    venue_type: list[str] = Field(default_factory=list)
    cuisine_type: list[str] = Field(default_factory=list)
    price_range: str | None = None
    ambiance: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    is_ski_in_ski_out: bool = False
    is_on_mountain: bool = False
    mountain_location: str | None = None
    serves_breakfast: bool = False
    serves_lunch: bool = False
    serves_dinner: bool = False
    serves_drinks: bool = False
    has_full_bar: bool = False
    hours_notes: str | None = None


class SkiShopCandidate(PlaceCandidate):
    state: str = Field(min_length=2, max_length=2)
    shop_type: list[str] = Field(default_factory=list)
    services: list[str] = Field(default_factory=list)


class Place(BaseModel):
    """Normalized row for a places table."""

    id: str | None = None
    name: str
    slug: str
    description: str | None = None
    address_line1: str | None = None
    city: str
    state: str
    postal_code: str | None = None
    country: str = "US"
    latitude: float
    longitude: float
    phone: str | None = None
    website_url: str | None = None
    source: str = "openai"
    verified: bool = False
    is_active: bool = True
    # Distance from the resort the place was found for; not a column
    distance_miles: float = 0

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(exclude={"id", "distance_miles"})

    def to_report(self) -> dict[str, Any]:
        return self.model_dump(exclude={"id"})


class DiningVenue(Place):
    venue_type: list[str] = Field(default_factory=lambda: ["restaurant"])
    cuisine_type: list[str] = Field(default_factory=lambda: ["american"])
    price_range: str = "$$"
    ambiance: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    is_ski_in_ski_out: bool = False
    is_on_mountain: bool = False
    mountain_location: str | None = None
    serves_breakfast: bool = False
    serves_lunch: bool = False
    serves_dinner: bool = False
    serves_drinks: bool = False
    has_full_bar: bool = False
    hours_notes: str | None = None


class SkiShop(Place):
    shop_type: list[str] = Field(default_factory=lambda: ["retail"])
    services: list[str] = Field(default_factory=list)


@dataclass
class ParseResult:
    places: list[Place] = field(default_factory=list)
    invalid_count: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PlaceKind:
    """Tables, files and wording for one kind of nearby place."""

    name: str
    label: str
    noun: str
    table: str
    link_table: str
    link_column: str
    log_table: str
    view: str
    response_key: str
    output_file: str
    max_per_resort: int

    @property
    def link_conflict(self) -> str:
        return f"resort_id,{self.link_column}"


DINING = PlaceKind(
    name="dining",
    label="Dining Enrichment",
    noun="venues",
    table="dining_venues",
    link_table="resort_dining_venues",
    link_column="dining_venue_id",
    log_table="dining_enrichment_logs",
    view="resort_dining_venues_full",
    response_key="venues",
    output_file="dining-venues.json",
    max_per_resort=15,
)

SKI_SHOPS = PlaceKind(
    name="ski_shops",
    label="Ski Shop Enrichment",
    noun="shops",
    table="ski_shops",
    link_table="resort_ski_shops",
    link_column="ski_shop_id",
    log_table="ski_shop_enrichment_logs",
    view="resort_ski_shops_full",
    response_key="shops",
    output_file="ski-shops.json",
    max_per_resort=10,
)
