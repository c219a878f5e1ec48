"""Models for language-model enrichment results and run cost accounting."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Camel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ScoredValue(_Camel):
    """An extracted value with the model's confidence in it (0.0 - 1.0)."""

    value: Any = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)


class ScoredText(ScoredValue):
    value: str | None = None


class ScoredNumber(ScoredValue):
    value: float | None = None


class ScoredFlag(ScoredValue):
    value: bool | None = None


class ContentFields(_Camel):
    tagline: ScoredText = Field(default_factory=ScoredText)
    description: ScoredText = Field(default_factory=ScoredText)


class StatsFields(_Camel):
    skiable_acres: ScoredNumber = Field(default_factory=ScoredNumber, alias="skiableAcres")
    lifts_count: ScoredNumber = Field(default_factory=ScoredNumber, alias="liftsCount")
    runs_count: ScoredNumber = Field(default_factory=ScoredNumber, alias="runsCount")
    vertical_drop: ScoredNumber = Field(default_factory=ScoredNumber, alias="verticalDrop")
    base_elevation: ScoredNumber = Field(default_factory=ScoredNumber, alias="baseElevation")
    summit_elevation: ScoredNumber = Field(
        default_factory=ScoredNumber, alias="summitElevation"
    )
    avg_annual_snowfall: ScoredNumber = Field(
        default_factory=ScoredNumber, alias="avgAnnualSnowfall"
    )


class TerrainFields(_Camel):
    beginner: ScoredNumber = Field(default_factory=ScoredNumber)
    intermediate: ScoredNumber = Field(default_factory=ScoredNumber)
    advanced: ScoredNumber = Field(default_factory=ScoredNumber)
    expert: ScoredNumber = Field(default_factory=ScoredNumber)


class FeaturesFields(_Camel):
    has_park: ScoredFlag = Field(default_factory=ScoredFlag, alias="hasPark")
    has_halfpipe: ScoredFlag = Field(default_factory=ScoredFlag, alias="hasHalfpipe")
    has_night_skiing: ScoredFlag = Field(default_factory=ScoredFlag, alias="hasNightSkiing")
    has_backcountry_access: ScoredFlag = Field(
        default_factory=ScoredFlag, alias="hasBackcountryAccess"
    )


class GeneralFields(_Camel):
    website_url: ScoredText = Field(default_factory=ScoredText, alias="websiteUrl")
    nearest_city: ScoredText = Field(default_factory=ScoredText, alias="nearestCity")


class CoordinateFields(_Camel):
    lat: ScoredNumber = Field(default_factory=ScoredNumber)
    lng: ScoredNumber = Field(default_factory=ScoredNumber)


class EnrichmentResult(_Camel):
    """Structured output of the AI enricher prompt."""

    content: ContentFields = Field(default_factory=ContentFields)
    stats: StatsFields = Field(default_factory=StatsFields)
    terrain: TerrainFields = Field(default_factory=TerrainFields)


class ExtractedData(EnrichmentResult):
    """Structured output of the Wikidata enricher prompt."""

    features: FeaturesFields = Field(default_factory=FeaturesFields)
    general: GeneralFields = Field(default_factory=GeneralFields)
    coordinates: CoordinateFields = Field(default_factory=CoordinateFields)


class ProposedChange(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None
    confidence: float


class SkippedField(BaseModel):
    field: str
    reason: str
    confidence: float | None = None


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class DataQuality(BaseModel):
    """Which evidence sources were available for a resort."""

    has_wikipedia: bool = False
    has_liftie: bool = False
    has_on_the_snow: bool = False
    has_ski_resort_info: bool = False
    source_count: int = 0
    overall_score: float = 0.0


class AggregatedData(BaseModel):
    """All evidence gathered for one resort before prompting."""

    slug: str
    name: str
    asset_path: str
    state: str = ""
    country: str = ""
    wikipedia: dict[str, Any] | None = None
    liftie: dict[str, Any] | None = None
    on_the_snow: dict[str, Any] | None = None
    ski_resort_info: dict[str, Any] | None = None
    data_quality: DataQuality = Field(default_factory=DataQuality)


class CostEntry(BaseModel):
    slug: str
    prompt_tokens: int
    completion_tokens: int
    cost: float
    processing_time_ms: int


class CostTotals(BaseModel):
    resort_count: int = 0
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_cost: float = 0.0
    avg_cost_per_resort: float = 0.0
    total_processing_time_ms: int = 0


class CostReport(BaseModel):
    """Token usage and dollar cost for one enrichment run."""

    run_id: str
    started_at: str
    completed_at: str
    model: str
    resorts: list[CostEntry] = Field(default_factory=list)
    totals: CostTotals = Field(default_factory=CostTotals)
