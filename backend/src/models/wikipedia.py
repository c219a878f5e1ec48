"""Wikipedia article data stored as wiki-data.json."""

from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class WikipediaImageSource(BaseModel):
    src: str
    scale: str | None = None


class WikipediaMedia(BaseModel):
    """One image from the REST media-list endpoint."""

    title: str
    lead_image: bool = Field(False, alias="leadImage")
    srcset: list[WikipediaImageSource] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def best_url(self) -> str | None:
        """Highest resolution source, as an absolute https URL."""
        if not self.srcset:
            return None

        def _scale(source: WikipediaImageSource) -> float:
            try:
                return float((source.scale or "1x").rstrip("x"))
            except ValueError:
                return 1.0

        src = max(self.srcset, key=_scale).src
        if src.startswith("//"):
            return f"https:{src}"
        return src


class WikipediaArticle(BaseModel):
    """Article content for one resort."""

    title: str
    pageid: int
    url: str
    extract: str = ""
    full_extract: str = Field("", alias="fullExtract")
    categories: list[str] = Field(default_factory=list)
    coordinates: Coordinates | None = None
    infobox: dict[str, str] = Field(default_factory=dict)
    media: list[WikipediaMedia] = Field(default_factory=list)
    last_updated: str = Field("", alias="lastUpdated")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def lead_image(self) -> WikipediaMedia | None:
        for item in self.media:
            if item.lead_image:
                return item
        return self.media[0] if self.media else None

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
