"""Services for the ski resort directory backend."""

from .cost_tracker import CostTracker
from .database_service import PlaceRepository, ResortRepository
from .liftie_service import LiftieService
from .openmeteo_service import OpenMeteoService
from .resort_service import ResortService
from .storage_service import AssetStore
from .wikidata_service import WikidataService
from .wikipedia_service import WikipediaService

__all__ = [
    "AssetStore",
    "CostTracker",
    "LiftieService",
    "OpenMeteoService",
    "PlaceRepository",
    "ResortRepository",
    "ResortService",
    "WikidataService",
    "WikipediaService",
]
