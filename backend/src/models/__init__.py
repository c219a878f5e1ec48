"""Data models for the ski resort directory."""

from .conditions import ConditionsUpdate, LiftieConditions, WeatherConditions
from .enrichment import AggregatedData, CostReport, EnrichmentResult, ExtractedData
from .liftie import LiftieSnapshot
from .resort import LifecycleStatus, Resort, ResortCreate, ResortStatus, ResortUpdate
from .weather import OpenMeteoForecast
from .wikipedia import WikipediaArticle

__all__ = [
    "Resort",
    "ResortCreate",
    "ResortUpdate",
    "ResortStatus",
    "LifecycleStatus",
    "ConditionsUpdate",
    "LiftieConditions",
    "WeatherConditions",
    "LiftieSnapshot",
    "OpenMeteoForecast",
    "WikipediaArticle",
    "AggregatedData",
    "EnrichmentResult",
    "ExtractedData",
    "CostReport",
]
