"""Shared utilities: configuration, HTTP, batching and geo helpers."""

from .config import ConfigurationError, Settings, load_settings
from .geo_utils import find_nearby, haversine_distance, haversine_miles

__all__ = [
    "ConfigurationError",
    "Settings",
    "load_settings",
    "find_nearby",
    "haversine_distance",
    "haversine_miles",
]
