"""Caching utilities for the public resort API."""

import hashlib
import json
from functools import wraps
from typing import Callable

from cachetools import TTLCache

# Global caches - persist across Lambda invocations (warm starts)
CACHE_TTL_SECONDS = 300  # 5 minutes for conditions
CACHE_TTL_LONG_SECONDS = 3600  # 1 hour for related resort lists
_related_cache: TTLCache = TTLCache(maxsize=2000, ttl=CACHE_TTL_LONG_SECONDS)
_conditions_cache: TTLCache = TTLCache(maxsize=5000, ttl=CACHE_TTL_SECONDS)


def get_cache_key(*args, **kwargs) -> str:
    """Generate a cache key from function arguments."""
    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True, default=str)
    # MD5 is used here only for cache key generation, not for security purposes
    return hashlib.md5(key_data.encode(), usedforsecurity=False).hexdigest()


def _cached(cache: TTLCache) -> Callable:
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = get_cache_key(func.__qualname__, *args, **kwargs)
            if cache_key in cache:
                return cache[cache_key]
            result = func(*args, **kwargs)
            cache[cache_key] = result
            return result

        return wrapper

    return decorator


def cached_related(func: Callable) -> Callable:
    """Cache decorator for related resort lists (1-hour TTL)."""
    return _cached(_related_cache)(func)


def cached_conditions(func: Callable) -> Callable:
    """Cache decorator for public conditions lookups (5-minute TTL)."""
    return _cached(_conditions_cache)(func)


def clear_all_caches() -> None:
    """Clear all caches. Useful for testing."""
    _related_cache.clear()
    _conditions_cache.clear()


# Cache-Control header values
CACHE_CONTROL_PUBLIC = "public, max-age=300"  # 5 minutes, conditions
CACHE_CONTROL_PUBLIC_LONG = "public, max-age=3600"  # 1 hour, related resorts
CACHE_CONTROL_PRIVATE = "private, no-cache"  # Admin responses
