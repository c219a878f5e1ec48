"""Process configuration, read once from the environment and validated."""

import logging
import os
from typing import Iterable, Mapping

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "sda-assets-prod"
DEFAULT_USER_AGENT = (
    "SkiDirectoryBot/1.0 (https://skidirectory.com; data@skidirectory.com)"
)

# Field name -> environment variables checked in order
ENV_VARS: dict[str, tuple[str, ...]] = {
    "supabase_url": ("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
    "supabase_service_role_key": ("SUPABASE_SERVICE_ROLE_KEY",),
    "admin_api_key": ("ADMIN_API_KEY",),
    "openai_api_key": ("OPENAI_API_KEY",),
    "openai_model": ("OPENAI_MODEL",),
    "gcs_bucket_name": ("GCS_BUCKET_NAME", "GCS_BUCKET"),
    "gcs_endpoint_url": ("GCS_ENDPOINT_URL",),
    "gcs_access_key_id": ("GCS_HMAC_ACCESS_KEY_ID",),
    "gcs_secret_access_key": ("GCS_HMAC_SECRET",),
    "dry_run": ("DRY_RUN",),
    "verbose": ("VERBOSE",),
    "filter": ("FILTER",),
    "min_confidence": ("MIN_CONFIDENCE",),
    "batch_size": ("BATCH_SIZE",),
    "batch_delay_ms": ("BATCH_DELAY_MS",),
    "wikipedia_rate_limit_ms": ("WIKIPEDIA_RATE_LIMIT_MS",),
    "wikipedia_user_agent": ("WIKIPEDIA_USER_AGENT",),
    "liftie_base_url": ("LIFTIE_BASE_URL",),
    "open_meteo_base_url": ("OPEN_METEO_BASE_URL",),
    "search_radius_miles": ("SEARCH_RADIUS_MILES",),
    "max_places_per_resort": ("MAX_PLACES_PER_RESORT",),
    "place_delay_ms": ("DELAY_BETWEEN_REQUESTS_MS",),
    "cors_origins": ("CORS_ORIGINS",),
    "port": ("PORT",),
}

SUPABASE_REQUIRED = ("supabase_url", "supabase_service_role_key")
OPENAI_REQUIRED = SUPABASE_REQUIRED + ("openai_api_key",)


class ConfigurationError(Exception):
    """Raised when required settings are missing or invalid."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []


class Settings(BaseModel):
    """Every option an updater or the admin API recognizes."""

    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    admin_api_key: str | None = None
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    gcs_bucket_name: str = DEFAULT_BUCKET
    gcs_endpoint_url: str = "https://storage.googleapis.com"
    gcs_access_key_id: str | None = None
    gcs_secret_access_key: str | None = None
    dry_run: bool = False
    verbose: bool = False
    filter: str | None = None
    min_confidence: float = Field(0.7, ge=0.0, le=1.0)
    batch_size: int = Field(10, ge=1)
    batch_delay_ms: int = Field(1000, ge=0)
    wikipedia_rate_limit_ms: int = Field(500, ge=500)
    wikipedia_user_agent: str = DEFAULT_USER_AGENT
    liftie_base_url: str = "https://liftie.info"
    open_meteo_base_url: str = "https://api.open-meteo.com/v1/forecast"
    search_radius_miles: float = Field(20, gt=0)
    max_places_per_resort: int | None = Field(None, ge=1)
    place_delay_ms: int = Field(2000, ge=0)
    cors_origins: str = "*"
    port: int = Field(8000, ge=1, le=65535)

    @property
    def admin_token(self) -> str | None:
        """Token accepted by the admin routes."""
        return self.admin_api_key or self.supabase_service_role_key

    @property
    def batch_delay_seconds(self) -> float:
        return self.batch_delay_ms / 1000

    @property
    def place_delay_seconds(self) -> float:
        return self.place_delay_ms / 1000

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


def _env_label(field: str) -> str:
    names = ENV_VARS.get(field, (field.upper(),))
    if len(names) == 1:
        return names[0]
    return f"{names[0]} (or {', '.join(names[1:])})"


def read_environment(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect non-empty recognized variables, keyed by settings field."""
    environ = os.environ if environ is None else environ
    values = {}
    for field, names in ENV_VARS.items():
        for name in names:
            value = environ.get(name)
            if value not in (None, ""):
                values[field] = value
                break
    return values


def load_settings(
    required: Iterable[str] = (),
    environ: Mapping[str, str] | None = None,
    **overrides,
) -> Settings:
    """Build and validate settings.

    Args:
        required: Settings fields that must end up with a value
        environ: Environment mapping (defaults to os.environ)
        **overrides: Values from CLI flags; None means "not given"

    Raises:
        ConfigurationError: listing every missing variable, or the
            validation errors for malformed values
    """
    values: dict[str, object] = read_environment(environ)
    values.update({k: v for k, v in overrides.items() if v is not None})

    missing = [_env_label(field) for field in required if not values.get(field)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            missing=missing,
        )

    try:
        return Settings(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{_env_label(str(err['loc'][0]))}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e
