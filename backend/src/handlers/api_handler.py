"""Admin and public resort API (FastAPI, deployable behind Mangum)."""

import hmac
import logging
import time
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, Query, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from mangum import Mangum

from models.places import DINING, SKI_SHOPS, PlaceKind
from services.database_service import PlaceRepository, ResortRepository, create_supabase_client
from services.places_service import serialize_place
from services.resort_service import ResortService, ResortServiceError, serialize_resort
from utils.cache import (
    CACHE_CONTROL_PRIVATE,
    CACHE_CONTROL_PUBLIC,
    CACHE_CONTROL_PUBLIC_LONG,
    cached_conditions,
    cached_related,
    clear_all_caches,
)
from utils.config import SUPABASE_REQUIRED, Settings, load_settings

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Ski Resort Directory API",
    description="Admin CRUD and public lookups for ski resorts",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=load_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log all API requests with timing."""
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000

    path = request.url.path
    if duration_ms > 1000:
        logger.warning(
            "[SLOW] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 500:
        logger.error(
            "[ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 400:
        logger.info(
            "[CLIENT_ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )

    return response


# Lazy-initialized settings and services
_settings = None
_resort_service = None
_place_repositories: dict[str, PlaceRepository] = {}

security = HTTPBearer(auto_error=False)


def reset_services():
    """Reset all lazy-initialized services and caches. Useful for testing."""
    global _settings, _resort_service
    _settings = None
    _resort_service = None
    _place_repositories.clear()
    clear_all_caches()


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def get_resort_service() -> ResortService:
    global _resort_service
    if _resort_service is None:
        settings = load_settings(required=SUPABASE_REQUIRED)
        _resort_service = ResortService(ResortRepository(create_supabase_client(settings)))
    return _resort_service


def get_place_repository(kind: PlaceKind) -> PlaceRepository:
    if kind.name not in _place_repositories:
        settings = load_settings(required=SUPABASE_REQUIRED)
        _place_repositories[kind.name] = PlaceRepository(create_supabase_client(settings), kind)
    return _place_repositories[kind.name]


# MARK: - Errors


class ApiError(Exception):
    """Error rendered as {"error": {"code", "message"}}."""

    def __init__(self, code: str, message: str, status_code: int):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


def error_response(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
        headers={"Cache-Control": CACHE_CONTROL_PRIVATE},
    )


def internal_error(action: str, exc: Exception) -> ApiError:
    logger.error(f"Error {action}: {exc}", exc_info=True)
    return ApiError("INTERNAL_ERROR", "An unexpected error occurred", 500)


@app.exception_handler(ApiError)
async def api_error_handler(request, exc: ApiError):
    return error_response(exc.code, exc.message, exc.status_code)


@app.exception_handler(ResortServiceError)
async def resort_service_error_handler(request, exc: ResortServiceError):
    return error_response(exc.code, exc.message, exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request, exc: RequestValidationError):
    if any(error.get("loc", ("",))[0] == "query" for error in exc.errors()):
        return error_response("VALIDATION_ERROR", "Invalid query parameters", 400)
    return error_response("VALIDATION_ERROR", "Request body must be a JSON object", 400)


# MARK: - Authentication Dependency


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),  # noqa: B008
) -> None:
    """Accept only requests bearing the admin API key.

    Raises:
        ApiError: 401 when the header is missing or not a Bearer token,
            403 when no key is configured or the token does not match
    """
    if not credentials or not credentials.credentials:
        raise ApiError(
            "UNAUTHORIZED",
            "Missing or invalid Authorization header. Use: Bearer <token>",
            status.HTTP_401_UNAUTHORIZED,
        )

    expected = get_settings().admin_token
    if not expected:
        raise ApiError("FORBIDDEN", "Admin API key not configured", status.HTTP_403_FORBIDDEN)

    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise ApiError("FORBIDDEN", "Invalid admin API key", status.HTTP_403_FORBIDDEN)


AdminAuth = Annotated[None, Depends(require_admin)]
JsonBody = Annotated[dict[str, Any], Body()]


# MARK: - Health Check


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": "1.0.0",
    }


# MARK: - Admin Resort Endpoints


@app.get("/api/admin/resorts")
def list_resorts(_: AdminAuth, response: Response):
    try:
        resorts = get_resort_service().list_resorts()
        response.headers["Cache-Control"] = CACHE_CONTROL_PRIVATE
        return {"data": [serialize_resort(r) for r in resorts]}
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error("listing resorts", e) from e


@app.post("/api/admin/resorts", status_code=status.HTTP_201_CREATED)
def create_resort(_: AdminAuth, payload: JsonBody):
    try:
        resort = get_resort_service().create_resort(payload)
        return {"data": serialize_resort(resort)}
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error("creating resort", e) from e


@app.get("/api/admin/resorts/{resort_id}")
def get_resort(_: AdminAuth, resort_id: str):
    try:
        return {"data": serialize_resort(get_resort_service().get_resort(resort_id))}
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error(f"fetching resort {resort_id}", e) from e


@app.put("/api/admin/resorts/{resort_id}")
@app.patch("/api/admin/resorts/{resort_id}")
def update_resort(_: AdminAuth, resort_id: str, payload: JsonBody):
    try:
        resort = get_resort_service().update_resort(resort_id, payload)
        return {"data": serialize_resort(resort)}
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error(f"updating resort {resort_id}", e) from e


@app.delete("/api/admin/resorts/{resort_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_resort(_: AdminAuth, resort_id: str, hard: bool = Query(False)):  # noqa: B008
    try:
        get_resort_service().delete_resort(resort_id, hard=hard)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error(f"deleting resort {resort_id}", e) from e


# MARK: - Admin Conditions Endpoints


@app.get("/api/admin/conditions/{resort_id}")
def get_conditions(_: AdminAuth, resort_id: str):
    try:
        return {"data": get_resort_service().get_conditions(resort_id) or {}}
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error(f"fetching conditions for {resort_id}", e) from e


@app.post("/api/admin/conditions/{resort_id}")
@app.put("/api/admin/conditions/{resort_id}")
def update_conditions(_: AdminAuth, resort_id: str, payload: JsonBody):
    try:
        return {"data": get_resort_service().update_conditions(resort_id, payload)}
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error(f"updating conditions for {resort_id}", e) from e


# MARK: - Public Endpoints


@cached_related
def _related_resorts(slug: str) -> dict[str, Any]:
    return get_resort_service().get_related_resorts(slug)


@app.get("/api/resorts/{slug}/related")
def get_related_resorts(slug: str, response: Response):
    """Nearby resorts (within 100 miles) and others in the same state."""
    try:
        related = _related_resorts(slug)
        response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC_LONG
        return related
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error(f"fetching related resorts for {slug}", e) from e


@cached_conditions
def _resort_conditions(slug: str) -> dict[str, Any] | None:
    return get_resort_service().get_conditions_by_slug(slug)


@app.get("/api/resorts/{slug}/conditions")
def get_resort_conditions(slug: str, response: Response):
    """Current conditions for a resort, or null when none are stored."""
    try:
        conditions = _resort_conditions(slug)
        response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC
        return {"conditions": conditions}
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error(f"fetching conditions for {slug}", e) from e


DINING_SORTS = {
    "distance": ("distance_miles", False),
    "name": ("name", False),
    "price_asc": ("price_range", False),
    "price_desc": ("price_range", True),
}
MAX_PAGE_SIZE = 100


@app.get("/api/resorts/{slug}/dining")
def get_resort_dining(
    slug: str,
    response: Response,
    max_distance: float = Query(30, alias="maxDistance", gt=0),  # noqa: B008
    limit: int = Query(30, ge=1),  # noqa: B008
    offset: int = Query(0, ge=0),  # noqa: B008
    venue_type: str | None = None,
    cuisine_type: str | None = None,
    price_range: str | None = None,
    is_on_mountain: bool | None = None,
    is_ski_in_ski_out: bool | None = None,
    sort: str = "distance",
):
    """Dining venues linked to a resort, nearest first by default."""
    limit = min(limit, MAX_PAGE_SIZE)
    contains = {}
    if venue_type:
        contains["venue_type"] = [venue_type]
    if cuisine_type:
        contains["cuisine_type"] = [cuisine_type]
    equals: dict[str, Any] = {}
    if price_range:
        equals["price_range"] = price_range
    if is_on_mountain:
        equals["is_on_mountain"] = True
    if is_ski_in_ski_out:
        equals["is_ski_in_ski_out"] = True

    try:
        rows = get_place_repository(DINING).list_for_resort(
            slug,
            max_distance,
            limit,
            offset=offset,
            contains=contains,
            equals=equals,
            order=DINING_SORTS.get(sort, DINING_SORTS["distance"]),
        )
        response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC_LONG
        return {
            "resort_slug": slug,
            "count": len(rows),
            "offset": offset,
            "limit": limit,
            "venues": [serialize_place(row) for row in rows],
        }
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error(f"fetching dining for {slug}", e) from e


@app.get("/api/resorts/{slug}/ski-shops")
def get_resort_ski_shops(
    slug: str,
    response: Response,
    max_distance: float = Query(30, alias="maxDistance", gt=0),  # noqa: B008
    types: str | None = None,
    limit: int = Query(20, ge=1),  # noqa: B008
):
    """Ski shops linked to a resort; ``types`` is a comma-separated shop_type list."""
    shop_types = [t.strip() for t in (types or "").split(",") if t.strip()]
    try:
        rows = get_place_repository(SKI_SHOPS).list_for_resort(
            slug,
            max_distance,
            min(limit, MAX_PAGE_SIZE),
            overlaps={"shop_type": shop_types} if shop_types else None,
        )
        response.headers["Cache-Control"] = CACHE_CONTROL_PUBLIC_LONG
        return {
            "resort_slug": slug,
            "count": len(rows),
            "shops": [serialize_place(row) for row in rows],
        }
    except (ApiError, ResortServiceError):
        raise
    except Exception as e:
        raise internal_error(f"fetching ski shops for {slug}", e) from e


# MARK: - Lambda Handler

api_handler = Mangum(app, lifespan="off")


def main() -> None:
    """Serve the API locally."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)


if __name__ == "__main__":
    main()
