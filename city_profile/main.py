"""HTTP front-end over the city profile pipeline: routes, middleware, metrics."""

import time
import uuid
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
from fastapi import BackgroundTasks, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from structlog.contextvars import bind_contextvars, clear_contextvars

from city_profile.health.health_check import check_upstreams, is_redis_available
from city_profile.logging_config import logger
from city_profile.lookup_service.errors import (
    LocationUnavailableError,
    NotFoundError,
    PermissionDeniedError,
    ProfileServiceError,
)
from city_profile.lookup_service.http_client import build_client
from city_profile.lookup_service.names_ranking import filter_entries
from city_profile.models.city import Coordinates
from city_profile.models.health import HealthResponse
from city_profile.models.names import NameRankingEntry
from city_profile.models.pipeline import PipelineState, ScreenState
from city_profile.pipeline.coordinates import StaticCoordinateProvider
from city_profile.pipeline.messages import error_message
from city_profile.pipeline.orchestrator import ProfileOrchestrator
from city_profile.redis_cache.cache import profile_cache, redis_client
from city_profile.settings import get_settings

settings = get_settings()

_client: Optional[httpx.AsyncClient] = None


def http_client() -> httpx.AsyncClient:
    """Return the process-wide AsyncClient, creating it on first use."""
    global _client
    if _client is None or _client.is_closed:
        _client = build_client(settings.user_agent)
    return _client


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _client is not None and not _client.is_closed:
        await _client.aclose()


app = FastAPI(lifespan=lifespan)

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "path", "status_code"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "HTTP request duration in seconds", ["path"]
)


@app.middleware("http")
async def request_logging(request: Request, call_next):
    """Log request details, attach a request ID, and record metrics.

    Args:
        request: Incoming HTTP request.
        call_next: FastAPI handler for the next middleware/app.

    Returns:
        The response produced by the downstream handler.
    """
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    bind_contextvars(request_id=request_id)
    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response
    finally:
        duration_s = time.perf_counter() - start
        status_code = getattr(response, "status_code", 500)
        logger.info(
            "HTTP_REQUEST",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=round(duration_s * 1000, 2),
        )
        REQUEST_COUNT.labels(
            method=request.method, path=request.url.path, status_code=status_code
        ).inc()
        REQUEST_LATENCY.labels(path=request.url.path).observe(duration_s)
        clear_contextvars()


def _error_response(exc: ProfileServiceError, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": error_message(exc.kind, exc.stage),
            "kind": exc.kind.value,
            "retry_stage": exc.stage.value,
        },
    )


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    """Convert a refused location permission into a 403 response."""
    return _error_response(exc, 403)


@app.exception_handler(LocationUnavailableError)
async def location_unavailable_handler(request: Request, exc: LocationUnavailableError):
    """Convert a missing device position into a 422 response."""
    return _error_response(exc, 422)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    """Convert 'service has no data' outcomes into 404 responses."""
    return _error_response(exc, 404)


@app.exception_handler(ProfileServiceError)
async def upstream_error_handler(request: Request, exc: ProfileServiceError):
    """Convert failed or unreadable upstream calls into 502 responses."""
    return _error_response(exc, 502)


def build_orchestrator(coordinates: Optional[Coordinates]) -> ProfileOrchestrator:
    """Create the orchestrator serving one request."""
    return ProfileOrchestrator(
        StaticCoordinateProvider(coordinates),
        profile_cache(),
        http_client(),
        settings=settings,
    )


@app.get("/")
async def root():
    """Return a basic liveness response."""
    return {"service": "city-profile", "status": "ok"}


@app.get("/profile", response_model=ScreenState)
async def get_city_profile(
    background_tasks: BackgroundTasks,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lon: Optional[float] = Query(None, ge=-180, le=180),
) -> ScreenState:
    """Resolve the city profile for the caller's position.

    A stale cached profile is returned right away; its refresh finishes
    after the response is sent.

    Args:
        background_tasks: Request-scoped background task queue.
        lat: Device latitude; omit when location permission is refused.
        lon: Device longitude.

    Returns:
        The ScreenState the caller should render.
    """
    coordinates = None
    if lat is not None and lon is not None:
        coordinates = Coordinates(latitude=lat, longitude=lon)
    orchestrator = build_orchestrator(coordinates)
    snapshot = await orchestrator.resolve_city_profile()
    if orchestrator.busy:
        background_tasks.add_task(orchestrator.wait)
    if snapshot.state is PipelineState.error and snapshot.profile is None:
        raise orchestrator.last_error
    return snapshot


@app.get("/names/ranking", response_model=List[NameRankingEntry])
async def get_names_ranking(
    locality_code: Optional[str] = None, q: str = ""
) -> List[NameRankingEntry]:
    """Return the first-name ranking, optionally filtered by a search text.

    Args:
        locality_code: IBGE locality code; omit for the national ranking.
        q: Case-insensitive substring to filter names by.

    Returns:
        Rank-ordered entries.
    """
    orchestrator = build_orchestrator(None)
    entries = await orchestrator.resolve_name_ranking(locality_code)
    return filter_entries(entries, q)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Report cache and upstream availability.

    Returns:
        A HealthResponse with one status per dependency.
    """
    upstreams = await check_upstreams(http_client(), settings)
    return HealthResponse.from_checks(
        redis=is_redis_available(redis_client), upstreams=upstreams
    )


@app.get("/metrics")
async def metrics():
    """Expose Prometheus metrics for scraping."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
