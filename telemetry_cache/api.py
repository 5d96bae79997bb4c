"""FastAPI endpoints for pushing and reading the latest telemetry values."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from telemetry_cache.config import (
    HEART_RATE_KEY,
    LOCATION_KEY,
    ROUTED_METHODS,
    SERVICE_NAME,
    Settings,
    configure_logging,
    describe_settings,
    get_settings,
)
from telemetry_cache.exceptions import ApiError, InternalError, MethodError, StoreError
from telemetry_cache.models import (
    HealthResponse,
    IngestResponse,
    LatestReadingsResponse,
    MetricUpdateRequest,
    decode_heart_rate,
    decode_location,
)
from telemetry_cache.storage import MetricStore, StoreSession
from telemetry_cache.validation import (
    apply_cors_headers,
    error_response,
    format_update_time,
    parse_update,
    preflight_response,
    require_method,
    require_token,
)

logger = logging.getLogger(__name__)

router = APIRouter()

PUSH_METHODS = "POST, OPTIONS"
GET_METHODS = "GET, OPTIONS"

# path -> (supported verb, CORS method list)
ENDPOINT_METHODS = {
    "/api/push": ("POST", PUSH_METHODS),
    "/api/get": ("GET", GET_METHODS),
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager: fail fast on missing configuration."""
    settings = get_settings()
    configure_logging(settings.log_level)
    app.state.store = MetricStore.from_settings(settings)
    logger.info("Starting %s with %s", SERVICE_NAME, describe_settings(settings))
    yield


def get_store(request: Request) -> MetricStore:
    return request.app.state.store


def serialize_update(update: MetricUpdateRequest) -> Dict[str, str]:
    """Map each present metric to its store key and JSON text."""
    values: Dict[str, str] = {}
    if update.heart_rate is not None:
        values[HEART_RATE_KEY] = json.dumps(update.heart_rate)
    if update.location is not None:
        values[LOCATION_KEY] = update.location.model_dump_json()
    return values


async def gather_independent(*aws: Awaitable[Any]) -> List[Any]:
    """
    Run store operations concurrently and wait for all of them.

    A failing operation does not cancel the others and nothing is rolled back.
    The first failure is re-raised once every operation has finished.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


async def write_metrics(session: StoreSession, values: Dict[str, str], ttl: Optional[int]) -> None:
    await gather_independent(*(session.set(key, value, ttl) for key, value in values.items()))


@router.api_route(
    "/api/push",
    methods=ROUTED_METHODS,
    response_model=IngestResponse,
    summary="Push telemetry readings",
    description="Overwrite the latest heart rate and/or location",
)
async def push_metrics(
    request: Request,
    store: MetricStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> Response:
    """
    Ingest a heart rate and/or location update.

    The payload is fully validated before the store is contacted, so a
    rejected request never writes anything.
    """
    preflight = preflight_response(request, PUSH_METHODS)
    if preflight is not None:
        return preflight

    try:
        require_method(request, "POST")
        require_token(request, settings.api_token)
        update = await parse_update(request)
        values = serialize_update(update)

        try:
            async with store.connect() as session:
                await write_metrics(session, values, settings.cache_ttl_seconds)
        except StoreError as e:
            logger.error("Failed to store %s: %s (%s)", ", ".join(values), e, e.__cause__)
            raise InternalError("Failed to process data, please retry later")

        logger.info("Stored %s", ", ".join(values))
        body = IngestResponse(updated=format_update_time(settings.display_timezone))
        return apply_cors_headers(JSONResponse(content=body.model_dump()), PUSH_METHODS)
    except ApiError as e:
        return error_response(e, PUSH_METHODS)


@router.api_route(
    "/api/get",
    methods=ROUTED_METHODS,
    response_model=LatestReadingsResponse,
    summary="Get latest telemetry readings",
    description="Return the most recent heart rate and location, null when absent",
)
async def get_metrics(
    request: Request,
    store: MetricStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Query the latest values. Absent or expired keys are reported as null."""
    preflight = preflight_response(request, GET_METHODS)
    if preflight is not None:
        return preflight

    try:
        require_method(request, "GET")
        require_token(request, settings.api_token)

        try:
            async with store.connect() as session:
                heart_rate_raw, location_raw = await gather_independent(
                    session.get(HEART_RATE_KEY),
                    session.get(LOCATION_KEY),
                )
            body = LatestReadingsResponse(
                heart_rate=decode_heart_rate(heart_rate_raw),
                location=decode_location(location_raw),
                updated=format_update_time(settings.display_timezone),
            )
        except (StoreError, ValueError) as e:
            logger.error("Failed to read latest values: %s (%s)", e, e.__cause__)
            raise InternalError("Failed to fetch data, please retry later")

        return apply_cors_headers(JSONResponse(content=body.model_dump(mode="json")), GET_METHODS)
    except ApiError as e:
        updated = format_update_time(settings.display_timezone)
        return error_response(e, GET_METHODS, updated=updated if e.status_code >= 500 else None)


@router.get("/health", summary="Health check endpoint", response_model=HealthResponse)
async def health_check(store: MetricStore = Depends(get_store)) -> JSONResponse:
    """Health check endpoint, including store connectivity."""
    if await store.ping():
        body = HealthResponse(status="healthy", service=SERVICE_NAME, store="ok")
        return JSONResponse(content=body.model_dump())
    body = HealthResponse(status="unhealthy", service=SERVICE_NAME, store="unavailable")
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body.model_dump())


async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Render router-level 405s on the telemetry endpoints like the handlers' own."""
    endpoint = ENDPOINT_METHODS.get(request.url.path)
    if exc.status_code != status.HTTP_405_METHOD_NOT_ALLOWED or endpoint is None:
        return await http_exception_handler(request, exc)
    method, allowed_methods = endpoint
    return error_response(MethodError(f"Only {method} requests are supported"), allowed_methods)
