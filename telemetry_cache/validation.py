"""Request gating shared by both endpoints: CORS, method, token and payload checks."""

import json
import logging
import secrets
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import pydantic
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from telemetry_cache.config import ALLOWED_REQUEST_HEADERS, TOKEN_HEADER, UPDATE_TIME_FORMAT
from telemetry_cache.exceptions import ApiError, AuthError, MethodError, ValidationError
from telemetry_cache.models import ErrorResponse, MetricUpdateRequest

logger = logging.getLogger(__name__)


def format_update_time(timezone: str = "UTC") -> str:
    """Current wall-clock time as HH:MM:SS in the given zone."""
    return datetime.now(ZoneInfo(timezone)).strftime(UPDATE_TIME_FORMAT)


def apply_cors_headers(response: Response, allowed_methods: str) -> Response:
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = allowed_methods
    response.headers["Access-Control-Allow-Headers"] = ALLOWED_REQUEST_HEADERS
    response.headers["Cache-Control"] = "no-store"
    return response


def preflight_response(request: Request, allowed_methods: str) -> Optional[Response]:
    """Return the 204 response for an OPTIONS request, None for anything else."""
    if request.method != "OPTIONS":
        return None
    return apply_cors_headers(Response(status_code=status.HTTP_204_NO_CONTENT), allowed_methods)


def require_method(request: Request, method: str) -> None:
    if request.method != method:
        raise MethodError(f"Only {method} requests are supported")


def extract_token(request: Request) -> Optional[str]:
    """
    Read the caller's credential.

    A bearer Authorization header takes precedence over X-API-Token.
    """
    authorization = request.headers.get("Authorization")
    if authorization:
        scheme, _, credential = authorization.partition(" ")
        if scheme.lower() == "bearer" and credential.strip():
            return credential.strip()
    return request.headers.get(TOKEN_HEADER)


def require_token(request: Request, expected: str) -> None:
    """Raise AuthError unless the supplied token equals the configured secret."""
    token = extract_token(request)
    if token is None or not secrets.compare_digest(token.encode(), expected.encode()):
        logger.warning("Rejected request to %s: invalid or missing token", request.url.path)
        raise AuthError("A valid API token is required")


async def parse_update(request: Request) -> MetricUpdateRequest:
    """Parse and validate the ingest body. Nothing touches the store before this returns."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON")

    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        return MetricUpdateRequest.model_validate(body)
    except pydantic.ValidationError:
        raise ValidationError(
            "Provide heart_rate (0-200 bpm) and/or location {lat, lng} with values in range"
        )


def error_response(err: ApiError, allowed_methods: str, updated: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=err.error, message=err.message, updated=updated)
    response = JSONResponse(status_code=err.status_code, content=body.model_dump(exclude_none=True))
    return apply_cors_headers(response, allowed_methods)
