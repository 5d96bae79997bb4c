"""Pydantic models for request and response validation."""

import json
import math
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, field_validator, model_validator

from telemetry_cache.config import (
    MAX_HEART_RATE,
    MAX_LATITUDE,
    MAX_LONGITUDE,
    MIN_HEART_RATE,
    MIN_LATITUDE,
    MIN_LONGITUDE,
)

# JSON numbers only: "72" and true are rejected, ints stay ints
Number = Union[StrictInt, StrictFloat]


class Location(BaseModel):
    """Geolocation reading in decimal degrees."""

    model_config = ConfigDict(extra="ignore")

    lat: Number = Field(..., description="Latitude in degrees")
    lng: Number = Field(..., description="Longitude in degrees")

    @field_validator("lat")
    @classmethod
    def validate_lat(cls, v: Number) -> Number:
        if not (MIN_LATITUDE <= v <= MAX_LATITUDE):
            raise ValueError(f"Latitude must be between {MIN_LATITUDE} and {MAX_LATITUDE}")
        return v

    @field_validator("lng")
    @classmethod
    def validate_lng(cls, v: Number) -> Number:
        if not (MIN_LONGITUDE <= v <= MAX_LONGITUDE):
            raise ValueError(f"Longitude must be between {MIN_LONGITUDE} and {MAX_LONGITUDE}")
        return v


class MetricUpdateRequest(BaseModel):
    """Request model for the ingest endpoint. At least one metric must be present."""

    model_config = ConfigDict(extra="ignore")

    heart_rate: Optional[Number] = Field(None, description="Heart rate in bpm")
    location: Optional[Location] = Field(None, description="Current location")

    @field_validator("heart_rate")
    @classmethod
    def validate_heart_rate(cls, v: Optional[Number]) -> Optional[Number]:
        """Validate heart rate is strictly inside the accepted range."""
        if v is not None and not (MIN_HEART_RATE < v < MAX_HEART_RATE):
            raise ValueError(
                f"Heart rate must be greater than {MIN_HEART_RATE} and less than {MAX_HEART_RATE} bpm"
            )
        return v

    @model_validator(mode="after")
    def require_metric(self) -> "MetricUpdateRequest":
        if self.heart_rate is None and self.location is None:
            raise ValueError("At least one of heart_rate or location is required")
        return self


class IngestResponse(BaseModel):
    """Response model for a successful ingest."""

    success: bool = True
    updated: str = Field(..., description="Time the response was generated")


class LatestReadingsResponse(BaseModel):
    """Response model for the query endpoint."""

    heart_rate: Optional[Number] = None
    location: Optional[Location] = None
    updated: str = Field(..., description="Time the response was generated")
    status: str = "success"


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str
    message: str
    updated: Optional[str] = None


class HealthResponse(BaseModel):
    """Response model for the health check."""

    status: str
    service: str
    store: str


def decode_heart_rate(raw: Optional[str]) -> Optional[Number]:
    """Decode a stored heart rate. Raises ValueError for anything but a finite JSON number."""
    if raw is None:
        return None
    value = json.loads(raw)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError("Stored heart rate is not a number")
    return value


def decode_location(raw: Optional[str]) -> Optional[Location]:
    """Decode a stored location. Raises ValueError if it is not a valid {lat, lng} object."""
    if raw is None:
        return None
    return Location.model_validate_json(raw)
