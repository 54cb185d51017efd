"""Request/response models for the sightings API.

Two create payload shapes reach the service:

* client form:  ``{"lat", "lng", "timestamp"?, "accuracyM"?, "description"?}``
* storage form: ``{"when"?, "loc": {"type": "Point", "coordinates": [lng, lat]}, ...}``

``SightingCreate`` accepts either and normalizes to one canonical set of
fields; ``parse_sighting`` is the single entry point the store uses.
"""
import math
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import DEFAULT_ACCURACY_M, MAX_ACCURACY_M, MAX_DESCRIPTION_LENGTH


def _coordinate(value: Any) -> float:
    if value is None:
        raise ValueError("coordinate is required")
    # bool is an int subclass; true/false are not coordinates
    if isinstance(value, bool):
        raise ValueError("coordinate must be a number")
    if isinstance(value, str):
        value = value.strip()
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError("coordinate must be a number")
    except OverflowError:
        raise ValueError("coordinate out of range")
    if not math.isfinite(number):
        raise ValueError("coordinate must be finite")
    return number


def _coordinates_from_loc(loc: Any) -> tuple:
    if not isinstance(loc, Mapping) or loc.get("type") != "Point":
        raise ValueError("loc must be a GeoJSON Point")
    coordinates = loc.get("coordinates")
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) != 2:
        raise ValueError("loc.coordinates must be [lng, lat]")
    lng, lat = coordinates
    return lng, lat


def _first_present(data: Mapping, *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except OverflowError:
        # e.g. 0001-01-01T00:00:00+05:00 has no UTC equivalent
        raise ValueError("timestamp out of range")


def parse_timestamp(v: Any) -> Optional[datetime]:
    """Parse a client timestamp into an aware UTC datetime.

    Accepts datetimes, ISO 8601 strings (trailing Z allowed), date-only
    strings (noon UTC) and epoch milliseconds. Returns None for empty input,
    raises ValueError for anything unparseable.
    """
    if v is None:
        return None
    if isinstance(v, datetime):
        # Ensure timezone-aware; default to UTC if naive
        return _as_utc(v)
    if isinstance(v, bool):
        raise ValueError("timestamp must be a date string or epoch milliseconds")
    if isinstance(v, (int, float)):
        # Browser clients send Date.now() style milliseconds
        try:
            return datetime.fromtimestamp(float(v) / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise ValueError("timestamp out of range")
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return None
        # Handle trailing Z (UTC)
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        # Try full datetime first
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            pass
        else:
            return _as_utc(dt)
        # Try date-only: YYYY-MM-DD
        try:
            d = date.fromisoformat(s)
        except ValueError:
            raise ValueError(f"unparseable timestamp: {v!r}")
        return datetime(d.year, d.month, d.day, 12, 0, tzinfo=timezone.utc)
    raise ValueError("timestamp must be a date string or epoch milliseconds")


class SightingCreate(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    observed_at: Optional[datetime] = None
    accuracy_m: float = DEFAULT_ACCURACY_M
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _normalize_shape(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            raise ValueError("sighting payload must be an object")

        if data.get("loc") is not None:
            lng, lat = _coordinates_from_loc(data["loc"])
        else:
            lat, lng = data.get("lat"), data.get("lng")

        return {
            "lat": _coordinate(lat),
            "lng": _coordinate(lng),
            "observed_at": _first_present(data, "when", "timestamp", "observed_at"),
            "accuracy_m": _first_present(data, "accuracyM", "accuracy_m"),
            "description": data.get("description"),
        }

    @field_validator("observed_at", mode="before")
    @classmethod
    def _parse_observed_at(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)

    @field_validator("accuracy_m", mode="before")
    @classmethod
    def _default_accuracy(cls, v: Any) -> float:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return DEFAULT_ACCURACY_M
        try:
            number = float(v)
        except OverflowError:
            # Integers beyond float range
            return MAX_ACCURACY_M if v > 0 else 0.0
        if math.isnan(number):
            return DEFAULT_ACCURACY_M
        return min(max(number, 0.0), MAX_ACCURACY_M)

    @field_validator("description", mode="before")
    @classmethod
    def _truncate_description(cls, v: Any) -> str:
        if v is None:
            return ""
        if not isinstance(v, str):
            raise ValueError("description must be a string")
        return v[:MAX_DESCRIPTION_LENGTH]


_ERROR_MESSAGES = {
    "observed_at": "Invalid timestamp",
    "description": "Invalid description",
}


def parse_sighting(payload: Any) -> SightingCreate:
    """Validate a create payload in either wire shape.

    Raises ``errors.ValidationError`` with a short message on failure.
    """
    if isinstance(payload, SightingCreate):
        return payload
    try:
        return SightingCreate.model_validate(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = first["loc"][0] if first["loc"] else None
        raise ValidationError(_ERROR_MESSAGES.get(field, "Invalid location")) from exc


class GeoPoint(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float]


class SightingResponse(BaseModel):
    id: int
    observed_at: datetime = Field(serialization_alias="when")
    loc: GeoPoint
    accuracy_m: float = Field(serialization_alias="accuracyM")
    description: str
    status: str
    created_at: datetime = Field(serialization_alias="createdAt")

    @field_validator("observed_at", "created_at", mode="before")
    @classmethod
    def _ensure_aware(cls, v: Any) -> Any:
        # SQLite hands back naive datetimes; everything is stored as UTC
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    class Config:
        from_attributes = True


class SightingCreatedResponse(BaseModel):
    ok: bool = True
    id: str


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
