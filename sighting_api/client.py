"""HTTP client for the sightings API and the distance-to-latest view.

Every failure the caller can hit (network, HTTP status, response shape)
surfaces as ``SightingClientError`` so a UI can show a message and carry on.
"""
import logging
import os
from typing import Any, Optional

import httpx

from .geo import haversine_m, unpack_point

logger = logging.getLogger("sighting-api.client")

DEFAULT_API_BASE = "http://localhost:3000"


class SightingClientError(Exception):
    """Recoverable failure talking to the sightings API."""


def api_base() -> str:
    return os.getenv("SIGHTINGS_API_BASE", DEFAULT_API_BASE).rstrip("/")


class SightingClient:
    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0, transport=None):
        self._client = httpx.Client(
            base_url=base_url or api_base(), timeout=timeout, transport=transport
        )

    def __enter__(self) -> "SightingClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise SightingClientError(
                f"{method} {path} failed with status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SightingClientError(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise SightingClientError(f"{method} {path} returned invalid JSON") from exc

    def health(self) -> dict:
        return self._request("GET", "/api/health")

    def report(
        self,
        lat: float,
        lng: float,
        accuracy_m: Optional[float] = None,
        description: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> str:
        body = {"lat": lat, "lng": lng}
        if accuracy_m is not None:
            body["accuracyM"] = accuracy_m
        if description is not None:
            body["description"] = description
        if timestamp is not None:
            body["timestamp"] = timestamp

        data = self._request("POST", "/api/sightings", json=body)
        if not isinstance(data, dict) or not data.get("ok") or "id" not in data:
            raise SightingClientError("unexpected response to sighting report")
        return str(data["id"])

    def latest(self) -> Optional[dict]:
        data = self._request("GET", "/api/sightings/latest")
        if data is not None and not isinstance(data, dict):
            raise SightingClientError("unexpected latest sighting payload")
        return data

    def recent(self, minutes: Optional[float] = None) -> list:
        params = {"minutes": minutes} if minutes is not None else None
        data = self._request("GET", "/api/sightings", params=params)
        if not isinstance(data, list):
            raise SightingClientError("unexpected recent sightings payload")
        return data

    def distance_to_latest(self, lat: float, lng: float) -> Optional[float]:
        """Meters from (lat, lng) to the latest sighting, or None if there is none yet."""
        latest = self.latest()
        if latest is None:
            return None
        try:
            latest_lat, latest_lng = unpack_point(latest["loc"])
            return haversine_m(lat, lng, float(latest_lat), float(latest_lng))
        except (KeyError, TypeError, ValueError) as exc:
            raise SightingClientError("latest sighting has no usable location") from exc


def describe_distance_to_latest(client: SightingClient, lat: float, lng: float) -> str:
    """User-facing summary of how far away the latest sighting is. Never raises."""
    try:
        distance = client.distance_to_latest(lat, lng)
    except SightingClientError as exc:
        logger.warning("Could not compare with latest sighting: %s", exc)
        return "Unable to load the latest sighting right now."

    if distance is None:
        return "No sightings reported yet."
    if distance < 1000:
        return f"Latest sighting is {distance:.0f} m away."
    return f"Latest sighting is {distance / 1000:.1f} km away."
