from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from sighting_api.errors import PersistenceError
from sighting_api.store import SightingStore


def _iso(minutes_ago: float) -> str:
    return (datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)).isoformat()


def _parse(ts: str) -> datetime:
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert _parse(body["timestamp"]).tzinfo is not None


def test_create_client_form_and_read_latest(client):
    """Posting {lat, lng} returns an id and the latest document echoes it lng-first."""
    response = client.post("/api/sightings", json={"lat": 45.5579, "lng": -94.1632})

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert isinstance(body["id"], str)

    latest = client.get("/api/sightings/latest").json()
    assert str(latest["id"]) == body["id"]
    assert latest["loc"] == {"type": "Point", "coordinates": [-94.1632, 45.5579]}
    assert latest["accuracyM"] == 20
    assert latest["description"] == ""
    assert latest["status"] == "approved"
    assert set(latest) == {"id", "when", "loc", "accuracyM", "description", "status", "createdAt"}


def test_create_storage_form(client):
    payload = {
        "when": _iso(3),
        "loc": {"type": "Point", "coordinates": [-94.2, 45.6]},
        "accuracyM": 120,
        "description": "flying north",
    }

    assert client.post("/api/sightings", json=payload).status_code == 200

    latest = client.get("/api/sightings/latest").json()
    assert latest["loc"]["coordinates"] == [-94.2, 45.6]
    assert latest["accuracyM"] == 120
    assert latest["description"] == "flying north"
    assert abs(_parse(latest["when"]) - _parse(payload["when"])) < timedelta(seconds=1)


def test_zero_coordinates_are_valid(client):
    response = client.post("/api/sightings", json={"lat": 0, "lng": 0})

    assert response.status_code == 200


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"lat": 45.5},
        {"lat": 95, "lng": 10},
        {"lat": 10, "lng": -190},
        {"loc": {"type": "Point", "coordinates": "nope"}},
    ],
)
def test_invalid_location_returns_400(client, payload):
    response = client.post("/api/sightings", json=payload)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid location"}
    assert client.get("/api/sightings/latest").json() is None


def test_invalid_timestamp_returns_400(client):
    response = client.post("/api/sightings", json={"lat": 1, "lng": 1, "timestamp": "not a date"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid timestamp"}


def test_malformed_json_returns_400(client):
    response = client.post(
        "/api/sightings", content=b"{lat: 1", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert "error" in response.json()


def test_latest_empty_is_null(client):
    response = client.get("/api/sightings/latest")

    assert response.status_code == 200
    assert response.json() is None


def test_recent_window_and_order(client):
    for minutes_ago, text in [(90, "old"), (30, "middle"), (5, "new")]:
        client.post(
            "/api/sightings",
            json={"lat": 45.5, "lng": -94.1, "timestamp": _iso(minutes_ago), "description": text},
        )

    default_window = client.get("/api/sightings").json()
    assert [s["description"] for s in default_window] == ["new", "middle", "old"]

    last_hour = client.get("/api/sightings", params={"minutes": 60}).json()
    assert [s["description"] for s in last_hour] == ["new", "middle"]


def test_recent_non_numeric_minutes_uses_default(client):
    client.post("/api/sightings", json={"lat": 1, "lng": 1, "timestamp": _iso(100)})
    client.post("/api/sightings", json={"lat": 1, "lng": 1, "timestamp": _iso(200)})

    response = client.get("/api/sightings", params={"minutes": "soon"})

    assert response.status_code == 200
    assert len(response.json()) == 1


def test_persistence_failure_returns_generic_500(client):
    with patch.object(SightingStore, "create", side_effect=PersistenceError("connection refused")):
        response = client.post("/api/sightings", json={"lat": 1, "lng": 1})

    assert response.status_code == 500
    assert response.json() == {"error": "Server error"}


@pytest.mark.parametrize(
    "method,path",
    [("find_latest_approved", "/api/sightings/latest"), ("find_recent", "/api/sightings")],
)
def test_read_failures_return_500(client, method, path):
    with patch.object(SightingStore, method, side_effect=PersistenceError("timeout")):
        response = client.get(path)

    assert response.status_code == 500
    assert response.json() == {"error": "Server error"}


def test_huge_integer_latitude_returns_400(client):
    body = b'{"lat": 1' + b"0" * 400 + b', "lng": 0}'
    response = client.post("/api/sightings", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid location"}


def test_out_of_range_offset_timestamp_returns_400(client):
    response = client.post(
        "/api/sightings", json={"lat": 1, "lng": 1, "timestamp": "0001-01-01T00:00:00+05:00"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid timestamp"}
