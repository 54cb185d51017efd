import math
from typing import Sequence, Tuple

import h3

EARTH_RADIUS_M = 6_371_000

# ~174m hexagon edges; fine enough for city-scale proximity lookups
GEO_CELL_RESOLUTION = 9


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters between two points given in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    # Rounding can push a marginally past 1 for antipodal points
    a = min(1.0, a)
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def point(lng: float, lat: float) -> dict:
    """GeoJSON point. Longitude first."""
    return {"type": "Point", "coordinates": [lng, lat]}


def unpack_point(loc: dict) -> Tuple[float, float]:
    """Return (lat, lng) from a stored GeoJSON point."""
    coordinates: Sequence[float] = loc["coordinates"]
    lng, lat = coordinates
    return lat, lng


def geo_cell(lat: float, lng: float, resolution: int = GEO_CELL_RESOLUTION) -> str:
    return h3.latlng_to_cell(lat, lng, resolution)


def covering_cells(lat: float, lng: float, radius_m: float, resolution: int = GEO_CELL_RESOLUTION) -> list:
    """Cells whose union contains every point within radius_m of (lat, lng)."""
    edge_m = h3.average_hexagon_edge_length(resolution, unit="m")
    # Ring k centers sit at least 1.5 * k * edge from the origin center; the two
    # extra rings cover the offset of both points from their own cell centers.
    rings = max(1, math.ceil(radius_m / (1.5 * edge_m)) + 2)
    return list(h3.grid_disk(geo_cell(lat, lng, resolution), rings))
