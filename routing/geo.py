"""
Purpose: Pure geo math used everywhere routes and positions are handled.
What it does:
- GeoPoint value type (validated lat/lon, immutable)
- Haversine distance / bearing
- Distance from a point to a route polyline (off-route detection)
- Human formatting for distance and duration ("1.5 km", "1h 1m")

Rule: no network, no state. Safe to call from anywhere.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """
    A (latitude, longitude) pair in decimal degrees.

    Providers speak (lon, lat); we always store (lat, lon) and convert
    at the adapter boundary.
    """
    latitude: float
    longitude: float

    def __post_init__(self):
        if not (-90.0 <= self.latitude <= 90.0):
            raise ValueError(f"Invalid latitude: {self.latitude}")
        if not (-180.0 <= self.longitude <= 180.0):
            raise ValueError(f"Invalid longitude: {self.longitude}")

    @classmethod
    def from_lon_lat(cls, pair: Sequence[float]) -> GeoPoint:
        return cls(latitude=float(pair[1]), longitude=float(pair[0]))

    def as_lon_lat(self) -> Tuple[float, float]:
        return (self.longitude, self.latitude)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle (Haversine) distance in kilometers."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_m(a: GeoPoint, b: GeoPoint) -> float:
    return distance_km(a, b) * 1000.0


def bearing_deg(a: GeoPoint, b: GeoPoint) -> float:
    """Initial bearing from a to b, degrees clockwise from north in [0, 360)."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def distance_to_polyline_m(point: GeoPoint, geometry: Sequence[GeoPoint]) -> float:
    """
    Shortest distance (meters) from point to any segment of geometry.

    Uses a local equirectangular projection around the point, which is
    plenty accurate at city scale where off-route checks matter.
    """
    if not geometry:
        raise ValueError("geometry is empty")
    if len(geometry) == 1:
        return distance_m(point, geometry[0])

    lat0 = math.radians(point.latitude)
    meters_per_deg_lat = math.pi * EARTH_RADIUS_KM * 1000.0 / 180.0
    meters_per_deg_lon = meters_per_deg_lat * math.cos(lat0)

    def project(p: GeoPoint) -> Tuple[float, float]:
        return (
            (p.longitude - point.longitude) * meters_per_deg_lon,
            (p.latitude - point.latitude) * meters_per_deg_lat,
        )

    best = float("inf")
    ax, ay = project(geometry[0])
    for nxt in geometry[1:]:
        bx, by = project(nxt)
        dx, dy = bx - ax, by - ay
        seg_len_sq = dx * dx + dy * dy
        if seg_len_sq == 0.0:
            t = 0.0
        else:
            # origin is the point itself, so the projection is -a . d
            t = max(0.0, min(1.0, -(ax * dx + ay * dy) / seg_len_sq))
        cx, cy = ax + t * dx, ay + t * dy
        best = min(best, math.hypot(cx, cy))
        ax, ay = bx, by
    return best


def format_distance(meters: float) -> str:
    """
    "500 m" below one kilometer, "1.5 km" (one decimal) from there on.
    """
    if meters < 0:
        raise ValueError(f"distance must be >= 0, got {meters}")
    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    # half up: 2.5 m shows as "3 m"
    return f"{int(meters + 0.5)} m"


def format_duration(seconds: float) -> str:
    """
    "1h 1m" from one hour on, "1m" below. Always rounds down to whole minutes.
    """
    if seconds < 0:
        raise ValueError(f"duration must be >= 0, got {seconds}")
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
