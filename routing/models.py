"""
Purpose: Domain models for the Routing capability.
What it does:
- TravelProfile = DRIVING | DRIVING_TRAFFIC | WALKING | CYCLING
- RouteStep (one turn-by-turn maneuver)
- Route (geometry, totals, ordered steps, optional waypoint permutation)
- Place (nearby point of interest)

Rule: No HTTP calls here. Models only.
A Route is never mutated in place; recomputation produces a new Route.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .geo import GeoPoint


class TravelProfile(str, Enum):
    DRIVING = "driving"
    DRIVING_TRAFFIC = "driving_traffic"
    WALKING = "walking"
    CYCLING = "cycling"


@dataclass(frozen=True)
class RouteStep:
    """
    One maneuver of a route. Its index inside Route.steps is its identity.
    """
    instruction_text: str
    distance_m: float
    duration_s: float
    maneuver_type: str
    maneuver_modifier: str
    location: GeoPoint
    voice_instruction: str = ""
    banner_instruction: str = ""
    road_name: str = ""


@dataclass(frozen=True)
class Route:
    geometry: Tuple[GeoPoint, ...]
    distance_m: float
    duration_s: float
    steps: Tuple[RouteStep, ...]

    # only set for optimized trips: waypoint_order[i] is the visiting
    # position of input point i
    waypoint_order: Optional[Tuple[int, ...]] = None
    profile: TravelProfile = TravelProfile.DRIVING

    def __post_init__(self):
        if self.distance_m < 0:
            raise ValueError("distance_m must be >= 0")
        if self.duration_s < 0:
            raise ValueError("duration_s must be >= 0")

    @property
    def origin(self) -> Optional[GeoPoint]:
        return self.geometry[0] if self.geometry else None

    @property
    def destination(self) -> Optional[GeoPoint]:
        return self.geometry[-1] if self.geometry else None


@dataclass(frozen=True)
class Place:
    """A point of interest returned by a nearby search, with its distance from the search center."""
    id: str
    name: str
    address: str
    location: GeoPoint
    category: str
    distance_m: float
