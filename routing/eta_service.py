#Purpose: ETA estimation policy.
#Converts routing outputs into display-ready travel estimates used by:
#client-facing "driver arrives in X"
#admin fleet overview
#Typical responsibilities:
#Driver -> client ETA via the directions provider
#Fallback to a straight-line Haversine estimate when the provider is unavailable
#Formatting distance/duration for display
#Keeps ETA logic separate from route computation (route_service.py).

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import RouteUnavailable
from .geo import GeoPoint, distance_m, format_distance, format_duration
from .models import Route, TravelProfile
from .route_service import RouteEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TravelEstimate:
    """
    Distance/duration between two points plus their display strings.
    is_estimate is True when the numbers come from the straight-line fallback.
    """
    distance_m: float
    duration_s: float
    distance_text: str
    duration_text: str
    is_estimate: bool = False


def route_summary(route: Route) -> TravelEstimate:
    return TravelEstimate(
        distance_m=route.distance_m,
        duration_s=route.duration_s,
        distance_text=format_distance(route.distance_m),
        duration_text=format_duration(route.duration_s),
    )


def straight_line_estimate(origin: GeoPoint, destination: GeoPoint, speed_kmh: float) -> TravelEstimate:
    meters = distance_m(origin, destination)
    seconds = meters / (speed_kmh * 1000.0 / 3600.0)
    return TravelEstimate(
        distance_m=meters,
        duration_s=seconds,
        distance_text=format_distance(meters),
        duration_text=format_duration(seconds),
        is_estimate=True,
    )


async def travel_time(
    engine: RouteEngine,
    origin: GeoPoint,
    destination: GeoPoint,
    profile: Optional[TravelProfile] = None,
) -> TravelEstimate:
    """
    Road ETA from the provider; straight-line estimate if the provider is down.

    RouteNotFound is not masked: a missing road path is a real answer and the
    caller should see it.
    """
    try:
        route = await engine.compute_route(origin, destination, profile)
    except RouteUnavailable as exc:
        logger.warning("Falling back to straight-line ETA: %s", exc)
        return straight_line_estimate(origin, destination, engine.policy.fallback_speed_kmh)
    return route_summary(route)
