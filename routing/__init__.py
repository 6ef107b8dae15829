#Marks routing as a package.
#Re-exports the public APIs (GeoPoint, RouteEngine, DirectionsClient, travel_time...)
#so other modules import from routing without knowing internal file names.
#No business logic.

from .geo import (
    GeoPoint,
    bearing_deg,
    distance_km,
    distance_m,
    distance_to_polyline_m,
    format_distance,
    format_duration,
)
from .models import Place, Route, RouteStep, TravelProfile
from .errors import RouteError, RouteUnavailable, RouteNotFound, InsufficientWaypoints
from .policy import RoutingPolicy, default_routing_policy
from .directions_client import DirectionsClient
from .route_service import RouteEngine, extract_instructions, remap_waypoints
from .eta_service import TravelEstimate, route_summary, straight_line_estimate, travel_time

__all__ = [
    "GeoPoint",
    "bearing_deg",
    "distance_km",
    "distance_m",
    "distance_to_polyline_m",
    "format_distance",
    "format_duration",
    "Place",
    "Route",
    "RouteStep",
    "TravelProfile",
    "RouteError",
    "RouteUnavailable",
    "RouteNotFound",
    "InsufficientWaypoints",
    "RoutingPolicy",
    "default_routing_policy",
    "DirectionsClient",
    "RouteEngine",
    "extract_instructions",
    "remap_waypoints",
    "TravelEstimate",
    "route_summary",
    "straight_line_estimate",
    "travel_time",
]
