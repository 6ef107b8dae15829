"""
Purpose: Route computation for downstream use.
Returns the "best route" information needed by:
- navigation guidance (turn-by-turn steps)
- map display (polyline geometry)
- distance/duration summaries
- multi-stop trips (waypoint order optimization)

It's the "I need an actual route" module. It is idempotent and side-effect
free: calling it again (e.g. on every waypoint edit) is safe and callers are
expected to replace, not merge, their previous Route.

Supersession of in-flight requests is not handled here, see
appointments.route_planner.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Protocol, Sequence, TypeVar

from .errors import InsufficientWaypoints, RouteUnavailable
from .geo import GeoPoint
from .models import Route, RouteStep, TravelProfile
from .policy import RoutingPolicy, default_routing_policy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DirectionsProvider(Protocol):
    """
    What RouteEngine needs from a directions adapter (DirectionsClient or a fake).
    Both calls are blocking; RouteEngine runs them in a worker thread.
    """
    def route(self, coordinates: Sequence[GeoPoint], profile: TravelProfile = ...) -> Route: ...

    def trip(self, coordinates: Sequence[GeoPoint], profile: TravelProfile = ...,
             *, fixed_first: bool = ..., fixed_last: bool = ...) -> Route: ...


class RouteEngine:
    """
    Async facade over a DirectionsProvider.

    Every call is bounded by policy.request_timeout_s; on expiry the caller
    gets RouteUnavailable instead of waiting forever.
    """
    def __init__(self, provider: DirectionsProvider, policy: Optional[RoutingPolicy] = None):
        self.provider = provider
        self.policy = policy or default_routing_policy()

    async def compute_route(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        profile: Optional[TravelProfile] = None,
        *,
        waypoints: Sequence[GeoPoint] = (),
    ) -> Route:
        """
        Point-to-point route, optionally forced through waypoints (in the order given).

        Raises:
            RouteUnavailable: provider down, HTTP failure or timeout (retryable)
            RouteNotFound: no path exists between these points
        """
        profile = TravelProfile(profile or self.policy.default_profile)
        coordinates = [origin, *waypoints, destination]

        route = await self._call(self.provider.route, coordinates, profile)
        logger.debug("Route computed: %.0f m, %.0f s, %d steps",
                     route.distance_m, route.duration_s, len(route.steps))
        return route

    async def optimize_waypoint_order(
        self,
        points: Sequence[GeoPoint],
        fixed_first: bool = True,
        fixed_last: bool = True,
        profile: Optional[TravelProfile] = None,
    ) -> Route:
        """
        Let the provider choose the visiting order of points.

        The returned route's geometry and steps are in visiting order;
        waypoint_order[i] tells where input point i ended up. Use
        remap_waypoints() to put your own per-point metadata in the same order.
        """
        if len(points) < 2:
            raise InsufficientWaypoints("At least 2 waypoints are required")

        profile = TravelProfile(profile or self.policy.default_profile)
        return await self._call(
            self.provider.trip, list(points), profile,
            fixed_first=fixed_first, fixed_last=fixed_last,
        )

    async def _call(self, fn, *args, **kwargs):
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, **kwargs),
                timeout=self.policy.request_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Directions call timed out after %.1fs", self.policy.request_timeout_s)
            raise RouteUnavailable(
                f"Directions provider did not answer within {self.policy.request_timeout_s}s"
            ) from exc


def extract_instructions(route: Route) -> List[RouteStep]:
    """Turn-by-turn steps of a route, in driving order."""
    return list(route.steps)


def remap_waypoints(items: Sequence[T], waypoint_order: Sequence[int]) -> List[T]:
    """
    Reorder caller metadata (names, ids...) into the provider's visiting order.

    items[i] belongs to input point i, and waypoint_order[i] is the position
    that point is visited at.
    """
    if len(items) != len(waypoint_order):
        raise ValueError("items and waypoint_order must have the same length")
    if sorted(waypoint_order) != list(range(len(waypoint_order))):
        raise ValueError(f"waypoint_order is not a permutation: {list(waypoint_order)}")

    ordered: List[Optional[T]] = [None] * len(items)
    for input_index, position in enumerate(waypoint_order):
        ordered[position] = items[input_index]
    return ordered
