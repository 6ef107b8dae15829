"""
Purpose: Keeps each appointment's current_route in step with origin/destination/waypoint changes.
What it does:
- Tags every route request with a monotonic per-appointment request id
- Attaches a finished route only if its request is still the latest issued
  (a slow, superseded computation can never overwrite a newer route)
- Converts route errors into a RouteOutcome so the UI can say "route unavailable,
  will retry" without blocking
- Driver -> pickup routing and off-course re-routing from the live driver position
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence

from routing.errors import RouteError
from routing.geo import GeoPoint, distance_to_polyline_m
from routing.models import Route, TravelProfile
from routing.route_service import RouteEngine

from .state_machine import AppointmentStateMachine

logger = logging.getLogger(__name__)


class RouteRequestStatus(str, Enum):
    ATTACHED = "attached"        # route computed and now current
    SUPERSEDED = "superseded"    # a newer request started meanwhile, result dropped
    FAILED = "failed"            # provider error, see error / retryable
    SKIPPED = "skipped"          # nothing to do (no driver position, still on route...)


@dataclass(frozen=True)
class RouteOutcome:
    status: RouteRequestStatus
    request_id: int
    route: Optional[Route] = None
    error: Optional[RouteError] = None

    @property
    def retryable(self) -> bool:
        return self.error is not None and self.error.retryable


class RoutePlanner:
    def __init__(self, engine: RouteEngine, state_machine: AppointmentStateMachine,
                 off_route_threshold_m: Optional[float] = None):
        self.engine = engine
        self.state_machine = state_machine
        self.off_route_threshold_m = off_route_threshold_m or state_machine.policy.off_route_threshold_m
        self._request_ids = itertools.count(1)
        self._latest: Dict[str, int] = {}

    def latest_request_id(self, appointment_id: str) -> Optional[int]:
        return self._latest.get(appointment_id)

    def forget(self, appointment_id: str) -> None:
        """
        Stop planning for appointment_id and drop it from the state machine.
        A request still in flight finds no matching id and ends SUPERSEDED.
        """
        self._latest.pop(appointment_id, None)
        self.state_machine.forget(appointment_id)

    async def request_route(
        self,
        appointment_id: str,
        origin: GeoPoint,
        destination: GeoPoint,
        waypoints: Sequence[GeoPoint] = (),
        profile: Optional[TravelProfile] = None,
    ) -> RouteOutcome:
        # fail fast on unknown ids before burning a request id
        self.state_machine.get(appointment_id)

        request_id = next(self._request_ids)
        self._latest[appointment_id] = request_id

        try:
            route = await self.engine.compute_route(origin, destination, profile, waypoints=waypoints)
        except RouteError as exc:
            if self._latest.get(appointment_id) != request_id:
                return RouteOutcome(RouteRequestStatus.SUPERSEDED, request_id, error=exc)
            logger.warning("Route for %s unavailable (retryable=%s): %s", appointment_id, exc.retryable, exc)
            return RouteOutcome(RouteRequestStatus.FAILED, request_id, error=exc)

        if self._latest.get(appointment_id) != request_id:
            logger.debug("Dropping superseded route #%d for %s", request_id, appointment_id)
            return RouteOutcome(RouteRequestStatus.SUPERSEDED, request_id, route=route)

        self.state_machine.attach_route(appointment_id, route)
        return RouteOutcome(RouteRequestStatus.ATTACHED, request_id, route=route)

    async def route_driver_to_pickup(self, appointment_id: str,
                                     profile: Optional[TravelProfile] = None,
                                     waypoints: Sequence[GeoPoint] = ()) -> RouteOutcome:
        appointment = self.state_machine.get(appointment_id)
        if appointment.driver_location is None:
            return RouteOutcome(RouteRequestStatus.SKIPPED, 0)
        return await self.request_route(
            appointment_id,
            appointment.driver_location,
            appointment.pickup_location,
            waypoints=waypoints,
            profile=profile,
        )

    def is_off_course(self, appointment_id: str) -> bool:
        appointment = self.state_machine.get(appointment_id)
        route = appointment.current_route
        if appointment.driver_location is None or route is None or not route.geometry:
            return False
        return distance_to_polyline_m(appointment.driver_location, route.geometry) > self.off_route_threshold_m

    async def reroute_if_off_course(self, appointment_id: str,
                                    profile: Optional[TravelProfile] = None) -> RouteOutcome:
        """
        Recompute driver -> pickup when the driver has left the current route
        (or there is no route yet). Otherwise SKIPPED.
        """
        appointment = self.state_machine.get(appointment_id)
        if appointment.driver_location is None:
            return RouteOutcome(RouteRequestStatus.SKIPPED, 0)
        if appointment.current_route is not None and not self.is_off_course(appointment_id):
            return RouteOutcome(RouteRequestStatus.SKIPPED, 0)
        return await self.route_driver_to_pickup(appointment_id, profile)
