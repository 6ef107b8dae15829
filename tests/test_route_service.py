import asyncio
import time

import pytest

from routing.errors import InsufficientWaypoints, RouteNotFound, RouteUnavailable
from routing.eta_service import route_summary, straight_line_estimate, travel_time
from routing.geo import GeoPoint, distance_m
from routing.models import Route, TravelProfile
from routing.policy import RoutingPolicy
from routing.route_service import RouteEngine, extract_instructions, remap_waypoints

ORIGIN = GeoPoint(19.40, -99.15)
DESTINATION = GeoPoint(19.42, -99.15)


class FakeProvider:
    """Records calls and answers with a canned route (or raises `error`)."""
    def __init__(self, route=None, error=None, delay_s=0.0):
        self.route_result = route
        self.error = error
        self.delay_s = delay_s
        self.calls = []

    def route(self, coordinates, profile=TravelProfile.DRIVING):
        self.calls.append(("route", list(coordinates), profile))
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.route_result

    def trip(self, coordinates, profile=TravelProfile.DRIVING, *, fixed_first=True, fixed_last=True):
        self.calls.append(("trip", list(coordinates), profile, fixed_first, fixed_last))
        if self.error is not None:
            raise self.error
        order = tuple(reversed(range(len(coordinates))))
        return Route(geometry=tuple(coordinates), distance_m=1.0, duration_s=1.0,
                     steps=(), waypoint_order=order)


def test_compute_route_passes_waypoints_in_order(make_route):
    provider = FakeProvider(route=make_route())
    engine = RouteEngine(provider)
    stop = GeoPoint(19.41, -99.16)

    route = asyncio.run(engine.compute_route(ORIGIN, DESTINATION, waypoints=[stop]))

    assert route is provider.route_result
    kind, coordinates, profile = provider.calls[0]
    assert coordinates == [ORIGIN, stop, DESTINATION]
    assert profile == TravelProfile.DRIVING
    assert [s.maneuver_type for s in extract_instructions(route)] == ["depart", "turn", "arrive"]


def test_compute_route_is_idempotent(make_route):
    provider = FakeProvider(route=make_route())
    engine = RouteEngine(provider)

    first = asyncio.run(engine.compute_route(ORIGIN, DESTINATION))
    second = asyncio.run(engine.compute_route(ORIGIN, DESTINATION))

    assert first == second
    assert len(provider.calls) == 2


def test_slow_provider_times_out_as_unavailable(make_route):
    provider = FakeProvider(route=make_route(), delay_s=0.5)
    engine = RouteEngine(provider, RoutingPolicy(request_timeout_s=0.05))

    with pytest.raises(RouteUnavailable):
        asyncio.run(engine.compute_route(ORIGIN, DESTINATION))


def test_provider_errors_propagate():
    engine = RouteEngine(FakeProvider(error=RouteNotFound("no path")))
    with pytest.raises(RouteNotFound):
        asyncio.run(engine.compute_route(ORIGIN, DESTINATION))


def test_optimize_needs_two_points():
    engine = RouteEngine(FakeProvider())
    with pytest.raises(InsufficientWaypoints):
        asyncio.run(engine.optimize_waypoint_order([ORIGIN]))
    # also a ValueError for callers that only know the builtin
    with pytest.raises(ValueError):
        asyncio.run(engine.optimize_waypoint_order([]))


def test_optimize_forwards_fixed_endpoints():
    provider = FakeProvider()
    engine = RouteEngine(provider)
    points = [ORIGIN, GeoPoint(19.41, -99.16), DESTINATION]

    route = asyncio.run(engine.optimize_waypoint_order(points, fixed_first=True, fixed_last=False,
                                                       profile=TravelProfile.CYCLING))

    assert provider.calls[0] == ("trip", points, TravelProfile.CYCLING, True, False)
    assert route.waypoint_order == (2, 1, 0)


def test_remap_waypoints():
    # input 1 is visited last, input 2 second
    assert remap_waypoints(["warehouse", "client", "inspection bay"], (0, 2, 1)) == [
        "warehouse", "inspection bay", "client",
    ]
    with pytest.raises(ValueError):
        remap_waypoints(["a", "b"], (0, 0))
    with pytest.raises(ValueError):
        remap_waypoints(["a", "b"], (0, 1, 2))


def test_route_summary_formats_totals(make_route):
    summary = route_summary(make_route())
    assert summary.distance_text == "2.2 km"
    assert summary.duration_text == "5m"
    assert summary.is_estimate is False


def test_travel_time_falls_back_to_straight_line():
    engine = RouteEngine(FakeProvider(error=RouteUnavailable("down")), RoutingPolicy(fallback_speed_kmh=36.0))

    estimate = asyncio.run(travel_time(engine, ORIGIN, DESTINATION))

    assert estimate.is_estimate is True
    assert estimate.distance_m == pytest.approx(distance_m(ORIGIN, DESTINATION))
    # 36 km/h == 10 m/s
    assert estimate.duration_s == pytest.approx(estimate.distance_m / 10.0)
    assert estimate == straight_line_estimate(ORIGIN, DESTINATION, 36.0)


def test_travel_time_does_not_mask_route_not_found():
    engine = RouteEngine(FakeProvider(error=RouteNotFound("island")))
    with pytest.raises(RouteNotFound):
        asyncio.run(travel_time(engine, ORIGIN, DESTINATION))


def test_routing_policy_validation():
    with pytest.raises(ValueError):
        RoutingPolicy(request_timeout_s=0).validate()
    with pytest.raises(ValueError):
        RoutingPolicy(fallback_speed_kmh=-1).validate()
