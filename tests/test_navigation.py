import pytest

from navigation.external import external_navigation_url
from navigation.session import AtFinalStep, AtFirstStep, NavigationInactive, NavigationSession
from routing.geo import GeoPoint
from routing.models import Route


def test_advance_through_all_steps(make_route):
    session = NavigationSession.start(make_route())

    assert session.current_step_index == 0
    assert session.progress_label() == "Step 1 of 3"

    assert session.advance().maneuver_type == "turn"
    assert session.advance().maneuver_type == "arrive"
    assert session.is_last_step

    with pytest.raises(AtFinalStep):
        session.advance()
    assert session.current_step_index == 2


def test_retreat_stops_at_first_step(make_route):
    session = NavigationSession.start(make_route())
    with pytest.raises(AtFirstStep):
        session.retreat()

    session.advance()
    assert session.retreat().maneuver_type == "depart"


def test_stop_is_idempotent_and_resets(make_route):
    session = NavigationSession.start(make_route())
    session.advance()

    session.stop()
    session.stop()

    assert session.is_active is False
    assert session.current_step_index == 0
    with pytest.raises(NavigationInactive):
        session.advance()


def test_route_without_steps_cannot_be_navigated():
    empty = Route(geometry=(), distance_m=0.0, duration_s=0.0, steps=())
    with pytest.raises(ValueError):
        NavigationSession(empty)


def test_voice_toggle(make_route):
    session = NavigationSession.start(make_route())
    assert session.spoken_instruction() == "Head north on Insurgentes for one kilometer"

    assert session.toggle_voice() is False
    assert session.spoken_instruction() is None

    session.toggle_voice()
    session.advance()
    # no dedicated voice text: falls back to the instruction
    assert session.spoken_instruction() == "Turn right onto Reforma"


def test_remaining_totals_and_replace_route(make_route):
    session = NavigationSession.start(make_route())
    session.advance()
    assert session.remaining_distance_m() == 1200.0
    assert session.remaining_duration_s() == 180.0

    new_route = make_route(start=GeoPoint(19.41, -99.15))
    session.replace_route(new_route)
    # replacing the route ends the session
    assert session.route == new_route
    assert session.current_step_index == 0
    assert session.is_active is False
    with pytest.raises(NavigationInactive):
        session.advance()

    resumed = NavigationSession.start(session.route)
    assert resumed.is_active
    assert resumed.current_step_index == 0


def test_near_current_maneuver(make_route):
    route = make_route()
    session = NavigationSession.start(route)
    assert session.is_near_current_maneuver(route.steps[0].location)
    assert not session.is_near_current_maneuver(route.steps[2].location)


def test_external_navigation_urls(pickup_location):
    assert external_navigation_url(pickup_location) == \
        "https://www.google.com/maps/dir/?api=1&destination=19.4326,-99.1332"
    assert external_navigation_url(pickup_location, "waze") == \
        "https://waze.com/ul?ll=19.4326,-99.1332&navigate=yes"
    assert external_navigation_url(pickup_location, "apple") == "http://maps.apple.com/?daddr=19.4326,-99.1332"
    # unknown app falls back to google maps
    assert external_navigation_url(pickup_location, "here") == external_navigation_url(pickup_location)
