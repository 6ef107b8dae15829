import pytest
from datetime import datetime, timezone

from appointments.models import Appointment, PartyRef, PartyRole
from routing.geo import GeoPoint
from routing.models import Route, RouteStep


@pytest.fixture
def pickup_location():
    # Zocalo, Mexico City
    return GeoPoint(19.4326, -99.1332)


@pytest.fixture
def make_route():
    """
    Factory for a simple northbound route: depart, one right turn, arrive.
    """
    def _make(start=GeoPoint(19.40, -99.15), end=GeoPoint(19.42, -99.15)):
        mid = GeoPoint((start.latitude + end.latitude) / 2, (start.longitude + end.longitude) / 2)
        steps = (
            RouteStep("Head north onto Insurgentes", 1000.0, 120.0, "depart", "north", start,
                      voice_instruction="Head north on Insurgentes for one kilometer"),
            RouteStep("Turn right onto Reforma", 1200.0, 180.0, "turn", "right", mid),
            RouteStep("You have arrived at your destination", 0.0, 0.0, "arrive", "", end),
        )
        return Route(geometry=(start, mid, end), distance_m=2200.0, duration_s=300.0, steps=steps)
    return _make


@pytest.fixture
def make_appointment(pickup_location):
    def _make(appointment_id="apt_1", with_driver=True):
        return Appointment.new(
            appointment_id=appointment_id,
            client=PartyRef("client_1", PartyRole.CLIENT, "Ana"),
            driver=PartyRef("drv_1", PartyRole.DRIVER, "Luis") if with_driver else None,
            pickup_location=pickup_location,
            scheduled_at=datetime(2026, 5, 4, 10, 0, tzinfo=timezone.utc),
        )
    return _make
