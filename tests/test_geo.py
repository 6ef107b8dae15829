import pytest

from routing.geo import (
    GeoPoint,
    bearing_deg,
    distance_km,
    distance_m,
    distance_to_polyline_m,
    format_distance,
    format_duration,
)


def test_haversine_jfk_to_lax():
    jfk = GeoPoint(40.6413, -73.7781)
    lax = GeoPoint(33.9416, -118.4085)

    d = distance_km(jfk, lax)

    assert d == pytest.approx(3974, rel=0.005)
    assert distance_km(lax, jfk) == pytest.approx(d)


def test_distance_to_self_is_zero(pickup_location):
    assert distance_m(pickup_location, pickup_location) == 0.0


def test_geopoint_rejects_out_of_range_coordinates():
    with pytest.raises(ValueError):
        GeoPoint(91.0, 0.0)
    with pytest.raises(ValueError):
        GeoPoint(0.0, -180.5)


def test_geopoint_lon_lat_conversion():
    p = GeoPoint.from_lon_lat([-99.1332, 19.4326])
    assert p.latitude == 19.4326
    assert p.as_lon_lat() == (-99.1332, 19.4326)


def test_bearing_cardinal_directions():
    origin = GeoPoint(0.0, 0.0)
    assert bearing_deg(origin, GeoPoint(1.0, 0.0)) == pytest.approx(0.0)
    assert bearing_deg(origin, GeoPoint(0.0, 1.0)) == pytest.approx(90.0)
    assert bearing_deg(origin, GeoPoint(-1.0, 0.0)) == pytest.approx(180.0)


def test_format_distance():
    assert format_distance(500) == "500 m"
    assert format_distance(0) == "0 m"
    # half meters round up
    assert format_distance(2.5) == "3 m"
    assert format_distance(0.4) == "0 m"
    assert format_distance(1500) == "1.5 km"
    assert format_distance(12345) == "12.3 km"
    with pytest.raises(ValueError):
        format_distance(-1)


def test_format_duration():
    assert format_duration(3660) == "1h 1m"
    assert format_duration(7200) == "2h 0m"
    assert format_duration(125) == "2m"
    # rounds down
    assert format_duration(59) == "0m"
    with pytest.raises(ValueError):
        format_duration(-5)


def test_distance_to_polyline():
    # segment running north along a meridian
    line = (GeoPoint(19.40, -99.15), GeoPoint(19.42, -99.15))

    on_line = GeoPoint(19.41, -99.15)
    assert distance_to_polyline_m(on_line, line) == pytest.approx(0.0, abs=0.5)

    # 0.001 deg of longitude east at ~19.4N is ~105 m
    beside = GeoPoint(19.41, -99.149)
    assert distance_to_polyline_m(beside, line) == pytest.approx(105.0, rel=0.02)

    # beyond the end of the segment the closest point is the endpoint
    past_end = GeoPoint(19.43, -99.15)
    assert distance_to_polyline_m(past_end, line) == pytest.approx(distance_m(past_end, line[1]), rel=0.01)


def test_distance_to_polyline_requires_geometry(pickup_location):
    with pytest.raises(ValueError):
        distance_to_polyline_m(pickup_location, ())
