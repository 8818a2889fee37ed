from __future__ import annotations

import pytest

from voicenav.domain.geometry import (
    Coordinate,
    decode_polyline,
    haversine_km,
    initial_bearing,
    nearest_path_point,
)


def test_decode_polyline_matches_reference_example():
    points = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")

    assert points == [
        Coordinate(38.5, -120.2),
        Coordinate(40.7, -120.95),
        Coordinate(43.252, -126.453),
    ]


def test_decode_polyline_handles_empty_input():
    assert decode_polyline("") == []


def test_haversine_one_degree_of_latitude():
    assert haversine_km(40.0, -74.0, 41.0, -74.0) == pytest.approx(111.195, abs=0.01)
    assert haversine_km(40.0, -74.0, 40.0, -74.0) == 0.0


def test_initial_bearing_cardinal_directions():
    origin = Coordinate(0.0, 0.0)

    assert initial_bearing(origin, Coordinate(1.0, 0.0)) == pytest.approx(0.0)
    assert initial_bearing(origin, Coordinate(0.0, 1.0)) == pytest.approx(90.0)
    assert initial_bearing(origin, Coordinate(-1.0, 0.0)) == pytest.approx(180.0)
    assert initial_bearing(origin, Coordinate(0.0, -1.0)) == pytest.approx(270.0)


def test_nearest_path_point_picks_closest_vertex():
    path = [Coordinate(40.0, -74.0), Coordinate(40.01, -74.0), Coordinate(40.02, -74.0)]

    nearest = nearest_path_point(Coordinate(40.011, -74.003), path)

    assert nearest == Coordinate(40.01, -74.0)
    assert nearest_path_point(Coordinate(40.0, -74.0), []) is None
