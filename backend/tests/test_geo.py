"""Tests for distance helpers."""

import json

import pytest

from locl_api.utils.geo import Coordinates, distance_between, format_distance, haversine_km, parse_coordinates


def test_one_degree_of_latitude():
    assert haversine_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)


def test_same_point_is_zero():
    assert haversine_km(37.3861, -122.0839, 37.3861, -122.0839) == 0


def test_distance_is_symmetric():
    a = Coordinates(37.3861, -122.0839)
    b = Coordinates(37.7749, -122.4194)
    assert distance_between(a, b) == pytest.approx(distance_between(b, a))


@pytest.mark.parametrize("km, expected", [
    (0.5, "500 m"),
    (3.26, "3.3 km"),
    (42, "42 km"),
    (0.35, "350 m"),
    (0.0, "0 m"),
    (2.345, "2.3 km"),
    (1.0, "1.0 km"),
    (12.6, "13 km"),
    (10.0, "10 km"),
    (0.9996, "1.0 km"),
    (0.9994, "999 m"),
    (9.96, "10 km"),
])
def test_format_distance(km, expected):
    assert format_distance(km) == expected


def test_parse_coordinates_from_dict():
    assert parse_coordinates({"latitude": 10.5, "longitude": -20.25}) == Coordinates(10.5, -20.25)


def test_parse_coordinates_short_keys_and_json_string():
    assert parse_coordinates(json.dumps({"lat": 1, "lon": 2})) == Coordinates(1.0, 2.0)


def test_parse_coordinates_zero_is_valid():
    assert parse_coordinates({"latitude": 0, "longitude": 0}) == Coordinates(0.0, 0.0)


@pytest.mark.parametrize("value", [
    None,
    "",
    "not json",
    {"city": "Nowhere"},
    {"latitude": 91, "longitude": 0},
    {"latitude": "abc", "longitude": 1},
    {"latitude": True, "longitude": 1},
    [1, 2],
])
def test_parse_coordinates_rejects_unusable_values(value):
    assert parse_coordinates(value) is None
