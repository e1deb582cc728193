"""
Map geometry: center preference, route order, markers, distances.
"""

import pytest

from freshbasket.app.schemas.tracking import LocationPoint
from freshbasket.tracking.geometry import (
    DEFAULT_CENTER,
    LatLng,
    MarkerKind,
    build_map_view,
    format_coordinates,
    haversine_km,
    map_center,
    route_length_km,
    route_line,
)

STORE = LatLng(9.1700, 77.8700)
AGENT = LatLng(9.1900, 77.8800)
DEST = LatLng(9.2050, 77.8920)


def test_route_without_agent_joins_store_and_destination():
    assert route_line(STORE, None, DEST) == [STORE, DEST]


def test_route_with_all_points_runs_through_agent():
    assert route_line(STORE, AGENT, DEST) == [STORE, AGENT, DEST]


def test_route_of_nothing_is_empty_and_center_is_default():
    assert route_line(None, None, None) == []
    assert map_center(None, None) == DEFAULT_CENTER
    assert DEFAULT_CENTER == LatLng(9.17, 77.87)


def test_center_prefers_agent_then_store():
    assert map_center(STORE, AGENT) == AGENT
    assert map_center(STORE, None) == STORE
    assert map_center(None, AGENT) == AGENT


def test_center_falls_back_to_given_default():
    custom = LatLng(10.0, 78.0)
    assert map_center(None, None, default=custom) == custom


def test_accepts_location_points():
    store = LocationPoint(latitude=9.17, longitude=77.87, address="FreshBasket Store")
    assert route_line(store, None, None) == [LatLng(9.17, 77.87)]


def test_map_view_markers_follow_present_points():
    view = build_map_view(store=STORE, agent=None, destination=DEST)

    assert [m.kind for m in view.markers] == [MarkerKind.STORE, MarkerKind.DESTINATION]
    assert view.marker(MarkerKind.AGENT) is None
    assert view.center == STORE
    assert view.zoom == 13
    assert view.route == [STORE, DEST]


def test_map_view_labels_and_descriptions():
    store = LocationPoint(latitude=9.17, longitude=77.87, address="FreshBasket Store, Kovilpatti")
    view = build_map_view(store=store, agent=AGENT, destination=DEST)

    assert view.marker(MarkerKind.STORE).label == "Store"
    assert view.marker(MarkerKind.STORE).description == "FreshBasket Store, Kovilpatti"
    assert view.marker(MarkerKind.AGENT).label == "Delivery Agent"
    assert view.marker(MarkerKind.AGENT).description == "9.1900°N, 77.8800°E"
    assert view.marker(MarkerKind.DESTINATION).label == "Delivery Location"
    assert view.center == AGENT


def test_geojson_uses_lon_lat_order():
    geojson = build_map_view(store=STORE, agent=AGENT, destination=DEST).to_geojson()

    assert geojson["type"] == "FeatureCollection"
    points = [f for f in geojson["features"] if f["geometry"]["type"] == "Point"]
    lines = [f for f in geojson["features"] if f["geometry"]["type"] == "LineString"]
    assert len(points) == 3
    assert points[0]["geometry"]["coordinates"] == [77.87, 9.17]
    assert lines[0]["geometry"]["coordinates"][1] == [77.88, 9.19]
    assert geojson["properties"]["zoom"] == 13


def test_single_point_has_no_route_feature():
    geojson = build_map_view(store=STORE).to_geojson()
    assert all(f["geometry"]["type"] == "Point" for f in geojson["features"])


def test_haversine_distance():
    assert haversine_km(STORE, STORE) == 0
    # one degree of latitude is ~111.19 km
    assert haversine_km(LatLng(9.0, 77.87), LatLng(10.0, 77.87)) == pytest.approx(111.19, abs=0.01)


def test_route_length_sums_legs():
    legs = haversine_km(STORE, AGENT) + haversine_km(AGENT, DEST)
    assert route_length_km([STORE, AGENT, DEST]) == pytest.approx(legs)
    assert route_length_km([STORE]) == 0


def test_format_coordinates_hemispheres():
    assert format_coordinates(LatLng(-33.8688, 151.2093)) == "33.8688°S, 151.2093°E"
    assert format_coordinates(LatLng(40.7128, -74.006)) == "40.7128°N, 74.0060°W"
