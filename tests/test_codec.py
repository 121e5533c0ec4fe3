"""Tests for shape_overlay/codec.py."""
import pytest
from shapely.geometry import MultiPolygon, Point, box

from shape_overlay.codec import GeometryCodec, list_lat_lon
from shape_overlay.errors import MalformedGeometry, UnsupportedGeometryKind
from shape_overlay.shapes import ShapeKind


@pytest.fixture
def mercator():
    return GeometryCodec()


def test_to_planar_origin(mercator):
    p = mercator.to_planar({"type": "Point", "coordinates": [0.0, 0.0]})
    assert abs(p.x) < 1e-6
    assert abs(p.y) < 1e-6


def test_to_planar_antimeridian(mercator):
    p = mercator.to_planar({"type": "Point", "coordinates": [180.0, 0.0]})
    assert abs(p.x - 20037508.342789244) < 1e-3


def test_polygon_round_trip(mercator, square):
    geo = square(28.9, 41.0, 29.1, 41.2)
    back = mercator.to_geographic(mercator.to_planar(geo))
    assert back["type"] == "Polygon"
    for (x0, y0), (x1, y1) in zip(geo["coordinates"][0], back["coordinates"][0]):
        assert abs(x0 - x1) < 1e-6
        assert abs(y0 - y1) < 1e-6


def test_accepts_feature_and_wkt(codec):
    feat = {"type": "Feature", "properties": {}, "geometry": {"type": "Point", "coordinates": [1, 2]}}
    assert codec.to_planar(feat).equals(Point(1, 2))
    assert codec.to_planar("LINESTRING (0 0, 1 1)").geom_type == "LineString"


def test_kind_of(codec, square):
    assert codec.kind_of(square(0, 0, 1, 1)) is ShapeKind.POLYGON
    assert codec.kind_of({"type": "LineString", "coordinates": [[0, 0], [1, 1]]}) is ShapeKind.LINE


@pytest.mark.parametrize("geojson", [
    {"type": "MultiPoint", "coordinates": [[0, 0], [1, 1]]},
    {"type": "GeometryCollection", "geometries": [{"type": "Point", "coordinates": [0, 0]}]},
    {"type": "MultiPolygon", "coordinates": [[[[0, 0], [1, 0], [1, 1], [0, 0]]]]},
])
def test_unsupported_kinds_rejected(codec, geojson):
    with pytest.raises(UnsupportedGeometryKind):
        codec.to_planar(geojson)


def test_to_geographic_rejects_multipolygon(codec):
    with pytest.raises(UnsupportedGeometryKind):
        codec.to_geographic(MultiPolygon([box(0, 0, 1, 1), box(2, 2, 3, 3)]))


def test_list_lat_lon_formats_lat_first():
    assert list_lat_lon({"type": "Point", "coordinates": [29.0, 41.015]}) == ["41.01500, 29.00000"]


def test_list_lat_lon_polygon_outer_ring(square):
    rows = list_lat_lon(square(0, 0, 1, 2))
    assert len(rows) == 5
    assert rows[2] == "2.00000, 1.00000"


@pytest.mark.parametrize("payload", [
    {"type": "Polygon"},
    {},
    "POLYGON ((0 0, 1",
    '{"type": "Point", "coordinates": ',
    {"type": "Polygon", "coordinates": []},
])
def test_malformed_geometry_rejected(codec, payload):
    with pytest.raises(MalformedGeometry):
        codec.to_planar(payload)
