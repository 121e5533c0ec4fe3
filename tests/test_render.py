"""Tests for shape_overlay/render.py."""
import json

from shape_overlay.render import EMPTY_COLLECTION, dissolved_to_geojson, shapes_to_geojson
from shape_overlay.shapes import ShapeKind


def test_pieces_carry_id_and_name(two_squares):
    m, _, _ = two_squares
    fc = json.loads(shapes_to_geojson(m.frame().pieces, m.codec, ShapeKind.POLYGON))
    props = sorted((f["properties"]["id"], f["properties"]["name"]) for f in fc["features"])
    assert props == [("1", "first"), ("2", "second")]


def test_dissolved_has_no_attributes(two_squares):
    m, _, _ = two_squares
    fc = json.loads(dissolved_to_geojson(m.frame(), m.codec))
    assert len(fc["features"]) == 1
    assert fc["features"][0]["geometry"]["type"] == "Polygon"


def test_empty_layers(maintainer):
    frame = maintainer.frame()
    assert shapes_to_geojson(frame.pieces, maintainer.codec) == EMPTY_COLLECTION
    assert dissolved_to_geojson(frame, maintainer.codec) == EMPTY_COLLECTION


def test_kind_filter(maintainer, square, run):
    run(maintainer.add_shape("p", {"type": "Point", "coordinates": [1, 1]}))
    run(maintainer.add_shape("poly", square(0, 0, 2, 2)))
    fc = json.loads(shapes_to_geojson(maintainer.frame().pieces, maintainer.codec, ShapeKind.POINT))
    assert [f["properties"]["name"] for f in fc["features"]] == ["p"]
