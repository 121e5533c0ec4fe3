"""Tests for shape_overlay/splitter.py."""
from shapely.geometry import GeometryCollection, LineString, MultiPolygon, Polygon, box

from shape_overlay.shapes import CanonicalRecord, ShapeKind
from shape_overlay.splitter import make_pieces, split


def _record(owner="7"):
    return CanonicalRecord(owner=owner, kind=ShapeKind.POLYGON, name="parcel",
                           canonical={"type": "Polygon", "coordinates": []},
                           planar=box(0, 0, 3, 1), durable_id=int(owner) if owner.isdigit() else None)


def test_split_polygon_single():
    assert len(split(box(0, 0, 1, 1))) == 1


def test_split_multipolygon_components():
    parts = split(MultiPolygon([box(0, 0, 1, 1), box(2, 0, 3, 1)]))
    assert len(parts) == 2
    assert all(p.geom_type == "Polygon" and p.is_valid for p in parts)
    assert all(p.exterior.is_ccw for p in parts)


def test_split_empty_and_none():
    assert split(Polygon()) == []
    assert split(None) == []


def test_split_collection_keeps_polygons():
    parts = split(GeometryCollection([box(0, 0, 1, 1), LineString([(0, 0), (5, 5)])]))
    assert len(parts) == 1


def test_make_pieces_single_keeps_owner_id():
    pieces = make_pieces(_record(), box(0, 0, 1, 1))
    assert [p.id for p in pieces] == ["7"]
    assert pieces[0].durable_id == 7
    assert pieces[0].name == "parcel"


def test_make_pieces_multi_numbers_and_shares_canonical():
    rec = _record()
    pieces = make_pieces(rec, MultiPolygon([box(0, 0, 1, 1), box(2, 0, 3, 1)]))
    assert [p.id for p in pieces] == ["7#0", "7#1"]
    assert all(p.canonical is rec.canonical for p in pieces)
    assert all(p.durable_id == 7 and p.owner == "7" for p in pieces)


def test_make_pieces_several_results_and_empty():
    pieces = make_pieces(_record(), box(0, 0, 1, 1), None, Polygon(), box(2, 0, 3, 1))
    assert [p.piece_index for p in pieces] == [0, 1]


def test_make_pieces_transient_owner_always_indexed():
    pieces = make_pieces(_record("tmp#abc"), box(0, 0, 1, 1))
    assert pieces[0].id == "tmp#abc#0"
    assert pieces[0].durable_id is None
