"""Tests for shape_overlay/store.py."""
import json

import pytest
import requests

from shape_overlay.errors import DuplicateName, InvalidGeometry, NotFound, PersistenceFailure
from shape_overlay.store import HttpShapeStore, Page, page_from_payload, record_from_dto

POINT = {"type": "Point", "coordinates": [29.0, 41.0]}


class FakeResponse:
    def __init__(self, status, payload=None, text=None):
        self.status_code = status
        self.ok = 200 <= status < 400
        if text is None and payload is not None:
            text = json.dumps(payload)
        self.text = text or ""
        self.content = self.text.encode("utf-8")

    def json(self):
        return json.loads(self.text)


class FakeSession:
    def __init__(self, *responses, exc=None):
        self.responses = list(responses)
        self.exc = exc
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.responses.pop(0)


def _http(*responses, exc=None):
    session = FakeSession(*responses, exc=exc)
    return HttpShapeStore("http://api.test/api/", session=session), session


# --- in-memory ---

def test_memory_create_assigns_sequential_ids(store, run):
    a = run(store.create("a", POINT))
    b = run(store.create("b", POINT))
    assert (a.id, b.id) == (1, 2)


def test_memory_duplicate_name_case_insensitive(store, run):
    run(store.create("Park", POINT))
    with pytest.raises(DuplicateName):
        run(store.create(" park ", POINT))


def test_memory_update_and_delete_not_found(store, run):
    with pytest.raises(NotFound):
        run(store.update(5, "x", POINT))
    with pytest.raises(NotFound):
        run(store.delete(5))


def test_memory_update_allows_own_name(store, run):
    rec = run(store.create("a", POINT))
    moved = run(store.update(rec.id, "a", {"type": "Point", "coordinates": [1, 1]}))
    assert moved.geometry["coordinates"] == [1, 1]


def test_memory_rejects_bad_geometry(store, run):
    with pytest.raises(InvalidGeometry):
        run(store.create("m", {"type": "MultiPoint", "coordinates": [[0, 0]]}))
    with pytest.raises(InvalidGeometry):
        run(store.create("e", {"type": "Point", "coordinates": []}))


def test_memory_returns_copies(store, run):
    geom = {"type": "Point", "coordinates": [0, 0]}
    run(store.create("a", geom))
    geom["coordinates"][0] = 99
    assert run(store.list_all())[0].geometry["coordinates"] == [0, 0]


def test_memory_paging_sort_and_filter(store, square, run):
    run(store.create("b", POINT))
    run(store.create("a", square(0, 0, 1, 1)))
    run(store.create("c", square(2, 2, 3, 3)))

    page = run(store.list_paged(1, 2, "All", "name_asc"))
    assert [it["name"] for it in page.items] == ["a", "b"]
    assert (page.total_items, page.total_pages) == (3, 2)
    assert page.has_next and not page.has_previous

    polys = run(store.list_paged(1, 10, "Polygon", "id_desc"))
    assert [it["id"] for it in polys.items] == [3, 2]
    assert all(it["type"] == "Polygon" for it in polys.items)


def test_memory_paging_empty(store, run):
    page = run(store.list_paged())
    assert page.items == []
    assert page.total_pages == 0


# --- DTO / envelope helpers ---

def test_record_from_dto_variants():
    assert record_from_dto({"Id": 3, "Name": "x", "WKT": POINT}).geometry == POINT
    feat = {"id": 4, "name": "y", "geometry": {"type": "Feature", "geometry": POINT}}
    assert record_from_dto(feat).geometry == POINT
    assert record_from_dto({"name": "z"}).id is None


def test_page_from_payload_defaults():
    page = page_from_payload(None, 2, 25)
    assert page == Page(items=[], page=2, page_size=25, total_items=0, total_pages=0)


# --- HTTP ---

def test_http_create_unwraps_envelope(run):
    store, session = _http(FakeResponse(201, {"success": True, "message": "Record created successfully",
                                               "data": {"id": 7, "name": "a", "wkt": POINT}}))
    rec = run(store.create("a", POINT))
    assert (rec.id, rec.name, rec.geometry) == (7, "a", POINT)
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "http://api.test/api/Geometry")
    assert kwargs["json"] == {"name": "a", "wkt": POINT}


def test_http_duplicate_maps_to_taxonomy(run):
    store, _ = _http(FakeResponse(409, {"success": False, "message": "A geometry with the same name already exists."}))
    with pytest.raises(DuplicateName) as exc:
        run(store.create("a", POINT))
    assert exc.value.status == 409
    assert "same name" in exc.value.message


def test_http_not_found_on_delete(run):
    store, session = _http(FakeResponse(404, {"success": False, "message": "Record not found"}))
    with pytest.raises(NotFound):
        run(store.delete(9))
    assert session.calls[0][:2] == ("DELETE", "http://api.test/api/Geometry/9")


def test_http_validation_errors_collected(run):
    store, _ = _http(FakeResponse(400, {"success": False, "message": "Model validation failed",
                                        "errors": {"Name": ["Name is required."]}}))
    with pytest.raises(InvalidGeometry) as exc:
        run(store.update(1, "", POINT))
    assert exc.value.describe() == "Model validation failed: Name is required."


def test_http_success_false_in_200_is_failure(run):
    store, _ = _http(FakeResponse(200, {"success": False, "message": "nope"}))
    with pytest.raises(PersistenceFailure):
        run(store.delete(1))


def test_http_network_error(run):
    store, _ = _http(exc=requests.ConnectionError("refused"))
    with pytest.raises(PersistenceFailure) as exc:
        run(store.create("a", POINT))
    assert exc.value.message == "Failed to create record"


def test_http_update_without_data_keeps_id(run):
    store, _ = _http(FakeResponse(200, {"success": True, "message": "Record updated successfully", "data": None}))
    rec = run(store.update(3, "a", POINT))
    assert (rec.id, rec.name, rec.geometry) == (3, "a", POINT)


def test_http_list_paged_params(run):
    payload = {"success": True, "data": {"items": [{"id": 1, "name": "a", "type": "Point"}],
                                         "page": 1, "pageSize": 10, "totalItems": 1, "totalPages": 1}}
    store, session = _http(FakeResponse(200, payload))
    page = run(store.list_paged(1, 10, "Point", "name_asc"))
    assert page.total_items == 1
    assert session.calls[0][2]["params"] == {"page": 1, "pageSize": 10, "sort": "name_asc", "type": "Point"}


def test_http_list_all_plain_array(run):
    store, _ = _http(FakeResponse(200, [{"id": 1, "name": "a", "wkt": POINT}]))
    recs = run(store.list_all())
    assert [r.id for r in recs] == [1]
