"""
Persistence collaborators.

``HttpShapeStore`` talks to the geometry REST API with requests;
``InMemoryShapeStore`` keeps records in process for offline use and tests.
Both expose coroutines so the overlay maintainer can await them without
touching local state until the call resolves.
"""

import asyncio
import copy
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from . import config
from .errors import DuplicateName, InvalidGeometry, NotFound, PersistenceFailure

logger = logging.getLogger(__name__)

GEOMETRY_KEYS = ("wkt", "WKT", "geometry", "Geometry", "geom", "Geom")


@dataclass
class StoredShape:
    id: Optional[int]
    name: str
    geometry: Any

    @property
    def geom_type(self) -> str:
        if isinstance(self.geometry, dict):
            return str(self.geometry.get("type", ""))
        return ""


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    page: int = 1
    page_size: int = config.DEFAULT_PAGE_SIZE
    total_items: int = 0
    total_pages: int = 0

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def record_from_dto(dto: Dict[str, Any]) -> StoredShape:
    """Normalize a server DTO; accepts the casing variants the API has used."""
    geometry = None
    for key in GEOMETRY_KEYS:
        if dto.get(key) is not None:
            geometry = dto[key]
            break
    if isinstance(geometry, dict) and geometry.get("type") == "Feature":
        geometry = geometry.get("geometry")
    raw_id = dto.get("id", dto.get("Id"))
    return StoredShape(
        id=int(raw_id) if raw_id is not None else None,
        name=dto.get("name", dto.get("Name")) or "",
        geometry=geometry,
    )


def page_from_payload(data: Optional[Dict[str, Any]], page: int, page_size: int) -> Page:
    data = data or {}
    return Page(
        items=data.get("items") or [],
        page=data.get("page") or page,
        page_size=data.get("pageSize") or page_size,
        total_items=data.get("totalItems") or 0,
        total_pages=data.get("totalPages") or 0,
    )


# =========================
# HTTP
# =========================
class HttpShapeStore:
    """Client for ``{base_url}/Geometry``; responses use {success, message, data, errors}."""

    def __init__(self, base_url: str = config.SHAPES_API_BASE_URL,
                 timeout: float = config.SHAPES_API_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, fallback_error: str, **kwargs) -> Any:
        url = f"{self.base_url}/Geometry{path}"
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise PersistenceFailure(fallback_error) from e

        try:
            payload = r.json() if r.content else None
        except ValueError:
            payload = r.text

        envelope = payload if isinstance(payload, dict) and (
            "success" in payload or "message" in payload or "data" in payload) else None

        ok = r.ok and (envelope is None or envelope.get("success") is not False)
        if ok:
            if envelope is not None:
                return envelope.get("data")
            return payload

        message = str((envelope or {}).get("message") or fallback_error)
        errors = (envelope or {}).get("errors") or []
        if isinstance(errors, dict):
            errors = [m for msgs in errors.values() for m in (msgs if isinstance(msgs, list) else [msgs])]
        logger.warning("%s %s -> %s: %s", method, url, r.status_code, message)

        if r.status_code == 404:
            raise NotFound(message, r.status_code, errors)
        if r.status_code == 409:
            raise DuplicateName(message, r.status_code, errors)
        if r.status_code == 400:
            raise InvalidGeometry(message, r.status_code, errors)
        raise PersistenceFailure(message, r.status_code, errors)

    async def _call(self, *args, **kwargs) -> Any:
        return await asyncio.to_thread(self._request, *args, **kwargs)

    async def create(self, name: str, geometry: Dict[str, Any]) -> StoredShape:
        data = await self._call("POST", "", "Failed to create record",
                                json={"name": name, "wkt": geometry})
        return self._as_record(data, name, geometry)

    async def update(self, shape_id: int, name: str, geometry: Dict[str, Any]) -> StoredShape:
        data = await self._call("PUT", f"/{shape_id}", "Failed to update record",
                                json={"name": name, "wkt": geometry})
        rec = self._as_record(data, name, geometry)
        if rec.id is None:
            rec.id = shape_id
        return rec

    async def delete(self, shape_id: int) -> None:
        await self._call("DELETE", f"/{shape_id}", "Failed to delete record")

    async def list_all(self) -> List[StoredShape]:
        data = await self._call("GET", "", "Failed to load records")
        return [record_from_dto(d) for d in (data or []) if isinstance(d, dict)]

    async def list_paged(self, page: int = 1, page_size: int = config.DEFAULT_PAGE_SIZE,
                         type_filter: str = "All", sort: str = config.DEFAULT_SORT) -> Page:
        params = {"page": page, "pageSize": page_size, "sort": sort, "type": type_filter}
        data = await self._call("GET", "/paged", "Failed to load records", params=params)
        return page_from_payload(data if isinstance(data, dict) else None, page, page_size)

    @staticmethod
    def _as_record(data: Any, name: str, geometry: Dict[str, Any]) -> StoredShape:
        if isinstance(data, dict):
            rec = record_from_dto(data)
            if rec.geometry is None:
                rec.geometry = geometry
            if not rec.name:
                rec.name = name
            return rec
        return StoredShape(id=None, name=name, geometry=geometry)


# =========================
# In-memory
# =========================
class InMemoryShapeStore:
    """Same interface as the HTTP store, backed by a dict."""

    def __init__(self):
        self._records: Dict[int, StoredShape] = {}
        self._next_id = 1

    def _name_taken(self, name: str, exclude: Optional[int] = None) -> bool:
        key = name.strip().casefold()
        return any(r.name.strip().casefold() == key and i != exclude for i, r in self._records.items())

    @staticmethod
    def _check_geometry(geometry: Any) -> None:
        if not isinstance(geometry, dict) or geometry.get("type") not in config.TYPE_FILTERS[1:]:
            raise InvalidGeometry("Only Point, LineString, or Polygon are allowed.", 400)
        if not geometry.get("coordinates"):
            raise InvalidGeometry("Geometry cannot be empty.", 400)

    async def create(self, name: str, geometry: Dict[str, Any]) -> StoredShape:
        self._check_geometry(geometry)
        if self._name_taken(name):
            raise DuplicateName("A geometry with the same name already exists.", 409)
        rec = StoredShape(id=self._next_id, name=name, geometry=copy.deepcopy(geometry))
        self._records[rec.id] = rec
        self._next_id += 1
        return copy.deepcopy(rec)

    async def update(self, shape_id: int, name: str, geometry: Dict[str, Any]) -> StoredShape:
        if shape_id not in self._records:
            raise NotFound("Record not found", 404)
        self._check_geometry(geometry)
        if self._name_taken(name, exclude=shape_id):
            raise DuplicateName("Another geometry with the same name already exists.", 409)
        rec = StoredShape(id=shape_id, name=name, geometry=copy.deepcopy(geometry))
        self._records[shape_id] = rec
        return copy.deepcopy(rec)

    async def delete(self, shape_id: int) -> None:
        if self._records.pop(shape_id, None) is None:
            raise NotFound("Record not found", 404)

    async def list_all(self) -> List[StoredShape]:
        return [copy.deepcopy(r) for _, r in sorted(self._records.items())]

    async def list_paged(self, page: int = 1, page_size: int = config.DEFAULT_PAGE_SIZE,
                         type_filter: str = "All", sort: str = config.DEFAULT_SORT) -> Page:
        page = max(1, int(page))
        page_size = max(1, int(page_size))
        rows = list(self._records.values())
        if type_filter and type_filter != "All":
            rows = [r for r in rows if r.geom_type == type_filter]

        if sort not in config.VALID_SORTS:
            sort = "id_asc"
        field_name, direction = sort.split("_")
        if field_name == "name":
            rows.sort(key=lambda r: (r.name.casefold(), r.id), reverse=direction == "desc")
        else:
            rows.sort(key=lambda r: r.id, reverse=direction == "desc")

        total = len(rows)
        start = (page - 1) * page_size
        items = [{"id": r.id, "name": r.name, "type": r.geom_type} for r in rows[start:start + page_size]]
        return Page(items=items, page=page, page_size=page_size, total_items=total,
                    total_pages=math.ceil(total / page_size) if total else 0)


def default_store():
    if config.SHAPES_API_BASE_URL:
        return HttpShapeStore(config.SHAPES_API_BASE_URL)
    return InMemoryShapeStore()
