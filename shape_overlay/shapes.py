"""
Shape data model.

One canonical record per durable polygon, any number of rendered pieces
pointing back at it. The registry is an arena keyed by *owner* (durable id
as a string, or a transient key for records the store returned without an id).
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from shapely.geometry.base import BaseGeometry


class ShapeKind(str, Enum):
    POINT = "Point"
    LINE = "LineString"
    POLYGON = "Polygon"

    @classmethod
    def from_geom_type(cls, geom_type: str) -> "ShapeKind":
        for kind in cls:
            if kind.value == geom_type:
                return kind
        raise ValueError(f"No shape kind for geometry type {geom_type!r}")


ALL_KINDS = frozenset(ShapeKind)


def new_transient_key() -> str:
    return f"tmp#{uuid.uuid4().hex[:12]}"


def piece_id(owner: str, index: int, count: int) -> str:
    """Id of piece ``index`` out of ``count`` pieces of ``owner``.

    A single piece keeps the bare owner id; several pieces are numbered.
    """
    if count == 1 and not owner.startswith("tmp#"):
        return owner
    return f"{owner}#{index}"


@dataclass
class Shape:
    """A renderable entry.

    ``canonical`` is the full geographic GeoJSON geometry exactly as persisted
    and is never touched by cutting. ``rendered`` is planar and may be a cut
    remainder of it.
    """

    id: Optional[str]
    kind: ShapeKind
    rendered: BaseGeometry
    canonical: Optional[Dict[str, Any]]
    name: str = ""
    durable_id: Optional[int] = None
    owner: Optional[str] = None
    piece_index: int = 0
    is_overlay_derived: bool = False

    @property
    def is_durable(self) -> bool:
        return self.durable_id is not None

    @property
    def is_polygon(self) -> bool:
        return self.kind is ShapeKind.POLYGON


@dataclass
class CanonicalRecord:
    """Source of truth for one persisted shape."""

    owner: str
    kind: ShapeKind
    name: str
    canonical: Dict[str, Any]
    planar: BaseGeometry
    durable_id: Optional[int] = None


@dataclass
class ShapeRegistry:
    """Arena of canonical records plus the pieces currently rendered for each."""

    records: Dict[str, CanonicalRecord] = field(default_factory=dict)
    pieces: Dict[str, List[Shape]] = field(default_factory=dict)
    # polygon owners, bottom to top
    stacking: List[str] = field(default_factory=list)

    def add_record(self, record: CanonicalRecord) -> None:
        self.records[record.owner] = record
        self.pieces.setdefault(record.owner, [])
        if record.kind is ShapeKind.POLYGON:
            if record.owner in self.stacking:
                self.stacking.remove(record.owner)
            self.stacking.append(record.owner)

    def drop(self, owner: str) -> Optional[CanonicalRecord]:
        record = self.records.pop(owner, None)
        self.pieces.pop(owner, None)
        if owner in self.stacking:
            self.stacking.remove(owner)
        return record

    def stacking_position(self, owner: str) -> Optional[int]:
        return self.stacking.index(owner) if owner in self.stacking else None

    def restack(self, owner: str, position: int) -> None:
        if owner in self.stacking:
            self.stacking.remove(owner)
            self.stacking.insert(position, owner)

    def set_pieces(self, owner: str, pieces: List[Shape]) -> None:
        self.pieces[owner] = list(pieces)

    def pieces_of(self, owner: str) -> List[Shape]:
        return list(self.pieces.get(owner, []))

    def polygon_owners(self) -> List[str]:
        return list(self.stacking)

    def all_pieces(self) -> Iterator[Shape]:
        for owner in self.records:
            yield from self.pieces.get(owner, [])

    def polygon_pieces(self, exclude: Iterable[str] = ()) -> List[Shape]:
        skip = set(exclude)
        out = []
        for owner in self.stacking:
            if owner in skip:
                continue
            out.extend(self.pieces.get(owner, []))
        return out

    def find_piece(self, shape_id: str) -> Optional[Shape]:
        for shape in self.all_pieces():
            if shape.id == shape_id:
                return shape
        return None

    def owner_for(self, durable_id: int) -> Optional[str]:
        owner = str(durable_id)
        return owner if owner in self.records else None

    def snapshot(self) -> Dict[str, bytes]:
        """Piece id -> WKB of rendered geometry; used to compare shape sets."""
        return {s.id: s.rendered.wkb for s in self.all_pieces()}
