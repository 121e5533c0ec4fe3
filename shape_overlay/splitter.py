"""PieceSplitter: multi-part overlay results -> one single polygon per piece."""

from typing import List, Optional

from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient

from .boolean_ops import polygonal_parts
from .shapes import CanonicalRecord, Shape, ShapeKind, piece_id


def split(result: Optional[BaseGeometry]) -> List[Polygon]:
    """Components in the order the overlay produced them; empty/None -> []."""
    # exterior counter-clockwise, holes clockwise
    return [orient(p, sign=1.0) for p in polygonal_parts(result) if not p.is_empty]


def make_pieces(record: CanonicalRecord, *results: Optional[BaseGeometry]) -> List[Shape]:
    """Split ``results`` into Shapes inheriting name, ids and canonical geometry from ``record``.

    Pieces are numbered afresh on every call.
    """
    parts = [p for r in results for p in split(r)]
    return [
        Shape(
            id=piece_id(record.owner, i, len(parts)),
            kind=ShapeKind.POLYGON,
            rendered=part,
            canonical=record.canonical,
            name=record.name,
            durable_id=record.durable_id,
            owner=record.owner,
            piece_index=i,
        )
        for i, part in enumerate(parts)
    ]
