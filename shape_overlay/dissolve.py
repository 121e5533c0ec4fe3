"""
DissolveCache.

Derived, never persisted: the union of the visible polygon pieces, used only
to draw borders so cut seams between pieces stay hidden. Always rebuilt
from scratch.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from shapely.geometry.base import BaseGeometry

from .boolean_ops import BooleanOpEngine, is_empty_result
from .shapes import Shape, ShapeKind
from .splitter import split

logger = logging.getLogger(__name__)

# (snap tolerance, ((piece id, wkb), ...))
CacheKey = Tuple[float, Tuple[Tuple[str, bytes], ...]]


def dissolve(geoms: Iterable[BaseGeometry], engine: BooleanOpEngine,
             snap_tolerance: float = 0.0) -> List[BaseGeometry]:
    """Left-to-right pairwise union fold; a piece whose union fails is skipped."""
    acc: Optional[BaseGeometry] = None
    for g in geoms:
        if g is None or g.is_empty:
            continue
        if acc is None:
            acc = g
            continue
        merged = engine.union(acc, g, snap_tolerance)
        if merged is None:
            logger.warning("dissolve: union failed for one piece; leaving it out of the border overlay")
            continue
        acc = merged
    if is_empty_result(acc):
        return []
    return split(acc)


class DissolveCache:
    """Holds the dissolved regions for the last input set it was rebuilt from."""

    def __init__(self, engine: Optional[BooleanOpEngine] = None):
        self.engine = engine or BooleanOpEngine()
        self.regions: List[Shape] = []
        self._key: Optional[CacheKey] = None

    @staticmethod
    def key_for(pieces: Iterable[Shape], snap_tolerance: float = 0.0) -> CacheKey:
        return float(snap_tolerance), tuple((p.id or "", p.rendered.wkb) for p in pieces)

    def rebuild(self, visible_pieces: List[Shape], snap_tolerance: float = 0.0) -> List[Shape]:
        """Drop the current regions and recompute them from ``visible_pieces``."""
        regions = dissolve((p.rendered for p in visible_pieces if p.is_polygon), self.engine, snap_tolerance)
        self.regions = [
            Shape(id=None, kind=ShapeKind.POLYGON, rendered=r, canonical=None, is_overlay_derived=True)
            for r in regions
        ]
        self._key = self.key_for(visible_pieces, snap_tolerance)
        return self.regions

    def refresh(self, visible_pieces: List[Shape], snap_tolerance: float = 0.0) -> bool:
        """Rebuild only if the input set or tolerance changed. Returns True if rebuilt."""
        if self._key is not None and self.key_for(visible_pieces, snap_tolerance) == self._key:
            return False
        self.rebuild(visible_pieces, snap_tolerance)
        return True

    def clear(self) -> None:
        self.regions = []
        self._key = None

    @property
    def geometries(self) -> List[BaseGeometry]:
        return [r.rendered for r in self.regions]
