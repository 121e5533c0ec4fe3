"""
BooleanOpEngine.

``difference`` and ``union`` over polygonal regions, each tried through an
ordered list of strategies:

1. direct shapely overlay on the raw inputs
2. snap-tolerant: both operands snapped onto each other first
3. precision-reduced: both operands normalized, then retried

The first strategy that returns a valid polygonal result wins. If none does
the call returns ``None`` ("no result"); callers treat that as empty.
"""

import logging
from typing import Callable, List, Optional, Tuple

from shapely.geometry import GeometryCollection, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import snap as shapely_snap

from . import config
from .errors import DegenerateResult
from .precision import EMPTY, grid_size_for, normalize

logger = logging.getLogger(__name__)

BinaryOp = Callable[[BaseGeometry, BaseGeometry], BaseGeometry]
Strategy = Callable[[BaseGeometry, BaseGeometry, BinaryOp], BaseGeometry]


def polygonal_parts(g: BaseGeometry) -> List[Polygon]:
    if g is None or g.is_empty:
        return []
    if isinstance(g, Polygon):
        return [g]
    if isinstance(g, (MultiPolygon, GeometryCollection)):
        out = []
        for part in g.geoms:
            out.extend(polygonal_parts(part))
        return out
    # lines/points left over by an overlay are debris
    return []


def _is_sliver(poly: Polygon, tolerance: float) -> bool:
    if poly.area <= 0:
        return True
    if tolerance <= 0:
        return False
    return poly.buffer(-tolerance / 2.0).is_empty


def clean_result(g: BaseGeometry, tolerance: float = 0.0) -> BaseGeometry:
    """
    Keep the polygonal members of ``g``, drop slivers thinner than
    ``tolerance``. Raises DegenerateResult if what is left is invalid.
    """
    parts = polygonal_parts(g)
    # an invalid part (bowtie) can pass through an overlay untouched
    if any(not p.is_valid for p in parts):
        raise DegenerateResult("invalid polygon part in result")
    parts = [p for p in parts if not _is_sliver(p, tolerance)]
    if not parts:
        return EMPTY
    out = parts[0] if len(parts) == 1 else MultiPolygon(parts)
    if not out.is_valid:
        raise DegenerateResult(f"invalid {out.geom_type} result")
    return out


def _direct(a: BaseGeometry, b: BaseGeometry, op: BinaryOp) -> BaseGeometry:
    return op(a, b)


def _snapped(tolerance: float) -> Strategy:
    def run(a: BaseGeometry, b: BaseGeometry, op: BinaryOp) -> BaseGeometry:
        aa = shapely_snap(a, b, tolerance)
        bb = shapely_snap(b, aa, tolerance)
        return op(aa, bb)
    return run


def _reduced(scale: float) -> Strategy:
    def run(a: BaseGeometry, b: BaseGeometry, op: BinaryOp) -> BaseGeometry:
        aa = normalize(a, scale)
        bb = normalize(b, scale)
        return op(aa, bb)
    return run


class BooleanOpEngine:
    """Pure function over (operands, tolerance) -> result or ``None``."""

    def __init__(self, scale: float = config.PRECISION_SCALE):
        self.scale = scale

    def strategies(self, snap_tolerance: float) -> List[Tuple[str, Strategy]]:
        tiers: List[Tuple[str, Strategy]] = [("direct", _direct)]
        if snap_tolerance and snap_tolerance > 0:
            tiers.append(("snap", _snapped(float(snap_tolerance))))
        tiers.append(("precision", _reduced(self.scale)))
        return tiers

    def working_tolerance(self) -> float:
        return grid_size_for(self.scale)

    def run(self, name: str, op: BinaryOp, a: BaseGeometry, b: BaseGeometry,
            snap_tolerance: float = 0.0) -> Optional[BaseGeometry]:
        tolerance = self.working_tolerance()
        for tier, strategy in self.strategies(snap_tolerance):
            try:
                result = clean_result(strategy(a, b, op), tolerance)
            except Exception as e:
                logger.debug("%s: tier %r failed (%s); trying next", name, tier, e)
                continue
            if tier != "direct":
                logger.debug("%s: resolved by %r tier", name, tier)
            return result
        logger.warning("%s: all strategies failed; treating result as empty", name)
        return None

    def difference(self, a: BaseGeometry, b: BaseGeometry, snap_tolerance: float = 0.0) -> Optional[BaseGeometry]:
        if a is None or a.is_empty:
            return EMPTY
        if b is None or b.is_empty:
            return self.run("difference", lambda x, y: x, a, a, snap_tolerance)
        return self.run("difference", lambda x, y: x.difference(y), a, b, snap_tolerance)

    def union(self, a: BaseGeometry, b: BaseGeometry, snap_tolerance: float = 0.0) -> Optional[BaseGeometry]:
        if a is None or a.is_empty:
            a, b = b, a
        if a is None or a.is_empty:
            return EMPTY
        if b is None or b.is_empty:
            return self.run("union", lambda x, y: x, a, a, snap_tolerance)
        return self.run("union", lambda x, y: x.union(y), a, b, snap_tolerance)


def is_empty_result(result: Optional[BaseGeometry]) -> bool:
    return result is None or result.is_empty


_default_engine = BooleanOpEngine()


def difference(a: BaseGeometry, b: BaseGeometry, snap_tolerance: float = 0.0) -> Optional[BaseGeometry]:
    return _default_engine.difference(a, b, snap_tolerance)


def union(a: BaseGeometry, b: BaseGeometry, snap_tolerance: float = 0.0) -> Optional[BaseGeometry]:
    return _default_engine.union(a, b, snap_tolerance)
