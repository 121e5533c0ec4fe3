"""
PrecisionNormalizer.

Snap coordinates to a fixed grid and repair self-intersections so the
overlay engine gets inputs it can digest.
"""

import logging

from shapely import set_precision
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry
from shapely.validation import make_valid

from . import config

logger = logging.getLogger(__name__)

EMPTY = Polygon()


def grid_size_for(scale: float) -> float:
    return 1.0 / scale if scale and scale > 0 else 0.0


def repair(g: BaseGeometry) -> BaseGeometry:
    """make_valid, then buffer(0) for polygonal leftovers that still fail."""
    if g is None or g.is_empty or g.is_valid:
        return g
    try:
        g = make_valid(g)
    except Exception as e:
        logger.debug("make_valid failed (%s); falling back to buffer(0)", e)
    if not g.is_valid and g.geom_type in ("Polygon", "MultiPolygon"):
        g = g.buffer(0)
    return g


def fix_geom(g: BaseGeometry, grid_size: float = 0.0) -> BaseGeometry:
    """
    Repair, reduce precision (if ``grid_size`` > 0), then repair again:
    snapping to the grid can fold a valid ring onto itself.
    """
    if g is None or g.is_empty:
        return EMPTY

    g = repair(g)

    if grid_size and grid_size > 0:
        try:
            g = set_precision(g, grid_size)
        except Exception as e:
            logger.debug("set_precision failed (%s); keeping full precision", e)

    return repair(g)


def normalize(geometry: BaseGeometry, scale: float = config.PRECISION_SCALE) -> BaseGeometry:
    """Round to ``1/scale`` and repair. Irreparable input yields an empty polygon."""
    try:
        out = fix_geom(geometry, grid_size=grid_size_for(scale))
    except Exception as e:
        logger.warning("normalize: dropping irreparable geometry (%s)", e)
        return EMPTY
    if out is None or out.is_empty or not out.is_valid:
        return EMPTY
    return out
