"""
GeometryCodec: geographic GeoJSON (lon/lat) <-> planar shapely geometry.

Projection goes through geopandas/pyproj, the same way the border snapper
projected subjects into a metric CRS before clipping.
"""

import json
from typing import Any, Dict, List, Union

import geopandas as gpd
from shapely import wkt as shapely_wkt
from shapely.errors import ShapelyError
from shapely.geometry import mapping, shape
from shapely.geometry.base import BaseGeometry

from . import config
from .errors import MalformedGeometry, ShapeOverlayError, UnsupportedGeometryKind
from .shapes import ShapeKind

SUPPORTED_TYPES = {k.value for k in ShapeKind}

GeographicInput = Union[Dict[str, Any], str, BaseGeometry]


def _parse(geographic: GeographicInput) -> BaseGeometry:
    if isinstance(geographic, BaseGeometry):
        return geographic
    if isinstance(geographic, str):
        text = geographic.strip()
        if text.startswith("{"):
            return _parse(json.loads(text))
        return shapely_wkt.loads(text)
    if isinstance(geographic, dict):
        if geographic.get("type") == "Feature":
            geographic = geographic.get("geometry") or {}
        return shape(geographic)
    raise UnsupportedGeometryKind(type(geographic).__name__)


def _read_geographic(geographic: GeographicInput) -> BaseGeometry:
    """Accept a GeoJSON geometry/Feature mapping, a JSON string, WKT, or shapely."""
    try:
        geom = _parse(geographic)
    except ShapeOverlayError:
        raise
    except (ShapelyError, KeyError, IndexError, AttributeError, TypeError, ValueError) as e:
        raise MalformedGeometry(f"Could not read geometry: {e}") from e
    if geom is None or geom.is_empty:
        raise MalformedGeometry("Geometry cannot be empty.")
    return geom


def _check_kind(geom: BaseGeometry) -> BaseGeometry:
    if geom is None or geom.geom_type not in SUPPORTED_TYPES:
        raise UnsupportedGeometryKind(getattr(geom, "geom_type", "None"))
    return geom


class GeometryCodec:
    """Converts between the persisted geographic form and the planar working form."""

    def __init__(self, geographic_crs: str = config.GEOGRAPHIC_CRS, planar_crs: str = config.PLANAR_CRS):
        self.geographic_crs = geographic_crs
        self.planar_crs = planar_crs

    def _reproject(self, geom: BaseGeometry, src: str, dst: str) -> BaseGeometry:
        if src == dst:
            return geom
        return gpd.GeoSeries([geom], crs=src).to_crs(dst).iloc[0]

    def to_planar(self, geographic: GeographicInput) -> BaseGeometry:
        geom = _check_kind(_read_geographic(geographic))
        return self._reproject(geom, self.geographic_crs, self.planar_crs)

    def to_geographic(self, planar: BaseGeometry) -> Dict[str, Any]:
        geom = _check_kind(planar)
        return mapping(self._reproject(geom, self.planar_crs, self.geographic_crs))

    def kind_of(self, geographic: GeographicInput) -> ShapeKind:
        return ShapeKind.from_geom_type(_check_kind(_read_geographic(geographic)).geom_type)


def list_lat_lon(geographic: GeographicInput, digits: int = 5) -> List[str]:
    """Vertex list as ``"lat, lon"`` strings; polygons list their outer ring only."""
    geom = _read_geographic(geographic)
    t = geom.geom_type
    if t == "Point":
        coords = [geom.coords[0]]
    elif t == "LineString":
        coords = list(geom.coords)
    elif t == "Polygon":
        coords = list(geom.exterior.coords)
    elif t == "MultiPoint":
        coords = [p.coords[0] for p in geom.geoms]
    elif t == "MultiLineString":
        coords = [c for line in geom.geoms for c in line.coords]
    elif t == "MultiPolygon":
        coords = [c for poly in geom.geoms for c in poly.exterior.coords]
    else:
        return []
    return [f"{c[1]:.{digits}f}, {c[0]:.{digits}f}" for c in coords]
