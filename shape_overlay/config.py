"""
Runtime configuration.

Plain module constants; every value can be overridden from the environment
so the Streamlit app and the tests share one source of defaults.
"""

import os

# --------------------------
# Persistence
# --------------------------
# Empty base URL -> in-memory store (no backend needed).
SHAPES_API_BASE_URL = os.environ.get("SHAPES_API_BASE_URL", "").rstrip("/")
SHAPES_API_TIMEOUT = float(os.environ.get("SHAPES_API_TIMEOUT", "20"))

DEFAULT_PAGE_SIZE = int(os.environ.get("SHAPES_PAGE_SIZE", "10"))
DEFAULT_SORT = "id_desc"
VALID_SORTS = ("id_asc", "id_desc", "name_asc", "name_desc")
TYPE_FILTERS = ("All", "Point", "LineString", "Polygon")

# --------------------------
# Coordinate reference systems
# --------------------------
GEOGRAPHIC_CRS = os.environ.get("GEOGRAPHIC_CRS", "EPSG:4326")
PLANAR_CRS = os.environ.get("PLANAR_CRS", "EPSG:3857")

# --------------------------
# Numerics
# --------------------------
# Grid size for precision reduction is 1 / PRECISION_SCALE planar units.
PRECISION_SCALE = float(os.environ.get("PRECISION_SCALE", "1e6"))

# snap tolerance = factor * map resolution (planar units per pixel)
SNAP_RESOLUTION_FACTOR = float(os.environ.get("SNAP_RESOLUTION_FACTOR", "2.0"))
WEB_MERCATOR_RESOLUTION_Z0 = 156543.03392804097

# --------------------------
# Logging
# --------------------------
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def snap_tolerance_for_resolution(resolution: float) -> float:
    """Snap tolerance in planar units for a map resolution (units per pixel)."""
    if not resolution or resolution <= 0:
        resolution = 1.0
    return SNAP_RESOLUTION_FACTOR * float(resolution)


def snap_tolerance_for_zoom(zoom: float) -> float:
    return snap_tolerance_for_resolution(WEB_MERCATOR_RESOLUTION_Z0 / (2 ** float(zoom)))
