"""Shared fixtures for overlay tests.

Geometry runs through an identity codec (planar CRS == geographic CRS) so
square [0,0]-[2,2] has area 4 and the numbers in the tests stay readable.
"""
import asyncio

import pytest

from shape_overlay.codec import GeometryCodec
from shape_overlay.overlay import OverlayMaintainer
from shape_overlay.store import InMemoryShapeStore


def square_geojson(x0, y0, x1, y1):
    return {
        "type": "Polygon",
        "coordinates": [[[x0, y0], [x1, y0], [x1, y1], [x0, y1], [x0, y0]]],
    }


@pytest.fixture
def square():
    """square(x0, y0, x1, y1) -> GeoJSON polygon."""
    return square_geojson


@pytest.fixture
def run():
    return asyncio.run


@pytest.fixture
def codec():
    return GeometryCodec(geographic_crs="EPSG:4326", planar_crs="EPSG:4326")


@pytest.fixture
def store():
    return InMemoryShapeStore()


@pytest.fixture
def maintainer(store, codec):
    return OverlayMaintainer(store, codec=codec)


@pytest.fixture
def two_squares(maintainer, square, run):
    """Square 1 [0,0]-[2,2] then square 2 [1,1]-[3,3]."""
    first = run(maintainer.add_shape("first", square(0, 0, 2, 2)))
    second = run(maintainer.add_shape("second", square(1, 1, 3, 3)))
    return maintainer, first, second

