"""GeoJSON for the map surface, built with geopandas like the rest of the app's outputs."""

from typing import List, Optional

import geopandas as gpd

from .codec import GeometryCodec
from .overlay import RenderFrame
from .shapes import Shape, ShapeKind

EMPTY_COLLECTION = '{"type": "FeatureCollection", "features": []}'


def shapes_to_geojson(shapes: List[Shape], codec: GeometryCodec, kind: Optional[ShapeKind] = None) -> str:
    rows = [s for s in shapes if kind is None or s.kind is kind]
    if not rows:
        return EMPTY_COLLECTION
    gdf = gpd.GeoDataFrame(
        {
            "id": [s.id or "" for s in rows],
            "name": [s.name for s in rows],
            "kind": [s.kind.value for s in rows],
        },
        geometry=gpd.GeoSeries([s.rendered for s in rows], crs=codec.planar_crs),
    )
    return gdf.to_crs(codec.geographic_crs).to_json()


def dissolved_to_geojson(frame: RenderFrame, codec: GeometryCodec) -> str:
    if not frame.dissolved:
        return EMPTY_COLLECTION
    gdf = gpd.GeoDataFrame(geometry=gpd.GeoSeries([r.rendered for r in frame.dissolved], crs=codec.planar_crs))
    return gdf.to_crs(codec.geographic_crs).to_json()
