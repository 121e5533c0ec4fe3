"""Named map shapes with a non-overlapping polygon overlay."""

from .boolean_ops import BooleanOpEngine, difference, union
from .codec import GeometryCodec, list_lat_lon
from .dissolve import DissolveCache
from .errors import (
    DegenerateResult,
    DuplicateName,
    InvalidGeometry,
    MalformedGeometry,
    NotFound,
    PersistenceFailure,
    ShapeOverlayError,
    UnsupportedGeometryKind,
)
from .overlay import OverlayMaintainer, RenderFrame, Submission, SubmissionState
from .precision import normalize
from .shapes import Shape, ShapeKind
from .splitter import split
from .store import HttpShapeStore, InMemoryShapeStore, Page, StoredShape

__all__ = [
    "BooleanOpEngine",
    "DegenerateResult",
    "DissolveCache",
    "DuplicateName",
    "GeometryCodec",
    "HttpShapeStore",
    "InMemoryShapeStore",
    "InvalidGeometry",
    "MalformedGeometry",
    "NotFound",
    "OverlayMaintainer",
    "Page",
    "PersistenceFailure",
    "RenderFrame",
    "Shape",
    "ShapeKind",
    "ShapeOverlayError",
    "StoredShape",
    "Submission",
    "SubmissionState",
    "UnsupportedGeometryKind",
    "difference",
    "list_lat_lon",
    "normalize",
    "split",
    "union",
]
