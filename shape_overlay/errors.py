"""Exception taxonomy for the overlay engine and its persistence collaborator."""

from typing import Any, List, Optional


class ShapeOverlayError(Exception):
    """Base class for every error raised by this package."""


class UnsupportedGeometryKind(ShapeOverlayError, ValueError):
    """Geometry is not a Point, LineString or Polygon."""

    def __init__(self, kind: str):
        super().__init__(f"Unsupported geometry kind: {kind!r} (expected Point, LineString or Polygon)")
        self.kind = kind


class MalformedGeometry(ShapeOverlayError, ValueError):
    """Geometry payload could not be parsed as GeoJSON or WKT, or is empty."""


class DegenerateResult(ShapeOverlayError):
    """A boolean operation or normalization could not produce a valid region.

    Never escapes the engine: callers see ``None`` / an empty region instead.
    """


class PersistenceFailure(ShapeOverlayError):
    """The persistence collaborator failed (transport or storage error)."""

    def __init__(self, message: str, status: Optional[int] = None, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = list(errors or [])

    def describe(self) -> str:
        if not self.errors:
            return self.message
        return f"{self.message}: " + " · ".join(str(e) for e in self.errors[:3])


class NotFound(PersistenceFailure):
    """Record not found."""


class DuplicateName(PersistenceFailure):
    """A geometry with the same name already exists."""


class InvalidGeometry(PersistenceFailure):
    """The store rejected the geometry payload."""
