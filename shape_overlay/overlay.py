"""
OverlayMaintainer.

Keeps polygons from visually overlapping: a newly persisted polygon cuts the
polygons under it, and pieces left over are tracked individually. Every
mutation goes

    Drafted -> PersistPending -> Cutting -> Settled
    Drafted -> PersistPending -> PersistFailed

and nothing local changes before the store call succeeds.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from .boolean_ops import BooleanOpEngine, is_empty_result
from .precision import normalize
from .codec import GeographicInput, GeometryCodec
from .dissolve import DissolveCache
from .errors import MalformedGeometry, NotFound, UnsupportedGeometryKind
from .shapes import ALL_KINDS, CanonicalRecord, Shape, ShapeKind, ShapeRegistry, new_transient_key
from .splitter import make_pieces
from .store import StoredShape

logger = logging.getLogger(__name__)

FULLY_COVERED_NOTICE = "New polygon is fully inside existing polygon(s); it won't be shown."


class SubmissionState(str, Enum):
    DRAFTED = "Drafted"
    PERSIST_PENDING = "PersistPending"
    PERSIST_FAILED = "PersistFailed"
    CUTTING = "Cutting"
    SETTLED = "Settled"


@dataclass
class Submission:
    """One create or update travelling through the state machine."""

    name: str
    geographic: Dict[str, Any]
    kind: ShapeKind
    planar: BaseGeometry
    durable_id: Optional[int] = None
    transient_key: str = field(default_factory=new_transient_key)
    state: SubmissionState = SubmissionState.DRAFTED
    pieces: List[Shape] = field(default_factory=list)
    consumed: List[str] = field(default_factory=list)
    visible: bool = True
    error: Optional[BaseException] = None

    @property
    def owner(self) -> str:
        return str(self.durable_id) if self.durable_id is not None else self.transient_key


@dataclass
class RenderFrame:
    """What the map gets after each recompute."""

    pieces: List[Shape]
    dissolved: List[Shape]
    notices: List[str] = field(default_factory=list)


class OverlayMaintainer:
    def __init__(self, store, codec: Optional[GeometryCodec] = None,
                 engine: Optional[BooleanOpEngine] = None, snap_tolerance: float = 0.0):
        self.store = store
        self.codec = codec or GeometryCodec()
        self.engine = engine or BooleanOpEngine()
        self.registry = ShapeRegistry()
        self.dissolve = DissolveCache(self.engine)
        self.visible_kinds: Set[ShapeKind] = set(ALL_KINDS)
        self.snap_tolerance = snap_tolerance
        self.notices: List[str] = []

    # ------------------------------------------------------------------
    # drafting / persistence
    # ------------------------------------------------------------------
    def draft(self, name: str, geographic: GeographicInput, durable_id: Optional[int] = None) -> Submission:
        """Wrap a drawn or edited geometry. Raises UnsupportedGeometryKind or MalformedGeometry."""
        planar = self.codec.to_planar(geographic)
        kind = ShapeKind.from_geom_type(planar.geom_type)
        if not isinstance(geographic, dict):
            geographic = self.codec.to_geographic(planar)
        elif geographic.get("type") == "Feature":
            geographic = geographic["geometry"]
        return Submission(name=name, geographic=copy.deepcopy(geographic), kind=kind,
                          planar=planar, durable_id=durable_id)

    async def _persist(self, sub: Submission, call, *args) -> StoredShape:
        if sub.state is not SubmissionState.DRAFTED:
            raise ValueError(f"submission already {sub.state.value}")
        sub.state = SubmissionState.PERSIST_PENDING
        try:
            return await call(*args)
        except (Exception, asyncio.CancelledError) as e:
            sub.state = SubmissionState.PERSIST_FAILED
            sub.error = e
            logger.warning("persist of %r failed: %s", sub.name, e)
            raise

    def _record_for(self, sub: Submission) -> CanonicalRecord:
        return CanonicalRecord(owner=sub.owner, kind=sub.kind, name=sub.name,
                               canonical=sub.geographic, planar=sub.planar,
                               durable_id=sub.durable_id)

    async def commit(self, sub: Submission, snap_tolerance: Optional[float] = None) -> Submission:
        """Persist a new shape, then cut and settle it."""
        stored = await self._persist(sub, self.store.create, sub.name, sub.geographic)
        if stored.id is None:
            logger.warning("store returned no id for %r; keeping transient key %s", sub.name, sub.transient_key)
        sub.durable_id = stored.id

        record = self._record_for(sub)
        if record.kind is ShapeKind.POLYGON:
            sub.state = SubmissionState.CUTTING
            above = self._stacked_above(record)
            if above is None:
                sub.pieces, sub.consumed = self._settle(record, self._tol(snap_tolerance))
            else:
                # a later id settled first: slot in below it, as a reload would
                self.registry.add_record(record)
                self.registry.restack(record.owner, above)
                self._replay(self._tol(snap_tolerance))
                sub.pieces = self.registry.pieces_of(record.owner)
            sub.visible = bool(sub.pieces)
            if not sub.visible:
                self.notices.append(FULLY_COVERED_NOTICE)
        else:
            self.registry.add_record(record)
            sub.pieces = [self._plain_piece(record)]
            self.registry.set_pieces(record.owner, sub.pieces)

        self._refresh_overlay(snap_tolerance)
        sub.state = SubmissionState.SETTLED
        logger.info("settled %s %r as %d piece(s)", record.kind.value, record.name, len(sub.pieces))
        return sub

    async def add_shape(self, name: str, geographic: GeographicInput,
                        snap_tolerance: Optional[float] = None) -> Submission:
        return await self.commit(self.draft(name, geographic), snap_tolerance)

    async def update_shape(self, durable_id: int, name: str, geographic: GeographicInput,
                           snap_tolerance: Optional[float] = None) -> Submission:
        """Persist a rename/move/vertex edit, then recompute every polygon from canonical."""
        owner = self._require_owner(durable_id)
        sub = self.draft(name, geographic, durable_id=durable_id)
        stored = await self._persist(sub, self.store.update, durable_id, sub.name, sub.geographic)
        sub.name = stored.name or sub.name
        if owner not in self.registry.records:
            # deleted locally while the update was in flight
            sub.state = SubmissionState.PERSIST_FAILED
            sub.error = NotFound(f"Shape {durable_id} was deleted during the update")
            logger.warning("update of %s settled after its delete; ignoring", durable_id)
            raise sub.error

        position = self.registry.stacking_position(owner)
        previous = self.registry.drop(owner)
        record = self._record_for(sub)
        self.registry.add_record(record)
        if position is not None and previous.canonical == record.canonical:
            # rename only: keep its place in the stack
            self.registry.restack(owner, position)
        if record.kind is not ShapeKind.POLYGON:
            self.registry.set_pieces(owner, [self._plain_piece(record)])

        if ShapeKind.POLYGON in (record.kind, previous.kind):
            sub.state = SubmissionState.CUTTING
            self._replay(self._tol(snap_tolerance))
        sub.pieces = self.registry.pieces_of(owner)
        sub.visible = bool(sub.pieces)
        self._refresh_overlay(snap_tolerance)
        sub.state = SubmissionState.SETTLED
        return sub

    async def rename_shape(self, durable_id: int, name: str,
                           snap_tolerance: Optional[float] = None) -> Submission:
        record = self.registry.records[self._require_owner(durable_id)]
        return await self.update_shape(durable_id, name, record.canonical, snap_tolerance)

    async def delete_shape(self, durable_id: int, snap_tolerance: Optional[float] = None) -> None:
        owner = self._require_owner(durable_id)
        await self.store.delete(durable_id)
        record = self.registry.drop(owner)
        if record is None:
            logger.info("shape %s already gone locally", durable_id)
            return
        if record.kind is ShapeKind.POLYGON:
            self._replay(self._tol(snap_tolerance))
        self._refresh_overlay(snap_tolerance)

    async def load(self, snap_tolerance: Optional[float] = None) -> None:
        """Replace local state with everything the store holds."""
        self.load_records(await self.store.list_all(), snap_tolerance)

    def load_records(self, records: Iterable[StoredShape], snap_tolerance: Optional[float] = None) -> None:
        self.registry = ShapeRegistry()
        for rec in sorted(records, key=lambda r: (r.id is None, r.id or 0)):
            try:
                sub = self.draft(rec.name, rec.geometry, durable_id=rec.id)
            except (UnsupportedGeometryKind, MalformedGeometry) as e:
                logger.warning("skipping record %s (%r): %s", rec.id, rec.name, e)
                continue
            record = self._record_for(sub)
            self.registry.add_record(record)
            if record.kind is not ShapeKind.POLYGON:
                self.registry.set_pieces(record.owner, [self._plain_piece(record)])
        self._replay(self._tol(snap_tolerance))
        self._refresh_overlay(snap_tolerance)

    # ------------------------------------------------------------------
    # cutting
    # ------------------------------------------------------------------
    def _tol(self, snap_tolerance: Optional[float]) -> float:
        return self.snap_tolerance if snap_tolerance is None else float(snap_tolerance)

    def _require_owner(self, durable_id: int) -> str:
        owner = self.registry.owner_for(durable_id)
        if owner is None:
            raise NotFound(f"No local shape with id {durable_id}")
        return owner

    def _stacked_above(self, record: CanonicalRecord) -> Optional[int]:
        """Stacking position of the lowest polygon with a larger durable id, if any."""
        if record.durable_id is None:
            return None
        for position, owner in enumerate(self.registry.polygon_owners()):
            other = self.registry.records[owner].durable_id
            if other is not None and other > record.durable_id:
                return position
        return None

    @staticmethod
    def _plain_piece(record: CanonicalRecord) -> Shape:
        return Shape(id=record.owner, kind=record.kind, rendered=record.planar,
                     canonical=record.canonical, name=record.name,
                     durable_id=record.durable_id, owner=record.owner)

    def _remainder(self, candidate: BaseGeometry, against: Iterable[Shape], tol: float) -> Optional[BaseGeometry]:
        remainder = candidate
        for piece in against:
            if not piece.rendered.intersects(remainder):
                continue
            remainder = self.engine.difference(remainder, piece.rendered, tol)
            if is_empty_result(remainder):
                return None
        return remainder

    def _settle(self, record: CanonicalRecord, tol: float) -> Tuple[List[Shape], List[str]]:
        """Cut existing polygons by ``record`` and materialize its pieces.

        Returns (new pieces, owners fully consumed).
        """
        candidate = record.planar
        if not candidate.is_valid:
            candidate = normalize(candidate, self.engine.scale)
            logger.info("repaired self-intersecting polygon %s before cutting", record.owner)
        consumed: List[str] = []
        if candidate.is_empty:
            logger.warning("polygon %s is degenerate; nothing to render", record.owner)
            self.registry.add_record(record)
            self.registry.set_pieces(record.owner, [])
            return [], consumed

        # fully covered by what is already there: nothing gets cut
        if self._remainder(candidate, self.registry.polygon_pieces(exclude=[record.owner]), tol) is None:
            self.registry.add_record(record)
            self.registry.set_pieces(record.owner, [])
            return [], consumed

        for owner in self.registry.polygon_owners():
            if owner == record.owner:
                continue
            pieces = self.registry.pieces_of(owner)
            if not any(p.rendered.intersects(candidate) for p in pieces):
                continue
            results = []
            for p in pieces:
                if not p.rendered.intersects(candidate):
                    results.append(p.rendered)
                    continue
                # None (degenerate) counts as empty
                results.append(self.engine.difference(p.rendered, candidate, tol))
            cut = make_pieces(self.registry.records[owner], *results)
            self.registry.set_pieces(owner, cut)
            if not cut:
                consumed.append(owner)
                logger.info("polygon %s fully consumed by %s", owner, record.owner)

        remainder = self._remainder(candidate, self.registry.polygon_pieces(exclude=[record.owner]), tol)
        self.registry.add_record(record)
        pieces = make_pieces(record, remainder)
        self.registry.set_pieces(record.owner, pieces)
        return pieces, consumed

    def _replay(self, tol: float) -> None:
        """Rebuild every polygon's pieces from canonical geometry in stacking order."""
        order = self.registry.polygon_owners()
        self.registry.stacking = []
        for owner in order:
            self.registry.set_pieces(owner, [])
        for owner in order:
            self._settle(self.registry.records[owner], tol)

    # ------------------------------------------------------------------
    # rendering surface
    # ------------------------------------------------------------------
    def set_visible_kinds(self, kinds: Iterable[ShapeKind], snap_tolerance: Optional[float] = None) -> None:
        self.visible_kinds = {ShapeKind(k) for k in kinds}
        self._refresh_overlay(snap_tolerance)

    def visible_pieces(self) -> List[Shape]:
        return [s for s in self.registry.all_pieces() if s.kind in self.visible_kinds]

    def _refresh_overlay(self, snap_tolerance: Optional[float] = None) -> None:
        if ShapeKind.POLYGON not in self.visible_kinds:
            self.dissolve.clear()
            return
        visible = [s for s in self.visible_pieces() if s.is_polygon]
        self.dissolve.refresh(visible, self._tol(snap_tolerance))

    def frame(self) -> RenderFrame:
        """Current renderable pieces and dissolved borders; drains pending notices."""
        notices, self.notices = self.notices, []
        return RenderFrame(pieces=self.visible_pieces(), dissolved=list(self.dissolve.regions), notices=notices)

    def shape_set(self) -> Dict[str, bytes]:
        return self.registry.snapshot()

    def points_inside(self, owner: str) -> List[Tuple[str, str]]:
        """(id, name) of visible points inside the outer ring of ``owner``'s pieces."""
        if ShapeKind.POINT not in self.visible_kinds:
            return []
        shells = [Polygon(p.rendered.exterior) for p in self.registry.pieces_of(owner) if p.is_polygon]
        if not shells:
            return []
        out = []
        for s in self.registry.all_pieces():
            if s.kind is ShapeKind.POINT and any(shell.contains(s.rendered) for shell in shells):
                out.append((s.id, s.name or "(no name)"))
        return out
