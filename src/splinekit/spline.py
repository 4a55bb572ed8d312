"""Mutable spline: point store, mutation operations and change notification."""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Any, Callable, Iterable, Optional
import uuid

import numpy as np

from .config import DEFAULT_CONFIG, SplineEngineConfig
from .distance_cache import DistanceCache
from .errors import InvariantViolation
from .evaluate import evaluate, evaluate_local, forward_local, get_forward, position_at
from .points import (
    ControlPoint,
    PointArrays,
    PointSample,
    check_matrix,
    inverse_matrix,
    transform_point,
)
from .projection import ProjectionResult, project_detailed
from .topology import (
    CLOSING_POINTS,
    MINIMUM_POINTS,
    CurveMode,
    Topology,
    anchor_count,
    anchor_index,
    handle_indexes,
    is_handle,
    point_index_from_t,
)


logger = logging.getLogger(__name__)

Listener = Callable[["Spline"], None]

# Bezier handles sit this fraction of the anchor-to-anchor distance away from their anchor.
HANDLE_DISTANCE_SCALE = 0.25


def _coerce_point(value: Any) -> ControlPoint:
    if isinstance(value, ControlPoint):
        return value.copy()
    return ControlPoint(position=value)


class Spline:
    """
    An ordered control-point store plus the mode/closed/space state it is read with.

    Queries take and return world-space values and delegate to the pure
    evaluation core. Mutations keep the per-mode point-count invariants, bump
    `revision` and notify listeners so dependents (distance caches, meshes)
    know to rebuild.

    Args:
        points: Initial open point sequence (control points or xyz triples),
            in the spline's own space.
        mode: Curve family.
        closed: Close the spline after loading `points`; the closing points the
            mode needs are appended.
        space_matrix: Optional local-to-world 4x4 matrix. None means the points
            are stored in world space.
        name: Identifier used by junctions; a random hex id by default.
        config: Engine configuration.
    """

    def __init__(
        self,
        points: Optional[Iterable[Any]] = None,
        mode: "CurveMode | str" = CurveMode.LINEAR,
        closed: bool = False,
        space_matrix: Optional[np.ndarray] = None,
        name: Optional[str] = None,
        config: Optional[SplineEngineConfig] = None,
    ):
        self.name = name or uuid.uuid4().hex
        self.config = config or DEFAULT_CONFIG
        self._mode = CurveMode.parse(mode)
        self._closed = False
        self._points: list[ControlPoint] = [_coerce_point(p) for p in ([] if points is None else points)]
        self._space_matrix = None if space_matrix is None else check_matrix(space_matrix).copy()
        self._listeners: list[Listener] = []
        self._snapshot: Optional[PointArrays] = None
        self.revision = 0
        self.distance_cache = DistanceCache(config=self.config.distance_cache)
        # Junctions keyed by the end they drive ("start" / "end"); managed by SplineRegistry.
        self.junctions: dict[str, Any] = {}

        n = len(self._points)
        if self._mode is CurveMode.BEZIER and n > 0 and (n - 1) % 3 != 0:
            raise InvariantViolation(
                f"Bezier splines need a point count of 3k + 1; got {n}."
            )
        if closed:
            self._set_closed(True)

    def __repr__(self) -> str:
        return (
            f"Spline(name={self.name!r}, mode={self._mode.value!r}, "
            f"closed={self._closed}, points={len(self._points)})"
        )

    def __len__(self) -> int:
        return len(self._points)

    # ------------------------------------------------------------------ state

    @property
    def mode(self) -> CurveMode:
        return self._mode

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def space_matrix(self) -> Optional[np.ndarray]:
        return None if self._space_matrix is None else self._space_matrix.copy()

    @property
    def points(self) -> tuple[ControlPoint, ...]:
        """Copies of the stored points, in the spline's own space."""
        return tuple(p.copy() for p in self._points)

    @property
    def topology(self) -> Topology:
        return Topology(mode=self._mode, closed=self._closed, point_count=len(self._points))

    @property
    def segment_count(self) -> int:
        return self.topology.segment_count

    @property
    def anchor_count(self) -> int:
        return anchor_count(self._mode, self._closed, len(self._points))

    def snapshot(self) -> PointArrays:
        """Read-only columnar view of the current points, reused until the next mutation."""
        if self._snapshot is None:
            self._snapshot = PointArrays.from_points(self._points)
        return self._snapshot

    def get_point(self, index: int) -> ControlPoint:
        return self._points[index].copy()

    def is_handle(self, index: int) -> bool:
        return is_handle(self._mode, index)

    def handle_indexes(self, index: int) -> tuple[int, int]:
        return handle_indexes(self._mode, self._closed, len(self._points), index)

    def point_index_from_t(self, t: float) -> int:
        return point_index_from_t(self.topology, t)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "mode": self._mode.value,
            "closed": self._closed,
            "space_matrix": None if self._space_matrix is None else self._space_matrix.tolist(),
            "points": [p.to_dict() for p in self._points],
        }

    # -------------------------------------------------------------- listeners

    def add_listener(self, callback: Listener) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _changed(self, reason: str) -> None:
        self.revision += 1
        self._snapshot = None
        logger.debug("Spline %s changed (%s); revision %d.", self.name, reason, self.revision)
        for callback in list(self._listeners):
            callback(self)

    # ---------------------------------------------------------------- queries

    def evaluate(self, t: float) -> PointSample:
        return evaluate(self.snapshot(), self._mode, self._closed, self._space_matrix, t, config=self.config)

    def position_at(self, t: float) -> np.ndarray:
        return position_at(self.snapshot(), self._mode, self._closed, self._space_matrix, t)

    def get_forward(self, t: float) -> np.ndarray:
        return get_forward(self.snapshot(), self._mode, self._closed, self._space_matrix, t, config=self.config)

    def project_detailed(self, position: Any) -> ProjectionResult:
        return project_detailed(
            self.snapshot(), self._mode, self._closed, self._space_matrix, position, config=self.config
        )

    def project(self, position: Any) -> float:
        """Whole-curve t nearest to a world-space position."""
        return self.project_detailed(position).t

    def project_point(self, position: Any) -> PointSample:
        """Interpolated point nearest to a world-space position."""
        return self.evaluate(self.project(position))

    def build_distance_cache(self, resolution: Optional[int] = None) -> DistanceCache:
        return self.distance_cache.build(
            self.snapshot(),
            self._mode,
            self._closed,
            self._space_matrix,
            resolution=resolution,
            revision=self.revision,
        )

    def _ensure_cache(self) -> DistanceCache:
        # Built lazily on first use; later rebuilds are the caller's job.
        if not self.distance_cache.is_built:
            self.build_distance_cache()
        return self.distance_cache

    def distance_to_t(self, distance: float) -> float:
        return self._ensure_cache().distance_to_t(distance, revision=self.revision)

    def t_to_distance(self, t: float) -> float:
        return self._ensure_cache().t_to_distance(t, revision=self.revision)

    def length(self) -> float:
        return self._ensure_cache().length(revision=self.revision)

    # -------------------------------------------------------------- mutations

    def _to_local(self, point: ControlPoint) -> ControlPoint:
        if self._space_matrix is None:
            return point
        return transform_point(point, inverse_matrix(self._space_matrix))

    def append(
        self,
        position: Any,
        orientation: Any = None,
        scale: Any = None,
    ) -> None:
        """
        Append a world-space point to the end of an open spline.

        Bezier splines grow by whole segments: the first call stores a lone
        anchor, later calls add two handles plus the new anchor and mirror the
        previous anchor's incoming handle so the join stays smooth.
        """
        if self._closed:
            raise InvariantViolation("Cannot append to a closed spline; open it first.")

        fields: dict[str, Any] = {"position": position}
        if orientation is not None:
            fields["orientation"] = orientation
        if scale is not None:
            fields["scale"] = scale
        point = self._to_local(ControlPoint(**fields))

        if self._mode is not CurveMode.BEZIER or not self._points:
            self._points.append(point)
            self._changed("append")
            return

        pos = point.position
        if len(self._points) == 1:
            start = self._points[0].position
            offset = pos - start
            self._points.extend(
                [
                    point.replace(position=start + offset * HANDLE_DISTANCE_SCALE),
                    point.replace(position=pos - offset * HANDLE_DISTANCE_SCALE),
                    point,
                ]
            )
        else:
            prev_anchor = self._points[-1].position
            offset = pos - prev_anchor
            prev_handle = self._points[-2]
            self._points[-2] = prev_handle.replace(position=prev_anchor - offset * HANDLE_DISTANCE_SCALE)
            self._points.extend(
                [
                    point.replace(position=prev_anchor + offset * HANDLE_DISTANCE_SCALE),
                    point.replace(position=pos - offset * HANDLE_DISTANCE_SCALE),
                    point,
                ]
            )
        self._changed("append")

    def insert_at(self, position: Any) -> bool:
        """
        Split the segment nearest to a world-space position at its projection.

        Returns False, leaving the spline untouched, when the projection lands
        on either end of the curve (t == 0 or t == 1) or the spline is too small
        to have segments.
        """
        topology = self.topology
        if topology.segment_count == 0:
            logger.info("Insert ignored: spline %s has no segments.", self.name)
            return False

        result = self.project_detailed(position)
        t = result.t
        if not 0.0 < t < 1.0:
            logger.info("Insert ignored: projection at t=%.6g is not inside the curve.", t)
            return False

        arrays = self.snapshot()
        index = point_index_from_t(topology, t)
        sample = evaluate_local(arrays, topology, t)
        forward = forward_local(arrays, topology, t, config=self.config)
        new_point = sample.to_point()

        if self._mode is CurveMode.BEZIER:
            start = self._points[index].position
            end = self._points[index + 3].position
            reach = min(
                float(np.linalg.norm(start - new_point.position)),
                float(np.linalg.norm(end - new_point.position)),
            ) * HANDLE_DISTANCE_SCALE
            handle0 = new_point.replace(position=new_point.position - forward * reach)
            handle1 = new_point.replace(position=new_point.position + forward * reach)
            # After the segment's first handle: [h0, new anchor, h1].
            self._points[index + 2 : index + 2] = [handle0, new_point, handle1]
        else:
            self._points.insert(index + 1, new_point)
        self._changed("insert")
        return True

    def reverse(self) -> None:
        """Reverse point order in place; Bezier handle roles survive because 3k+1/3k+2 swap."""
        self._points.reverse()
        # Junctions stay pinned to the same physical end, which is now the other one.
        flipped = {"start": "end", "end": "start"}
        self.junctions = {flipped[end]: replace(j, end=flipped[end]) for end, j in self.junctions.items()}
        self._changed("reverse")

    def resize(self, new_length: int) -> None:
        """
        Grow or truncate the store. New points sit at the origin with identity
        rotation and unit scale; initialising them is up to the caller.
        """
        new_length = max(0, int(new_length))
        if self._mode is CurveMode.BEZIER and new_length > 0 and (new_length - 1) % 3 != 0:
            raise InvariantViolation(
                f"Bezier splines need a point count of 3k + 1; cannot resize to {new_length}."
            )
        if new_length < len(self._points):
            del self._points[new_length:]
        else:
            self._points.extend(ControlPoint() for _ in range(new_length - len(self._points)))
        self._changed("resize")

    def _set_closed(self, closed: bool) -> bool:
        if closed == self._closed:
            return False
        extra = CLOSING_POINTS[self._mode]
        if closed:
            minimum = MINIMUM_POINTS[self._mode]
            if len(self._points) < minimum:
                raise InvariantViolation(
                    f"Closing a {self._mode.value} spline needs at least {minimum} points; "
                    f"got {len(self._points)}."
                )
            self._points.extend(self._points[0].copy() for _ in range(extra))
            self._closed = True
            self._ensure_closed()
        else:
            if extra:
                del self._points[len(self._points) - extra :]
            self._closed = False
        return True

    def set_closed(self, closed: bool) -> None:
        """
        Open or close the spline. Linear adds/removes 1 closing point, Bezier 3
        (mirrored handles plus the repeated first anchor), BSpline none. Calling
        it with the current value is a no-op.
        """
        if self._set_closed(bool(closed)):
            self._changed("close" if closed else "open")

    def _ensure_closed(self) -> None:
        if not self._closed or not self._points:
            return
        if self._mode is CurveMode.LINEAR:
            self._points[-1] = self._points[0].copy()
        elif self._mode is CurveMode.BEZIER:
            length = len(self._points)
            prev_handle = self._points[length - 5]
            prev_anchor = self._points[length - 4]
            first_anchor = self._points[0]
            first_handle = self._points[1]
            self._points[length - 3] = prev_anchor.replace(
                position=prev_anchor.position + (prev_anchor.position - prev_handle.position)
            )
            self._points[length - 2] = first_anchor.replace(
                position=first_anchor.position + (first_anchor.position - first_handle.position)
            )
            self._points[length - 1] = first_anchor.copy()
        # BSpline closes purely through index wraparound.

    def ensure_closed(self) -> None:
        """Restore continuity after the first or last points of a closed spline were edited."""
        if not self._closed:
            return
        self._ensure_closed()
        self._changed("ensure-closed")

    def set_mode(self, mode: "CurveMode | str") -> None:
        """
        Switch curve family.

        Closed splines are opened under the old mode and re-closed under the new
        one. Switching to Bezier pads the store with points continuing along the
        curve's end direction until the count is 3k + 1.
        """
        new_mode = CurveMode.parse(mode)
        if new_mode is self._mode:
            return
        was_closed = self._closed
        self._set_closed(False)

        if new_mode is CurveMode.BEZIER and self._points:
            remainder = (len(self._points) - 1) % 3
            create_count = {0: 0, 1: 2, 2: 1}[remainder]
            if create_count:
                arrays = PointArrays.from_points(self._points)
                topology = self.topology
                tail = evaluate_local(arrays, topology, 1.0).to_point()
                forward = forward_local(arrays, topology, 1.0, config=self.config)
                for _ in range(create_count):
                    tail = tail.replace(position=tail.position + forward)
                    self._points.append(tail)
                logger.warning(
                    "Created %d new point(s) to keep spline %s a valid Bezier spline.",
                    create_count,
                    self.name,
                )

        self._mode = new_mode
        self._snapshot = None
        if was_closed:
            self._set_closed(True)
        self._changed("mode")

    def set_point(self, index: int, point: Any, mirror_handles: bool = True) -> None:
        """
        Replace one stored point (in the spline's own space).

        With `mirror_handles`, Bezier edits follow the editor conventions: moving
        an anchor drags its handles along, moving a handle mirrors the opposite
        handle through their shared anchor. On closed splines the first anchor
        and its closing copy are kept in sync.
        """
        n = len(self._points)
        if not -n <= index < n:
            raise IndexError(f"Point index {index} out of range for {n} points.")
        index %= n
        new_point = _coerce_point(point)
        delta = new_point.position - self._points[index].position
        self._points[index] = new_point

        if mirror_handles and self._mode is CurveMode.BEZIER and n > 1:
            handle0, handle1 = handle_indexes(self._mode, self._closed, n, index)
            if is_handle(self._mode, index):
                anchor = self._points[anchor_index(self._mode, index)].position
                other = handle0 if index == handle1 else handle1
                if 0 <= other < n and other != index:
                    self._points[other] = self._points[other].replace(
                        position=anchor + (anchor - new_point.position)
                    )
            else:
                for handle in (handle0, handle1):
                    if 0 <= handle < n and handle != index:
                        self._points[handle] = self._points[handle].replace(
                            position=self._points[handle].position + delta
                        )

        if self._closed and self._mode is not CurveMode.BSPLINE and index in (0, n - 1):
            twin = n - 1 if index == 0 else 0
            self._points[twin] = new_point.copy()
        self._changed("set-point")

    def set_space(self, space_matrix: Optional[np.ndarray], update_points: bool = True) -> None:
        """
        Change the local-to-world matrix (None for world space).

        With `update_points`, stored points are re-expressed so their world
        positions stay where they were.
        """
        new_matrix = None if space_matrix is None else check_matrix(space_matrix).copy()
        if update_points:
            to_world = self._space_matrix
            to_local = None if new_matrix is None else inverse_matrix(new_matrix)
            updated = []
            for point in self._points:
                if to_world is not None:
                    point = transform_point(point, to_world)
                if to_local is not None:
                    point = transform_point(point, to_local)
                updated.append(point)
            self._points = updated
        self._space_matrix = new_matrix
        self._changed("space")

    def clear(self) -> None:
        self._points = []
        self._closed = False
        self._changed("clear")
