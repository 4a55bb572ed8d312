"""Nearest-point projection: find the t whose curve position is closest to a query."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Iterable, Optional

import numpy as np

from .basis import basis_for
from .config import DEFAULT_CONFIG, ProjectionConfig, SplineEngineConfig
from .evaluate import resolve
from .points import PointArrays, check_matrix, transform_position
from .topology import CurveMode, Topology


logger = logging.getLogger(__name__)

_TIE_TOLERANCE = 1e-12


@dataclass
class ProjectionResult:
    """Winning candidate of a projection query."""

    t: float
    segment: int
    local_t: float
    distance: float        # measured in the spline's own space.
    position: np.ndarray   # projected position, in the caller's (world) space.


def _as_query(position: Any) -> np.ndarray:
    query = np.asarray(position, dtype=float).reshape(-1)
    if query.shape != (3,):
        raise ValueError(f"query position must have 3 components; got shape={query.shape}.")
    if not np.all(np.isfinite(query)):
        raise ValueError("query position contains non-finite values (NaN/Inf).")
    return query


def _segment_projections(arrays: PointArrays, topology: Topology, query: np.ndarray):
    """Clamped orthogonal projection onto every linear segment."""
    count = topology.segment_count
    start = arrays.positions[:count]
    end = arrays.positions[1 : count + 1]
    direction = end - start
    length_sq = np.einsum("sd,sd->s", direction, direction)
    along = np.einsum("sd,sd->s", query - start, direction)
    safe = length_sq > 1e-18
    u = np.zeros(count)
    # Zero-length segments resolve to their start point.
    u[safe] = np.clip(along[safe] / length_sq[safe], 0.0, 1.0)
    projected = start + direction * u[:, None]
    dist = np.linalg.norm(projected - query, axis=1)
    return u, dist


def _project_linear(arrays: PointArrays, topology: Topology, query: np.ndarray) -> tuple[int, float, float]:
    count = topology.segment_count
    u, dist = _segment_projections(arrays, topology, query)

    # Seed from the nearest stored point and test the segments touching it.
    unique_count = arrays.positions.shape[0] - (1 if topology.closed else 0)
    to_points = np.linalg.norm(arrays.positions[:unique_count] - query, axis=1)
    nearest = int(np.argmin(to_points))
    if topology.closed:
        candidates = sorted({(nearest - 1) % count, nearest % count})
    else:
        candidates = [s for s in (nearest - 1, nearest) if 0 <= s < count]

    best = candidates[0]
    for seg in candidates[1:]:
        if dist[seg] < dist[best] - _TIE_TOLERANCE:
            best = seg

    # A vertex can be nearest while the closest segment does not touch it
    # (zig-zags); the full scan catches that case.
    overall = int(np.argmin(dist))
    if dist[overall] < dist[best] - _TIE_TOLERANCE:
        logger.debug(
            "Nearest-vertex candidates missed segment %d (dist %.6g < %.6g).",
            overall,
            dist[overall],
            dist[best],
        )
        best = overall
    return best, float(u[best]), float(dist[best])


def descend_segments(
    arrays: PointArrays,
    topology: Topology,
    query: np.ndarray,
    config: ProjectionConfig,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Derivative-free descent run on every segment at once.

    Each step compares the squared distance at `t - step` and `t + step`
    (clamped to [0, 1]), moves to the closer one, and shrinks the step. It never
    diverges, even where the curve derivative vanishes.

    Returns:
        (local_t, distance) arrays of length `segment_count`.
    """
    basis = basis_for(topology.mode)
    segments = np.arange(topology.segment_count)
    window = basis.window_values(arrays.positions, topology, segments)

    def _positions(u: np.ndarray) -> np.ndarray:
        return np.einsum("sk,skd->sd", basis.position_weights(u), window)

    t = np.full(len(segments), float(config.initial_t))
    step = float(config.initial_step)
    for _ in range(config.iteration_budget):
        t0 = np.clip(t - step, 0.0, 1.0)
        t1 = np.clip(t + step, 0.0, 1.0)
        d0 = np.sum((_positions(t0) - query) ** 2, axis=1)
        d1 = np.sum((_positions(t1) - query) ** 2, axis=1)
        t = np.where(d0 < d1, t0, t1)
        step *= config.shrink
        if step < config.threshold:
            break

    t = np.clip(t, 0.0, 1.0)
    distance = np.linalg.norm(_positions(t) - query, axis=1)
    return t, distance


def project_local(
    arrays: PointArrays,
    topology: Topology,
    query: np.ndarray,
    config: Optional[SplineEngineConfig] = None,
) -> tuple[int, float, float]:
    """Project a query already expressed in the spline's own space; returns (segment, local_t, distance)."""
    cfg = config or DEFAULT_CONFIG
    if topology.point_count == 0:
        return 0, 0.0, float(np.linalg.norm(query))
    if topology.is_degenerate:
        return 0, 0.0, float(np.linalg.norm(arrays.positions[0] - query))
    if topology.mode is CurveMode.LINEAR:
        return _project_linear(arrays, topology, query)

    local_t, distance = descend_segments(arrays, topology, query, cfg.projection)
    # argmin keeps the first (lowest index) segment on ties.
    best = int(np.argmin(distance))
    return best, float(local_t[best]), float(distance[best])


def project_detailed(
    points: Any,
    mode: "CurveMode | str",
    closed: bool = False,
    space_matrix: Optional[np.ndarray] = None,
    position: Any = (0.0, 0.0, 0.0),
    config: Optional[SplineEngineConfig] = None,
) -> ProjectionResult:
    """Project a world-space position and report the winning segment and distance."""
    query = _as_query(position)
    arrays, topology = resolve(points, mode, closed)

    matrix = None
    if space_matrix is not None:
        matrix = check_matrix(space_matrix)
        query = transform_position(query, np.linalg.inv(matrix))

    segment, local_t, distance = project_local(arrays, topology, query, config=config)
    t = topology.to_global_t(segment, local_t)
    if topology.closed and t >= 1.0:
        t = 0.0

    if topology.point_count == 0:
        projected = np.zeros(3)
    elif topology.is_degenerate:
        projected = arrays.positions[0].copy()
    else:
        basis = basis_for(topology.mode)
        projected = basis.positions(arrays, topology, np.array([segment]), np.array([local_t]))[0]
    if matrix is not None:
        projected = transform_position(projected, matrix)
    return ProjectionResult(t=t, segment=segment, local_t=local_t, distance=distance, position=projected)


def project(
    points: Any,
    mode: "CurveMode | str",
    closed: bool = False,
    space_matrix: Optional[np.ndarray] = None,
    position: Any = (0.0, 0.0, 0.0),
    config: Optional[SplineEngineConfig] = None,
) -> float:
    """Return the whole-curve t closest to `position`."""
    return project_detailed(points, mode, closed, space_matrix, position, config=config).t


def project_many(
    points: Any,
    mode: "CurveMode | str",
    closed: bool = False,
    space_matrix: Optional[np.ndarray] = None,
    positions: Iterable[Any] = (),
    config: Optional[SplineEngineConfig] = None,
) -> list[float]:
    """Project several independent queries against one snapshot of the points."""
    arrays, _ = resolve(points, mode, closed)
    return [project(arrays, mode, closed, space_matrix, p, config=config) for p in positions]
