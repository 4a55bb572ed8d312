"""Pure evaluation entrypoints: position, orientation, scale and forward at t."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import numpy as np

from . import quaternion as quat
from .basis import basis_for
from .config import DEFAULT_CONFIG, SplineEngineConfig
from .points import (
    PointArrays,
    PointSample,
    as_point_arrays,
    check_matrix,
    transform_position,
    transform_sample,
)
from .topology import CurveMode, Topology


logger = logging.getLogger(__name__)


def resolve(points: Any, mode: "CurveMode | str", closed: bool) -> tuple[PointArrays, Topology]:
    """Snapshot the points and derive the topology they are evaluated under."""
    arrays = as_point_arrays(points)
    topology = Topology(mode=CurveMode.parse(mode), closed=bool(closed), point_count=len(arrays))
    return arrays, topology


def _origin_sample() -> PointSample:
    return PointSample(position=np.zeros(3), orientation=quat.identity(), scale=np.ones(3))


def evaluate_local(arrays: PointArrays, topology: Topology, t: float) -> PointSample:
    """Evaluate in the spline's own space, without a tangent."""
    if topology.point_count == 0:
        logger.debug("Evaluating an empty spline; returning the origin.")
        return _origin_sample()
    if topology.is_degenerate:
        logger.debug(
            "%s spline has %d point(s) (< %d); returning the first point.",
            topology.mode.value,
            topology.point_count,
            topology.minimum_points,
        )
        return PointSample(
            position=arrays.positions[0].copy(),
            orientation=arrays.orientations[0].copy(),
            scale=arrays.scales[0].copy(),
        )
    segment, local_t = topology.locate(t)
    return basis_for(topology.mode).interpolate(arrays, topology, segment, local_t)


def position_local(arrays: PointArrays, topology: Topology, t: float) -> np.ndarray:
    """Position-only fast path in the spline's own space."""
    if topology.point_count == 0:
        return np.zeros(3)
    if topology.is_degenerate:
        return arrays.positions[0].copy()
    segment, local_t = topology.locate(t)
    basis = basis_for(topology.mode)
    return basis.positions(arrays, topology, np.array([segment]), np.array([local_t]))[0]


def position_at(
    points: Any,
    mode: "CurveMode | str",
    closed: bool = False,
    space_matrix: Optional[np.ndarray] = None,
    t: float = 0.0,
) -> np.ndarray:
    arrays, topology = resolve(points, mode, closed)
    position = position_local(arrays, topology, t)
    if space_matrix is not None:
        position = transform_position(position, check_matrix(space_matrix))
    return position


def forward_local(
    arrays: PointArrays,
    topology: Topology,
    t: float,
    config: Optional[SplineEngineConfig] = None,
) -> np.ndarray:
    """Normalized central difference of position around t, in the spline's own space."""
    cfg = (config or DEFAULT_CONFIG).evaluation
    eps = cfg.tangent_epsilon
    p0 = position_local(arrays, topology, t - eps)
    p1 = position_local(arrays, topology, t + eps)
    delta = p1 - p0
    norm = float(np.linalg.norm(delta))
    if norm < 1e-12 or not np.isfinite(norm):
        return np.asarray(cfg.fallback_axis, dtype=float) / np.linalg.norm(cfg.fallback_axis)
    return delta / norm


def get_forward(
    points: Any,
    mode: "CurveMode | str",
    closed: bool = False,
    space_matrix: Optional[np.ndarray] = None,
    t: float = 0.0,
    config: Optional[SplineEngineConfig] = None,
) -> np.ndarray:
    """
    Unit forward vector at t in world space.

    Sampled as `normalize(P(t + eps) - P(t - eps))`; a stationary sample returns
    the configured fallback axis instead of NaN.
    """
    arrays, topology = resolve(points, mode, closed)
    forward = forward_local(arrays, topology, t, config=config)
    if space_matrix is None:
        return forward
    world = check_matrix(space_matrix)[:3, :3] @ forward
    norm = float(np.linalg.norm(world))
    if norm < 1e-12:
        return forward
    return world / norm


def evaluate(
    points: Any,
    mode: "CurveMode | str",
    closed: bool = False,
    space_matrix: Optional[np.ndarray] = None,
    t: float = 0.0,
    config: Optional[SplineEngineConfig] = None,
) -> PointSample:
    """
    Evaluate the curve at whole-curve parameter t.

    Args:
        points: Control points, a `PointArrays` snapshot, or an (N, 3) position array.
        mode: Curve family.
        closed: Whether the curve loops; t wraps for closed curves and clamps otherwise.
        space_matrix: Optional local-to-world 4x4 matrix. When set, the result is
            computed in local space and then mapped to world space.
        t: Parameter in [0, 1].
        config: Engine configuration (tangent epsilon, fallback axis).

    Returns:
        A `PointSample` whose `tangent` holds the unit forward vector.
    """
    arrays, topology = resolve(points, mode, closed)
    sample = evaluate_local(arrays, topology, t)
    sample.tangent = forward_local(arrays, topology, t, config=config)
    if space_matrix is None:
        return sample
    world = transform_sample(sample, check_matrix(space_matrix))
    norm = float(np.linalg.norm(world.tangent))
    if norm > 1e-12:
        world.tangent = world.tangent / norm
    else:
        world.tangent = sample.tangent
    return world


def evaluate_many(
    points: Any,
    mode: "CurveMode | str",
    closed: bool = False,
    space_matrix: Optional[np.ndarray] = None,
    ts: Iterable[float] = (),
    config: Optional[SplineEngineConfig] = None,
) -> list[PointSample]:
    """Evaluate several parameters against one snapshot of the points."""
    arrays, _ = resolve(points, mode, closed)
    return [
        evaluate(arrays, mode, closed, space_matrix, float(t), config=config)
        for t in ts
    ]


def sample_positions(
    points: Any,
    mode: "CurveMode | str",
    closed: bool = False,
    space_matrix: Optional[np.ndarray] = None,
    num_samples: int = 64,
) -> np.ndarray:
    """Positions at `num_samples` uniform parameters in [0, 1]; shape (num_samples, 3)."""
    if num_samples <= 0:
        return np.empty((0, 3), dtype=float)
    arrays, topology = resolve(points, mode, closed)
    ts = np.linspace(0.0, 1.0, num_samples)
    out = np.stack([position_local(arrays, topology, float(t)) for t in ts])
    if space_matrix is not None:
        mat = check_matrix(space_matrix)
        out = out @ mat[:3, :3].T + mat[:3, 3]
    return out
