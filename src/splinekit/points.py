"""Control point value types and space transforms."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

import numpy as np

from . import quaternion as quat


def _vec(value: Any, size: int, name: str) -> np.ndarray:
    arr = np.array(value, dtype=float, copy=True).reshape(-1)
    if arr.shape != (size,):
        raise ValueError(f"`{name}` must have {size} components; got shape={arr.shape}.")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"`{name}` contains non-finite values (NaN/Inf).")
    return arr


@dataclass(eq=False)
class ControlPoint:
    """One stored point: anchor or Bezier handle, depending on its index and the mode."""

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(default_factory=quat.identity)
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))
    tag: np.ndarray = field(default_factory=lambda: np.ones(4))  # RGBA, not used by geometry.

    def __post_init__(self) -> None:
        self.position = _vec(self.position, 3, "position")
        self.orientation = quat.normalize(_vec(self.orientation, 4, "orientation"))
        self.scale = _vec(self.scale, 3, "scale")
        self.tag = _vec(self.tag, 4, "tag")

    def approx_equal(self, other: "ControlPoint", threshold: float = 1e-3) -> bool:
        """Loose comparison for change detection; never use it for geometry decisions."""
        if not isinstance(other, ControlPoint):
            return False
        q_delta = min(
            float(np.sum((self.orientation - other.orientation) ** 2)),
            float(np.sum((self.orientation + other.orientation) ** 2)),
        )
        return (
            float(np.sum((self.position - other.position) ** 2)) < threshold
            and q_delta < threshold
            and float(np.sum((self.scale - other.scale) ** 2)) < threshold
            and float(np.sum((self.tag - other.tag) ** 2)) < threshold
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ControlPoint):
            return NotImplemented
        return self.approx_equal(other)

    __hash__ = None  # type: ignore[assignment]

    def copy(self) -> "ControlPoint":
        return ControlPoint(self.position, self.orientation, self.scale, self.tag)

    def replace(self, **changes: Any) -> "ControlPoint":
        values = {
            "position": self.position,
            "orientation": self.orientation,
            "scale": self.scale,
            "tag": self.tag,
        }
        values.update(changes)
        return ControlPoint(**values)

    def to_dict(self) -> dict[str, list[float]]:
        return {
            "position": self.position.tolist(),
            "orientation": self.orientation.tolist(),
            "scale": self.scale.tolist(),
            "tag": self.tag.tolist(),
        }


@dataclass(eq=False)
class PointSample:
    """Interpolated result of evaluating a curve at some t."""

    position: np.ndarray
    orientation: np.ndarray
    scale: np.ndarray
    tangent: Optional[np.ndarray] = None

    def to_point(self) -> ControlPoint:
        return ControlPoint(self.position, self.orientation, self.scale)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "position": self.position.tolist(),
            "orientation": self.orientation.tolist(),
            "scale": self.scale.tolist(),
        }
        if self.tangent is not None:
            payload["tangent"] = self.tangent.tolist()
        return payload


@dataclass(frozen=True, eq=False)
class PointArrays:
    """Read-only columnar snapshot of a point store, consumed by the pure evaluation core."""

    positions: np.ndarray     # (N, 3)
    orientations: np.ndarray  # (N, 4)
    scales: np.ndarray        # (N, 3)

    def __len__(self) -> int:
        return int(self.positions.shape[0])

    @classmethod
    def from_points(cls, points: Iterable[ControlPoint]) -> "PointArrays":
        pts = list(points)
        if not pts:
            return cls(
                positions=np.empty((0, 3)),
                orientations=np.empty((0, 4)),
                scales=np.empty((0, 3)),
            )
        positions = np.stack([p.position for p in pts])
        orientations = np.stack([p.orientation for p in pts])
        scales = np.stack([p.scale for p in pts])
        for arr in (positions, orientations, scales):
            arr.setflags(write=False)
        return cls(positions=positions, orientations=orientations, scales=scales)

    @classmethod
    def from_positions(cls, positions: Any) -> "PointArrays":
        """Build a snapshot from an (N, 3) position array with identity rotations and unit scale."""
        pos = np.array(positions, dtype=float, copy=True)
        if pos.ndim != 2 or pos.shape[1] != 3:
            raise ValueError(f"`positions` must have shape (N, 3); got shape={pos.shape}.")
        if not np.all(np.isfinite(pos)):
            raise ValueError("`positions` contains non-finite values (NaN/Inf).")
        orientations = np.tile(quat.identity(), (len(pos), 1))
        scales = np.ones_like(pos)
        for arr in (pos, orientations, scales):
            arr.setflags(write=False)
        return cls(positions=pos, orientations=orientations, scales=scales)

    def point(self, index: int) -> ControlPoint:
        return ControlPoint(self.positions[index], self.orientations[index], self.scales[index])


def as_point_arrays(points: Any) -> PointArrays:
    """Coerce control points, a snapshot, or an (N, 3) position array to `PointArrays`."""
    if isinstance(points, PointArrays):
        return points
    if isinstance(points, np.ndarray):
        return PointArrays.from_positions(points)
    seq: Sequence[Any] = list(points)
    if seq and not isinstance(seq[0], ControlPoint):
        return PointArrays.from_positions(np.asarray(seq, dtype=float))
    return PointArrays.from_points(seq)


def check_matrix(matrix: Any) -> np.ndarray:
    mat = np.asarray(matrix, dtype=float)
    if mat.shape != (4, 4):
        raise ValueError(f"space matrix must have shape (4, 4); got shape={mat.shape}.")
    if not np.all(np.isfinite(mat)):
        raise ValueError("space matrix contains non-finite values (NaN/Inf).")
    return mat


def inverse_matrix(matrix: Any) -> np.ndarray:
    return np.linalg.inv(check_matrix(matrix))


def transform_position(position: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    return matrix[:3, :3] @ position + matrix[:3, 3]


def transform_sample(sample: PointSample, matrix: np.ndarray) -> PointSample:
    """Map a sample from the spline's local space through `matrix`."""
    rotation = quat.from_matrix(matrix[:3, :3])
    tangent = None
    if sample.tangent is not None:
        tangent = matrix[:3, :3] @ sample.tangent
    return PointSample(
        position=transform_position(sample.position, matrix),
        orientation=quat.multiply(rotation, sample.orientation),
        scale=matrix[:3, :3] @ sample.scale,
        tangent=tangent,
    )


def transform_point(point: ControlPoint, matrix: Any) -> ControlPoint:
    """Map a stored point through `matrix` (local to world, or world to local with an inverse)."""
    mat = check_matrix(matrix)
    rotation = quat.from_matrix(mat[:3, :3])
    return point.replace(
        position=transform_position(point.position, mat),
        orientation=quat.multiply(rotation, point.orientation),
        scale=mat[:3, :3] @ point.scale,
    )
