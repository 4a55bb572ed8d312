"""Per-mode basis functions: one strategy object per curve mode."""

from __future__ import annotations

import numpy as np

from . import quaternion as quat
from .points import PointArrays, PointSample
from .topology import CurveMode, Topology


def _gather(values: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """
    Index rows of `values`, synthesising phantoms for out-of-range indices.

    Index -1 becomes `2 * v[0] - v[1]` and index N becomes `2 * v[N-1] - v[N-2]`,
    i.e. linear extrapolation from the two nearest real rows.
    """
    n = values.shape[0]
    clipped = np.clip(indices, 0, n - 1)
    out = values[clipped]
    if n < 2:
        return out
    low = indices < 0
    if np.any(low):
        out[low] = 2.0 * values[0] - values[1]
    high = indices >= n
    if np.any(high):
        out[high] = 2.0 * values[n - 1] - values[n - 2]
    return out


def _axis_rows(orientations: np.ndarray, axis: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """Rotate `axis` by the orientations at `indices`, extrapolating phantom rows like `_gather`."""
    n = orientations.shape[0]
    lookup = np.unique(np.clip(np.concatenate([indices, [0, 1, n - 2, n - 1]]), 0, n - 1))
    rows = np.zeros((n, 3))
    for i in lookup:
        rows[i] = quat.rotate(orientations[i], axis)
    return _gather(rows, indices)


class CurveBasis:
    """Interface shared by the three curve families."""

    mode: CurveMode

    def position_weights(self, u: np.ndarray) -> np.ndarray:
        """Blend weights with shape (len(u), window_size)."""
        raise NotImplementedError

    def window_values(self, values: np.ndarray, topology: Topology, segments: np.ndarray) -> np.ndarray:
        return _gather(values, topology.windows(segments))

    def positions(
        self,
        arrays: PointArrays,
        topology: Topology,
        segments: np.ndarray,
        u: np.ndarray,
    ) -> np.ndarray:
        """Vectorised positions for paired (segment, local t) arrays; shape (len(segments), 3)."""
        window = self.window_values(arrays.positions, topology, segments)
        weights = self.position_weights(np.asarray(u, dtype=float).reshape(-1))
        return np.einsum("sk,skd->sd", weights, window)

    def interpolate(
        self,
        arrays: PointArrays,
        topology: Topology,
        segment: int,
        local_t: float,
    ) -> PointSample:
        raise NotImplementedError


class LinearBasis(CurveBasis):
    mode = CurveMode.LINEAR

    def position_weights(self, u: np.ndarray) -> np.ndarray:
        return np.stack([1.0 - u, u], axis=-1)

    def interpolate(self, arrays, topology, segment, local_t):
        i0, i1 = topology.window(segment)
        u = float(local_t)
        return PointSample(
            position=arrays.positions[i0] + (arrays.positions[i1] - arrays.positions[i0]) * u,
            orientation=quat.slerp(arrays.orientations[i0], arrays.orientations[i1], u),
            scale=arrays.scales[i0] + (arrays.scales[i1] - arrays.scales[i0]) * u,
        )


class BezierBasis(CurveBasis):
    mode = CurveMode.BEZIER

    def position_weights(self, u: np.ndarray) -> np.ndarray:
        v = 1.0 - u
        return np.stack([v * v * v, 3.0 * v * v * u, 3.0 * v * u * u, u * u * u], axis=-1)

    def interpolate(self, arrays, topology, segment, local_t):
        idx = topology.window(segment)
        weights = self.position_weights(np.array([float(local_t)]))[0]
        q = [arrays.orientations[i] for i in idx]
        return PointSample(
            position=weights @ arrays.positions[list(idx)],
            orientation=quat.quad_slerp(q[0], q[1], q[2], q[3], float(local_t)),
            scale=weights @ arrays.scales[list(idx)],
        )


class BSplineBasis(CurveBasis):
    mode = CurveMode.BSPLINE

    def position_weights(self, u: np.ndarray) -> np.ndarray:
        u2 = u * u
        u3 = u2 * u
        return np.stack(
            [
                (1.0 - u) ** 3,
                3.0 * u3 - 6.0 * u2 + 4.0,
                -3.0 * u3 + 3.0 * u2 + 3.0 * u + 1.0,
                u3,
            ],
            axis=-1,
        ) / 6.0

    def interpolate(self, arrays, topology, segment, local_t):
        seg = np.array([segment])
        weights = self.position_weights(np.array([float(local_t)]))[0]
        positions = self.window_values(arrays.positions, topology, seg)[0]
        scales = self.window_values(arrays.scales, topology, seg)[0]

        # Approximation: blend each point's forward/up axes and rebuild a frame,
        # rather than a true rotation spline.
        raw = topology.windows(seg)[0]
        forward = weights @ _axis_rows(arrays.orientations, quat.FORWARD, raw)
        up = weights @ _axis_rows(arrays.orientations, quat.UP, raw)
        return PointSample(
            position=weights @ positions,
            orientation=quat.look_rotation(forward, up),
            scale=weights @ scales,
        )


BASES: dict[CurveMode, CurveBasis] = {
    CurveMode.LINEAR: LinearBasis(),
    CurveMode.BEZIER: BezierBasis(),
    CurveMode.BSPLINE: BSplineBasis(),
}


def basis_for(mode: CurveMode) -> CurveBasis:
    return BASES[CurveMode.parse(mode)]
