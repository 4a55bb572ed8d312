"""Arc-length table mapping travelled distance to curve parameter and back."""

from __future__ import annotations

import logging
from typing import Any, Optional

import numpy as np

from .config import DEFAULT_CONFIG, DistanceCacheConfig
from .errors import StaleCacheError
from .evaluate import sample_positions
from .topology import CurveMode


logger = logging.getLogger(__name__)


class DistanceCache:
    """
    Caller-owned, explicitly rebuilt arc-length table.

    The table samples the curve at `resolution` uniform parameters and stores
    the cumulative Euclidean distance between consecutive samples. It is valid
    only for the points it was built from; pass the owning spline's revision
    to `build` and to the queries to have stale use detected.
    """

    def __init__(self, config: Optional[DistanceCacheConfig] = None):
        self.config = config or DEFAULT_CONFIG.distance_cache
        self._ts: Optional[np.ndarray] = None
        self._distances: Optional[np.ndarray] = None
        self._closed = False
        self.revision: Optional[int] = None

    @property
    def is_built(self) -> bool:
        return self._distances is not None

    @property
    def total_length(self) -> float:
        if self._distances is None or len(self._distances) == 0:
            return 0.0
        return float(self._distances[-1])

    @property
    def table(self) -> tuple[np.ndarray, np.ndarray]:
        """(t, cumulative distance) arrays; empty before the first build."""
        if self._ts is None or self._distances is None:
            return np.empty(0), np.empty(0)
        return self._ts, self._distances

    def build(
        self,
        points: Any,
        mode: "CurveMode | str",
        closed: bool = False,
        space_matrix: Optional[np.ndarray] = None,
        resolution: Optional[int] = None,
        revision: Optional[int] = None,
    ) -> "DistanceCache":
        """Sample the curve and (re)build the table; returns self for chaining."""
        resolution = self.config.resolution if resolution is None else int(resolution)
        if resolution < 2:
            raise ValueError("`resolution` must be >= 2.")

        positions = sample_positions(points, mode, closed, space_matrix, num_samples=resolution)
        ts = np.linspace(0.0, 1.0, resolution)
        step_lengths = np.linalg.norm(np.diff(positions, axis=0), axis=1)
        distances = np.insert(np.cumsum(step_lengths), 0, 0.0)

        ts.setflags(write=False)
        distances.setflags(write=False)
        self._ts = ts
        self._distances = distances
        self._closed = bool(closed)
        self.revision = revision
        logger.debug(
            "Built distance cache: %d samples, total length %.6g (revision=%s).",
            resolution,
            self.total_length,
            revision,
        )
        return self

    def invalidate(self) -> None:
        self._ts = None
        self._distances = None
        self.revision = None

    def _stale(self, revision: Optional[int]) -> Optional[str]:
        if not self.is_built:
            return "Distance cache queried before it was built."
        if revision is not None and self.revision is not None and revision != self.revision:
            return (
                f"Distance cache was built at revision {self.revision} "
                f"but the spline is at revision {revision}; rebuild it."
            )
        return None

    def _fallback(self, reason: str) -> float:
        if self.config.strict:
            raise StaleCacheError(reason)
        logger.warning("%s Returning 0.0.", reason)
        return 0.0

    def _checked_table(self, revision: Optional[int]) -> "tuple[np.ndarray, np.ndarray] | str":
        reason = self._stale(revision)
        if reason is not None:
            return reason
        ts, distances = self._ts, self._distances
        if ts is None or distances is None:
            return "Distance cache queried before it was built."
        return ts, distances

    def length(self, revision: Optional[int] = None) -> float:
        """Total arc length; stale use is detected like the other queries."""
        checked = self._checked_table(revision)
        if isinstance(checked, str):
            return self._fallback(checked)
        return self.total_length

    def t_to_distance(self, t: float, revision: Optional[int] = None) -> float:
        """Distance travelled from t=0 to `t`."""
        checked = self._checked_table(revision)
        if isinstance(checked, str):
            return self._fallback(checked)
        ts, distances = checked

        t = float(t)
        if not np.isfinite(t):
            return 0.0
        if self._closed:
            t = t % 1.0
        else:
            t = min(1.0, max(0.0, t))
        return float(np.interp(t, ts, distances))

    def distance_to_t(self, distance: float, revision: Optional[int] = None) -> float:
        """Curve parameter reached after travelling `distance` from t=0."""
        checked = self._checked_table(revision)
        if isinstance(checked, str):
            return self._fallback(checked)
        ts, distances = checked

        total = self.total_length
        distance = float(distance)
        if total <= 1e-12 or not np.isfinite(distance):
            return 0.0
        if self._closed:
            distance = distance % total
        else:
            distance = min(total, max(0.0, distance))

        # side="left" lands on the first sample reaching `distance`, so flat
        # stretches (stationary samples) resolve to their earliest t.
        upper = int(np.searchsorted(distances, distance, side="left"))
        if upper <= 0:
            return float(ts[0])
        upper = min(upper, len(distances) - 1)
        lower = upper - 1
        span = float(distances[upper] - distances[lower])
        if span <= 0.0:
            return float(ts[upper])
        alpha = (distance - float(distances[lower])) / span
        return float(ts[lower] + (ts[upper] - ts[lower]) * alpha)


def build_distance_cache(
    points: Any,
    mode: "CurveMode | str",
    closed: bool = False,
    space_matrix: Optional[np.ndarray] = None,
    resolution: Optional[int] = None,
    config: Optional[DistanceCacheConfig] = None,
) -> DistanceCache:
    """Build a fresh cache for a point snapshot."""
    return DistanceCache(config=config).build(points, mode, closed, space_matrix, resolution)
