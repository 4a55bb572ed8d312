"""Curve modes, segment layout and index wraparound."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math

import numpy as np


class CurveMode(str, Enum):
    LINEAR = "linear"
    BEZIER = "bezier"
    BSPLINE = "bspline"

    @classmethod
    def parse(cls, value: "str | CurveMode") -> "CurveMode":
        if isinstance(value, CurveMode):
            return value
        key = str(value).strip().lower().replace("-", "").replace("_", "")
        for mode in cls:
            if mode.value == key:
                return mode
        allowed = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown curve mode: {value!r}. Allowed values: {allowed}.")


MINIMUM_POINTS = {
    CurveMode.LINEAR: 2,
    CurveMode.BEZIER: 4,
    CurveMode.BSPLINE: 2,
}

# Extra stored points a closed spline carries for its wrap segment.
CLOSING_POINTS = {
    CurveMode.LINEAR: 1,
    CurveMode.BEZIER: 3,
    CurveMode.BSPLINE: 0,
}


@dataclass(frozen=True)
class Topology:
    """Derived segment layout for a (mode, closed, point_count) triple."""

    mode: CurveMode
    closed: bool
    point_count: int

    @property
    def minimum_points(self) -> int:
        return MINIMUM_POINTS[self.mode]

    @property
    def is_degenerate(self) -> bool:
        return self.point_count < self.minimum_points

    @property
    def segment_count(self) -> int:
        n = self.point_count
        if n < self.minimum_points:
            return 0
        if self.mode is CurveMode.LINEAR:
            return n - 1
        if self.mode is CurveMode.BEZIER:
            group_count = (n - 1) - (n - 1) % 3
            return group_count // 3
        return n if self.closed else n - 1

    @property
    def segment_width(self) -> float:
        count = self.segment_count
        return 1.0 / count if count else 1.0

    def normalize_t(self, t: float) -> float:
        """Wrap t into [0, 1) for closed curves, clamp to [0, 1] for open ones."""
        t = float(t)
        if not math.isfinite(t):
            return 0.0
        if self.closed:
            wrapped = t % 1.0
            # t=1 and t=0 name the same point on a loop.
            return 0.0 if wrapped >= 1.0 else wrapped
        return min(1.0, max(0.0, t))

    def locate(self, t: float) -> tuple[int, float]:
        """Map a whole-curve t to (segment index, local t in [0, 1])."""
        count = self.segment_count
        if count == 0:
            return 0, 0.0
        scaled = self.normalize_t(t) * count
        segment = min(int(math.floor(scaled)), count - 1)
        return segment, min(1.0, max(0.0, scaled - segment))

    def to_global_t(self, segment: int, local_t: float) -> float:
        count = self.segment_count
        if count == 0:
            return 0.0
        return min(1.0, max(0.0, (segment + local_t) / count))

    def wrap(self, index: int) -> int:
        """Map an arbitrary stored-point index onto a valid one."""
        n = self.point_count
        if n == 0:
            return 0
        if self.closed:
            # Linear and Bezier loops store the first anchor again at the tail.
            modulus = n if self.mode is CurveMode.BSPLINE else max(n - 1, 1)
            return ((index % modulus) + modulus) % modulus
        return min(max(index, 0), n - 1)

    def windows(self, segments: np.ndarray) -> np.ndarray:
        """
        Stored-point indices feeding each segment.

        Linear yields pairs, Bezier and BSpline yield quadruples. Open BSpline
        windows may reference -1 and point_count; those are phantom points
        synthesised by the basis.
        """
        seg = np.asarray(segments, dtype=int).reshape(-1)
        if self.mode is CurveMode.LINEAR:
            return np.stack([seg, seg + 1], axis=-1)
        if self.mode is CurveMode.BEZIER:
            base = seg * 3
            return np.stack([base, base + 1, base + 2, base + 3], axis=-1)
        offsets = np.arange(-1, 3)
        raw = seg[:, None] + offsets[None, :]
        if self.closed:
            n = max(self.point_count, 1)
            return ((raw % n) + n) % n
        return raw

    def window(self, segment: int) -> tuple[int, ...]:
        return tuple(int(i) for i in self.windows(np.array([segment]))[0])


def is_handle(mode: CurveMode, index: int) -> bool:
    return mode is CurveMode.BEZIER and index % 3 != 0


def anchor_index(mode: CurveMode, index: int) -> int:
    """Index of the anchor a handle belongs to; anchors map to themselves."""
    if mode is not CurveMode.BEZIER:
        return index
    remainder = index % 3
    if remainder == 1:
        return index - 1
    if remainder == 2:
        return index + 1
    return index


def handle_indexes(mode: CurveMode, closed: bool, point_count: int, index: int) -> tuple[int, int]:
    """
    Incoming and outgoing handle indices around the anchor owning `index`.

    Non-Bezier modes have no handles and return `(index, index)`. On closed
    Bezier splines the first anchor's incoming handle wraps to the last stored
    point, and the closing anchor's outgoing handle wraps to index 1.
    """
    if mode is not CurveMode.BEZIER:
        return index, index
    anchor = anchor_index(mode, index)
    handle0 = anchor - 1
    handle1 = anchor + 1
    if closed:
        if handle0 == -1:
            handle0 = point_count - 2
        if handle1 == point_count:
            handle1 = 1
    return handle0, handle1


def point_index_from_t(topology: Topology, t: float) -> int:
    """Lower stored index of the segment enclosing t; -1 when the store is empty."""
    if topology.point_count == 0:
        return -1
    if topology.segment_count == 0:
        return 0
    segment, _ = topology.locate(t)
    if topology.mode is CurveMode.BEZIER:
        return segment * 3
    return segment


def anchor_count(mode: CurveMode, closed: bool, point_count: int) -> int:
    """Number of on-curve points, ignoring handles and the closing duplicate."""
    if point_count == 0:
        return 0
    if mode is CurveMode.BEZIER:
        count = (point_count - 1) // 3 + 1
        return count - 1 if closed else count
    if mode is CurveMode.LINEAR and closed:
        return point_count - 1
    return point_count
