"""Cross-spline junctions: pin a spline end to a point along another spline."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Iterator, Optional
import weakref

import numpy as np

from .errors import InvariantViolation, JunctionCycleError, recoverable_errors
from .points import inverse_matrix, transform_point, transform_position
from .spline import Spline
from .topology import CurveMode


logger = logging.getLogger(__name__)
_UPDATE_EXCEPTIONS = recoverable_errors()

JUNCTION_ENDS = ("start", "end")


@dataclass(frozen=True)
class Junction:
    """
    Weak link from one end of a spline to a point along a target spline.

    `target_id` is the target's `Spline.name`; the junction never owns it.
    `tightness` is the Bezier handle length placed along the target's forward
    direction at `percent`.
    """

    target_id: str
    percent: float = 0.0
    tightness: float = 1.0
    end: str = "start"

    def __post_init__(self) -> None:
        if not self.target_id:
            raise ValueError("`target_id` must be a non-empty string.")
        if not (math.isfinite(self.percent) and 0.0 <= self.percent <= 1.0):
            raise ValueError("`percent` must be in [0, 1].")
        if not (math.isfinite(self.tightness) and self.tightness >= 0.0):
            raise ValueError("`tightness` must be >= 0.")
        if self.end not in JUNCTION_ENDS:
            raise ValueError(f"`end` must be one of {JUNCTION_ENDS}; got {self.end!r}.")


class SplineRegistry:
    """Id-to-spline lookup that holds splines weakly, plus junction bookkeeping."""

    def __init__(self) -> None:
        self._splines: "weakref.WeakValueDictionary[str, Spline]" = weakref.WeakValueDictionary()

    def __contains__(self, spline_id: str) -> bool:
        return spline_id in self._splines

    def __len__(self) -> int:
        return len(self._splines)

    def register(self, spline: Spline) -> Spline:
        existing = self._splines.get(spline.name)
        if existing is not None and existing is not spline:
            raise ValueError(f"A different spline is already registered as {spline.name!r}.")
        self._splines[spline.name] = spline
        return spline

    def get(self, spline_id: str) -> Optional[Spline]:
        return self._splines.get(spline_id)

    def _targets(self, spline_id: str) -> Iterator[str]:
        spline = self._splines.get(spline_id)
        if spline is None:
            return
        for junction in spline.junctions.values():
            yield junction.target_id

    def _reaches(self, start: str, goal: str) -> bool:
        seen: set[str] = set()
        stack = [start]
        while stack:
            current = stack.pop()
            if current == goal:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._targets(current))
        return False

    def connect(self, spline: Spline, junction: Junction) -> None:
        """
        Attach `junction` to one end of `spline`.

        Raises:
            JunctionCycleError: the target is `spline` itself or (transitively)
                depends on it.
            InvariantViolation: `spline` is closed and has no free ends.
            ValueError: the target is not registered.
        """
        self.register(spline)
        if junction.target_id == spline.name or self._reaches(junction.target_id, spline.name):
            raise JunctionCycleError(
                f"Junction {spline.name!r} -> {junction.target_id!r} would create a cycle."
            )
        if spline.closed:
            raise InvariantViolation(f"Spline {spline.name!r} is closed and has no free ends.")
        if self.get(junction.target_id) is None:
            raise ValueError(f"Unknown target spline id: {junction.target_id!r}.")
        spline.junctions[junction.end] = junction
        logger.debug("Connected %s:%s -> %s at %.3f.", spline.name, junction.end, junction.target_id, junction.percent)

    def disconnect(self, spline: Spline, end: str) -> Optional[Junction]:
        if end not in JUNCTION_ENDS:
            raise ValueError(f"`end` must be one of {JUNCTION_ENDS}; got {end!r}.")
        return spline.junctions.pop(end, None)

    def update_junctions(self, spline: Spline) -> int:
        """
        Move the ends of `spline` onto their junction targets.

        Returns the number of junctions applied; junctions whose target has been
        garbage-collected are skipped with a warning, as is a spline that was
        closed after its junctions were connected.
        """
        if spline.closed:
            if spline.junctions:
                logger.warning("Spline %s is closed and has no free ends; skipping its junctions.", spline.name)
            return 0
        applied = 0
        for end, junction in list(spline.junctions.items()):
            target = self.get(junction.target_id)
            if target is None:
                logger.warning(
                    "Junction %s:%s target %r is gone; skipping.", spline.name, end, junction.target_id
                )
                continue
            if len(spline) == 0:
                continue
            _apply_junction(spline, target, junction)
            applied += 1
        return applied

    def update_all(self) -> list[str]:
        """
        Resolve every registered spline's junctions, targets before dependents.

        A spline whose update fails is logged and skipped so the rest of the
        network still resolves; the ids of those splines are returned.
        """
        order: list[str] = []
        visited: set[str] = set()

        def _visit(spline_id: str) -> None:
            if spline_id in visited:
                return
            visited.add(spline_id)
            for target_id in self._targets(spline_id):
                _visit(target_id)
            order.append(spline_id)

        for spline_id in list(self._splines.keys()):
            _visit(spline_id)
        failed: list[str] = []
        for spline_id in order:
            spline = self.get(spline_id)
            if spline is None or not spline.junctions:
                continue
            try:
                self.update_junctions(spline)
            except _UPDATE_EXCEPTIONS:
                failed.append(spline_id)
                logger.warning("Junction update failed for spline %s; skipping it.", spline_id, exc_info=True)
        return failed


def _apply_junction(spline: Spline, target: Spline, junction: Junction) -> None:
    sample = target.evaluate(junction.percent)
    forward = target.get_forward(junction.percent)
    at_start = junction.end == "start"
    index = 0 if at_start else len(spline) - 1

    anchor = sample.to_point().replace(tag=spline.get_point(index).tag)
    to_local = None if spline.space_matrix is None else inverse_matrix(spline.space_matrix)
    if to_local is not None:
        anchor = transform_point(anchor, to_local)
    spline.set_point(index, anchor, mirror_handles=True)

    if spline.mode is CurveMode.BEZIER and len(spline) >= 4:
        sign = 1.0 if at_start else -1.0
        handle_world = sample.position + forward * junction.tightness * sign
        if to_local is not None:
            handle_world = transform_position(handle_world, to_local)
        handle_index = 1 if at_start else len(spline) - 2
        handle = spline.get_point(handle_index).replace(position=np.asarray(handle_world, dtype=float))
        spline.set_point(handle_index, handle, mirror_handles=False)
