"""Parametric spline engine: linear, cubic Bezier and uniform B-spline curves."""

from .config import (
    DistanceCacheConfig,
    EvaluationConfig,
    ProjectionConfig,
    SplineEngineConfig,
    SplineVisualizationConfig,
)
from .distance_cache import DistanceCache, build_distance_cache
from .errors import InvariantViolation, JunctionCycleError, SplineError, StaleCacheError
from .evaluate import evaluate, evaluate_many, get_forward, position_at, sample_positions
from .junction import Junction, SplineRegistry
from .points import ControlPoint, PointArrays, PointSample, inverse_matrix, transform_point
from .projection import ProjectionResult, project, project_detailed, project_many
from .spline import Spline
from .topology import CurveMode, Topology
from .visualization import plot_spline

__all__ = [
    "ControlPoint",
    "CurveMode",
    "DistanceCache",
    "DistanceCacheConfig",
    "EvaluationConfig",
    "InvariantViolation",
    "Junction",
    "JunctionCycleError",
    "PointArrays",
    "PointSample",
    "ProjectionConfig",
    "ProjectionResult",
    "Spline",
    "SplineEngineConfig",
    "SplineError",
    "SplineRegistry",
    "SplineVisualizationConfig",
    "StaleCacheError",
    "Topology",
    "build_distance_cache",
    "evaluate",
    "evaluate_many",
    "get_forward",
    "inverse_matrix",
    "plot_spline",
    "position_at",
    "project",
    "project_detailed",
    "project_many",
    "sample_positions",
    "transform_point",
]
