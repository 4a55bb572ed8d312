"""Configuration models for the spline engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import json
from pathlib import Path
from typing import Any


def _as_axis(value: Any, field_name: str) -> tuple[float, float, float]:
    try:
        axis = tuple(float(v) for v in value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"`{field_name}` must be a sequence of three numbers; got {value!r}.") from exc
    if len(axis) != 3:
        raise ValueError(f"`{field_name}` must have exactly three components; got {len(axis)}.")
    if sum(v * v for v in axis) < 1e-12:
        raise ValueError(f"`{field_name}` must not be the zero vector.")
    return axis  # type: ignore[return-value]


@dataclass
class EvaluationConfig:
    """Knobs for point evaluation and tangent sampling."""

    tangent_epsilon: float = 1.0 / 256.0  # [t] half-width of the central difference.
    fallback_axis: tuple[float, float, float] = (0.0, 0.0, 1.0)  # forward for stationary samples.
    equality_threshold: float = 1e-3  # squared-distance threshold for change detection.

    def __post_init__(self) -> None:
        if not 0.0 < self.tangent_epsilon < 0.5:
            raise ValueError("`tangent_epsilon` must be in (0, 0.5).")
        if self.equality_threshold <= 0:
            raise ValueError("`equality_threshold` must be > 0.")
        self.fallback_axis = _as_axis(self.fallback_axis, "fallback_axis")


@dataclass
class ProjectionConfig:
    """
    Constants of the derivative-free segment descent.

    More iterations or a slower shrink buy accuracy at linear cost per segment;
    the defaults reach ~1e-5 in local segment parameter after ~23 steps.
    """

    iteration_budget: int = 128
    shrink: float = 0.6
    threshold: float = 1e-5
    initial_t: float = 0.5
    initial_step: float = 1.0

    def __post_init__(self) -> None:
        if self.iteration_budget < 1:
            raise ValueError("`iteration_budget` must be >= 1.")
        if not 0.0 < self.shrink < 1.0:
            raise ValueError("`shrink` must be in (0, 1).")
        if self.threshold <= 0:
            raise ValueError("`threshold` must be > 0.")
        if not 0.0 <= self.initial_t <= 1.0:
            raise ValueError("`initial_t` must be in [0, 1].")
        if self.initial_step <= 0:
            raise ValueError("`initial_step` must be > 0.")


@dataclass
class DistanceCacheConfig:
    """Arc-length table options."""

    resolution: int = 256  # samples along the whole curve.
    strict: bool = True  # raise on stale/unbuilt use instead of returning a boundary value.

    def __post_init__(self) -> None:
        if self.resolution < 2:
            raise ValueError("`resolution` must be >= 2.")


@dataclass
class SplineVisualizationConfig:
    """Visual style for debug plots."""

    curve_color: str = "#D500F9"
    curve_linewidth: float = 2.0
    anchor_color: str = "#00E676"
    handle_color: str = "#9E9E9E"
    marker_size: float = 40.0
    tangent_color: str = "#AA00FF"
    tangent_length: float = 0.5
    max_tangents: int = 32
    samples: int = 256

    def __post_init__(self) -> None:
        if self.samples < 2:
            raise ValueError("`samples` must be >= 2.")
        if self.max_tangents < 0:
            raise ValueError("`max_tangents` must be >= 0.")


@dataclass
class SplineEngineConfig:
    """Top-level config bundling every engine knob."""

    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    projection: ProjectionConfig = field(default_factory=ProjectionConfig)
    distance_cache: DistanceCacheConfig = field(default_factory=DistanceCacheConfig)
    viz: SplineVisualizationConfig = field(default_factory=SplineVisualizationConfig)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["evaluation"]["fallback_axis"] = list(self.evaluation.fallback_axis)
        return payload

    def to_json(self, output_path: Path) -> None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SplineEngineConfig":
        return cls(
            evaluation=EvaluationConfig(**payload.get("evaluation", {})),
            projection=ProjectionConfig(**payload.get("projection", {})),
            distance_cache=DistanceCacheConfig(**payload.get("distance_cache", {})),
            viz=SplineVisualizationConfig(**payload.get("viz", {})),
        )

    @classmethod
    def from_json(cls, input_path: Path) -> "SplineEngineConfig":
        payload = json.loads(input_path.read_text())
        return cls.from_dict(payload)


DEFAULT_CONFIG = SplineEngineConfig()
