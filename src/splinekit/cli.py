"""Command-line entrypoints for splinekit."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from importlib import metadata
from typing import Any

import numpy as np

from .config import SplineEngineConfig
from .spline import Spline
from .topology import CurveMode

COMMANDS = ("sample", "project", "length")


def _package_version() -> str:
    try:
        return metadata.version("splinekit")
    except metadata.PackageNotFoundError:
        return "0.1.0"


def _configure_logging(log_level: str) -> None:
    level_name = (log_level or "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        raise ValueError(
            f"Invalid --log-level: {log_level!r}. "
            "Allowed values: DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    logging.basicConfig(level=level, format="%(message)s", force=True)


def _vector(text: str) -> tuple[float, float, float]:
    parts = [p for p in text.replace(" ", "").split(",") if p]
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"Expected x,y,z; got {text!r}.")
    try:
        return tuple(float(p) for p in parts)  # type: ignore[return-value]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected numeric x,y,z; got {text!r}.") from exc


def _build_parser(command: str) -> argparse.ArgumentParser:
    descriptions = {
        "sample": "Evaluate a spline at evenly spaced parameters and print the samples as JSON.",
        "project": "Find the parameter t on a spline closest to a position.",
        "length": "Measure a spline's arc length and optionally map distances to t.",
    }
    parser = argparse.ArgumentParser(
        prog=f"splinekit {command}",
        description=descriptions[command],
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"splinekit {_package_version()}",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Python logging level.",
    )
    parser.add_argument(
        "--point",
        dest="points",
        type=_vector,
        action="append",
        default=[],
        help="Control point as x,y,z. Repeat in curve order.",
    )
    parser.add_argument(
        "--mode",
        type=str,
        default=CurveMode.LINEAR.value,
        help="Curve family: linear | bezier | bspline.",
    )
    parser.add_argument(
        "--closed",
        action="store_true",
        help="Close the spline into a loop.",
    )
    parser.add_argument(
        "--config-json",
        type=Path,
        default=None,
        help="Optional JSON file serialized from SplineEngineConfig.",
    )

    if command == "sample":
        parser.add_argument(
            "--samples",
            type=int,
            default=11,
            help="Number of evenly spaced t values in [0, 1].",
        )
        parser.add_argument(
            "--plot-output",
            type=Path,
            default=None,
            help="Also write a debug PNG of the spline (requires matplotlib).",
        )
    elif command == "project":
        parser.add_argument(
            "--position",
            type=_vector,
            required=True,
            help="Query position as x,y,z.",
        )
    else:
        parser.add_argument(
            "--resolution",
            type=int,
            default=None,
            help="Arc-length table resolution (defaults to the config value).",
        )
        parser.add_argument(
            "--distance",
            dest="distances",
            type=float,
            action="append",
            default=[],
            help="Distance along the curve to convert to t. Repeatable.",
        )
    return parser


def _parse_cli_args(argv: list[str] | None = None) -> tuple[str, argparse.Namespace]:
    tokens = list(sys.argv[1:] if argv is None else argv)
    if not tokens or tokens[0] not in COMMANDS:
        if tokens and tokens[0] == "--version":
            print(f"splinekit {_package_version()}")
            raise SystemExit(0)
        allowed = ", ".join(COMMANDS)
        print(f"usage: splinekit {{{allowed}}} [options]", file=sys.stderr)
        raise SystemExit(2)
    command = tokens[0]
    return command, _build_parser(command).parse_args(tokens[1:])


def build_config(args: argparse.Namespace) -> SplineEngineConfig:
    if args.config_json is not None:
        return SplineEngineConfig.from_json(args.config_json)
    return SplineEngineConfig()


def build_spline(args: argparse.Namespace, config: SplineEngineConfig) -> Spline:
    if not args.points:
        raise ValueError("Provide at least one --point x,y,z.")
    return Spline(
        points=args.points,
        mode=CurveMode.parse(args.mode),
        closed=args.closed,
        name="cli",
        config=config,
    )


def _run_sample(args: argparse.Namespace, spline: Spline) -> list[dict[str, Any]]:
    if args.samples < 1:
        raise ValueError("`--samples` must be >= 1.")
    payload = []
    for t in np.linspace(0.0, 1.0, args.samples):
        record = {"t": float(t)}
        record.update(spline.evaluate(float(t)).to_dict())
        payload.append(record)

    if args.plot_output is not None:
        from .visualization import plot_spline

        plot_spline(spline, title=f"{spline.mode.value} spline", output_path=args.plot_output)
        logging.getLogger(__name__).info("Wrote plot: %s", args.plot_output)
    return payload


def _run_project(args: argparse.Namespace, spline: Spline) -> dict[str, Any]:
    result = spline.project_detailed(args.position)
    return {
        "t": result.t,
        "segment": result.segment,
        "local_t": result.local_t,
        "distance": result.distance,
        "position": result.position.tolist(),
    }


def _run_length(args: argparse.Namespace, spline: Spline) -> dict[str, Any]:
    cache = spline.build_distance_cache(args.resolution)
    payload: dict[str, Any] = {"length": cache.total_length, "resolution": len(cache.table[0])}
    if args.distances:
        payload["t"] = [spline.distance_to_t(d) for d in args.distances]
    return payload


RUNNERS = {
    "sample": _run_sample,
    "project": _run_project,
    "length": _run_length,
}


def main(argv: list[str] | None = None) -> None:
    command, args = _parse_cli_args(argv)
    try:
        _configure_logging(getattr(args, "log_level", "INFO"))
        config = build_config(args)
        spline = build_spline(args, config)
        result = RUNNERS[command](args, spline)
        print(json.dumps(result, indent=2))
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        raise SystemExit(130) from None
    except Exception as exc:  # noqa: BLE001
        logger = logging.getLogger(__name__)
        if logging.getLogger().handlers:
            logger.error("Error: %s", exc)
            if logger.isEnabledFor(logging.DEBUG):
                logger.exception("Detailed traceback")
        else:
            print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(2) from None


if __name__ == "__main__":
    main()
