"""Debug plotting of splines (top-down 2D projection)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import numpy as np

from .evaluate import sample_positions
from .points import transform_position

if TYPE_CHECKING:
    from .config import SplineVisualizationConfig
    from .spline import Spline

logger = logging.getLogger(__name__)

try:
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    _HAS_MATPLOTLIB = True
except ImportError:
    _HAS_MATPLOTLIB = False

PLANES = {"xy": (0, 1), "xz": (0, 2), "yz": (1, 2)}


def plot_spline(
    spline: "Spline",
    plane: str = "xy",
    show_tangents: bool = True,
    title: Optional[str] = None,
    viz_config: Optional["SplineVisualizationConfig"] = None,
    output_path: Optional[Path] = None,
    ax: Any = None,
) -> Any:
    """Plot a spline's sampled curve, anchors and Bezier handles.

    Args:
        spline: Spline to draw; world-space positions are plotted.
        plane: Which pair of axes to draw (``xy``, ``xz`` or ``yz``).
        show_tangents: Draw forward-direction arrows along the curve when True.
        title: Plot title.
        viz_config: Visual style overrides.
        output_path: Save PNG to this path when set.
        ax: Existing matplotlib Axes to draw on. A new figure is created if None.

    Returns:
        The matplotlib Axes object used for drawing.
    """
    if not _HAS_MATPLOTLIB:
        raise ImportError(
            "matplotlib is required for spline visualization. "
            "Install it with: pip install matplotlib"
        )
    if plane not in PLANES:
        raise ValueError(f"Unsupported plane: {plane!r}. Expected one of: {', '.join(PLANES)}.")

    cfg = viz_config or spline.config.viz
    i, j = PLANES[plane]

    created_fig = False
    if ax is None:
        fig, ax = plt.subplots(1, 1, figsize=(8, 8))
        created_fig = True

    if len(spline) == 0:
        logger.warning("Spline %s has no points to plot.", spline.name)
    else:
        curve = sample_positions(
            spline.snapshot(), spline.mode, spline.closed, spline.space_matrix, num_samples=cfg.samples
        )
        ax.plot(
            curve[:, i], curve[:, j],
            color=cfg.curve_color,
            linewidth=cfg.curve_linewidth,
            label=f"{spline.mode.value} curve",
            zorder=10,
        )

        stored = np.asarray(spline.snapshot().positions, dtype=float)
        if spline.space_matrix is not None:
            matrix = spline.space_matrix
            stored = np.stack([transform_position(p, matrix) for p in stored])
        handle_mask = np.array([spline.is_handle(k) for k in range(len(stored))], dtype=bool)

        anchors = stored[~handle_mask]
        ax.scatter(
            anchors[:, i], anchors[:, j],
            color=cfg.anchor_color, s=cfg.marker_size,
            edgecolors="white", zorder=20, label="Anchors",
        )
        if np.any(handle_mask):
            handles = stored[handle_mask]
            ax.scatter(
                handles[:, i], handles[:, j],
                color=cfg.handle_color, s=cfg.marker_size * 0.6,
                marker="s", zorder=19, label="Handles",
            )
            # Connect each handle to the anchor it belongs to.
            for k in np.flatnonzero(handle_mask):
                owner = stored[k + 1] if k % 3 == 2 else stored[k - 1]
                ax.plot(
                    [stored[k, i], owner[i]], [stored[k, j], owner[j]],
                    color=cfg.handle_color, linewidth=0.8, linestyle="--", zorder=18,
                )

        if show_tangents and cfg.max_tangents > 0 and spline.segment_count > 0:
            for t in np.linspace(0.0, 1.0, cfg.max_tangents, endpoint=not spline.closed):
                origin = spline.position_at(float(t))
                forward = spline.get_forward(float(t))
                ax.arrow(
                    origin[i], origin[j],
                    forward[i] * cfg.tangent_length,
                    forward[j] * cfg.tangent_length,
                    head_width=cfg.tangent_length * 0.2,
                    head_length=cfg.tangent_length * 0.25,
                    fc=cfg.tangent_color,
                    ec=cfg.tangent_color,
                    alpha=0.6,
                    zorder=16,
                )

    ax.set_aspect("equal", "datalim")
    ax.set_xlabel(plane[0].upper())
    ax.set_ylabel(plane[1].upper())
    if title:
        ax.set_title(title)
    if len(spline) > 0:
        ax.legend(loc="upper right", fontsize=8)

    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        ax.get_figure().savefig(str(output_path), dpi=150, bbox_inches="tight")
        logger.info("Saved spline plot to %s", output_path)

    if created_fig:
        plt.close(fig)

    return ax
