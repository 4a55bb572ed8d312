from __future__ import annotations

from pathlib import Path
import sys
import tempfile
import unittest
from unittest.mock import patch

import numpy as np

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

try:
    import matplotlib
    matplotlib.use("Agg")
    _HAS_MATPLOTLIB = True
except ImportError:
    _HAS_MATPLOTLIB = False

from splinekit.config import SplineVisualizationConfig
from splinekit.spline import Spline
from splinekit.topology import CurveMode


def _bezier() -> Spline:
    spline = Spline(mode=CurveMode.BEZIER)
    for anchor in [(0, 0, 0), (10, 0, 2), (10, 10, 4)]:
        spline.append(anchor)
    return spline


@unittest.skipUnless(_HAS_MATPLOTLIB, "matplotlib required")
class PlotSplineTest(unittest.TestCase):
    def test_smoke_renders_without_error(self) -> None:
        from splinekit.visualization import plot_spline

        ax = plot_spline(Spline([(0, 0, 0), (5, 2, 0), (10, 0, 0)], mode="bspline"))
        self.assertIsNotNone(ax)

    def test_saves_png_to_output_path(self) -> None:
        from splinekit.visualization import plot_spline

        with tempfile.TemporaryDirectory() as tmpdir:
            out = Path(tmpdir) / "plots" / "bezier.png"
            plot_spline(_bezier(), title="Bezier", output_path=out)
            self.assertTrue(out.exists())
            self.assertGreater(out.stat().st_size, 0)

    def test_bezier_handles_are_drawn(self) -> None:
        from splinekit.visualization import plot_spline

        ax = plot_spline(_bezier(), show_tangents=False)
        labels = [collection.get_label() for collection in ax.collections]
        self.assertIn("Anchors", labels)
        self.assertIn("Handles", labels)
        anchors = ax.collections[labels.index("Anchors")].get_offsets()
        self.assertEqual(len(anchors), 3)

    def test_custom_viz_config_and_plane(self) -> None:
        from splinekit.visualization import plot_spline

        cfg = SplineVisualizationConfig(curve_color="#FF0000", samples=16, max_tangents=4)
        ax = plot_spline(_bezier(), plane="xz", viz_config=cfg)
        curve = ax.lines[0]
        self.assertEqual(len(curve.get_xdata()), 16)
        self.assertTrue(np.allclose(curve.get_ydata()[[0, -1]], [0.0, 4.0]))
        self.assertEqual(ax.get_ylabel(), "Z")

    def test_closed_spline_renders(self) -> None:
        from splinekit.visualization import plot_spline

        square = Spline([(0, 0, 0), (10, 0, 0), (10, 10, 0), (0, 10, 0)], closed=True)
        self.assertIsNotNone(plot_spline(square))

    def test_draws_on_existing_axes(self) -> None:
        import matplotlib.pyplot as plt
        from splinekit.visualization import plot_spline

        fig, ax = plt.subplots()
        returned_ax = plot_spline(_bezier(), ax=ax)
        self.assertIs(returned_ax, ax)
        plt.close(fig)

    def test_empty_spline_warns(self) -> None:
        from splinekit.visualization import plot_spline

        with self.assertLogs("splinekit.visualization", level="WARNING"):
            ax = plot_spline(Spline())
        self.assertIsNotNone(ax)

    def test_rejects_unknown_plane(self) -> None:
        from splinekit.visualization import plot_spline

        with self.assertRaises(ValueError):
            plot_spline(_bezier(), plane="xw")


class PlotSplineWithoutMatplotlibTest(unittest.TestCase):
    def test_missing_matplotlib_raises_import_error(self) -> None:
        from splinekit import visualization

        with patch.object(visualization, "_HAS_MATPLOTLIB", False):
            with self.assertRaises(ImportError):
                visualization.plot_spline(_bezier())


if __name__ == "__main__":
    unittest.main()
