from __future__ import annotations

from pathlib import Path
import unittest
import sys

import numpy as np


SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from splinekit.config import ProjectionConfig, SplineEngineConfig  # noqa: E402
from splinekit.evaluate import position_at  # noqa: E402
from splinekit.projection import project, project_detailed, project_many  # noqa: E402
from splinekit.spline import Spline  # noqa: E402
from splinekit.topology import CurveMode  # noqa: E402


def _arc(count: int, radius: float = 10.0, sweep: float = np.pi * 0.75) -> np.ndarray:
    angles = np.linspace(0.0, sweep, count)
    return np.stack([radius * np.cos(angles), radius * np.sin(angles), 0.5 * angles], axis=-1)


def _wrap_delta(a: float, b: float) -> float:
    delta = abs(a - b) % 1.0
    return min(delta, 1.0 - delta)


class LinearProjectionTest(unittest.TestCase):
    def test_two_point_scenario(self) -> None:
        points = [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
        self.assertAlmostEqual(project(points, CurveMode.LINEAR, position=(5.0, 1.0, 0.0)), 0.5)

    def test_projection_clamps_to_segment_extent(self) -> None:
        points = [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
        self.assertEqual(project(points, CurveMode.LINEAR, position=(-4.0, 2.0, 0.0)), 0.0)
        self.assertEqual(project(points, CurveMode.LINEAR, position=(14.0, 2.0, 0.0)), 1.0)

    def test_nearest_vertex_not_adjacent_to_nearest_segment(self) -> None:
        # The last vertex is the closest stored point, but the first segment is closer.
        points = [(0.0, 0.0, 0.0), (100.0, 0.0, 0.0), (100.0, 50.0, 0.0), (50.0, 2.2, 0.0)]
        result = project_detailed(points, CurveMode.LINEAR, position=(50.0, 1.0, 0.0))
        self.assertEqual(result.segment, 0)
        self.assertAlmostEqual(result.distance, 1.0)
        self.assertAlmostEqual(result.t, 0.5 / 3.0)

    def test_zero_length_segment_resolves_to_its_start(self) -> None:
        points = [(0.0, 0.0, 0.0), (0.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
        result = project_detailed(points, CurveMode.LINEAR, position=(0.0, -3.0, 0.0))
        self.assertEqual(result.t, 0.0)
        self.assertAlmostEqual(result.distance, 3.0)

    def test_closed_loop_considers_closing_segment(self) -> None:
        square = Spline([(0, 0, 0), (10, 0, 0), (10, 10, 0), (0, 10, 0)], closed=True)
        t = project(square.snapshot(), CurveMode.LINEAR, closed=True, position=(-1.0, 5.0, 0.0))
        self.assertAlmostEqual(t, 0.875)

    def test_equidistant_segments_are_stable(self) -> None:
        points = [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0), (20.0, 0.0, 0.0)]
        first = project_detailed(points, CurveMode.LINEAR, position=(10.0, 5.0, 0.0))
        second = project_detailed(points, CurveMode.LINEAR, position=(10.0, 5.0, 0.0))
        self.assertAlmostEqual(first.t, 0.5)
        self.assertEqual((first.segment, first.t), (second.segment, second.t))


class CurvedProjectionTest(unittest.TestCase):
    def test_collapsed_handle_bezier_matches_linear_scenario(self) -> None:
        points = [(0.0, 0.0, 0.0), (0.0, 0.0, 0.0), (10.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
        t = project(points, CurveMode.BEZIER, position=(5.0, 1.0, 0.0))
        self.assertAlmostEqual(t, 0.5, delta=1e-3)

    def test_round_trip_on_open_curves(self) -> None:
        arc = _arc(7)
        for mode in CurveMode:
            with self.subTest(mode=mode.value):
                for t in np.linspace(0.02, 0.98, 25):
                    position = position_at(arc, mode, t=float(t))
                    self.assertAlmostEqual(project(arc, mode, position=position), float(t), delta=1e-3)

    def test_round_trip_on_closed_curves(self) -> None:
        anchors = [(10.0, 0.0, 0.0), (0.0, 10.0, 1.0), (-10.0, 0.0, 0.0), (0.0, -10.0, -1.0)]
        for mode in CurveMode:
            with self.subTest(mode=mode.value):
                spline = Spline(mode=mode)
                for anchor in anchors:
                    spline.append(anchor)
                spline.set_closed(True)
                arrays = spline.snapshot()
                for t in np.linspace(0.0, 0.98, 30):
                    position = position_at(arrays, mode, closed=True, t=float(t))
                    found = project(arrays, mode, closed=True, position=position)
                    self.assertLess(_wrap_delta(found, float(t)), 1e-3)
                    self.assertLess(found, 1.0)

    def test_off_curve_query_reports_distance(self) -> None:
        arc = _arc(5)
        result = project_detailed(arc, CurveMode.BSPLINE, position=(0.0, 0.0, 100.0))
        self.assertGreater(result.distance, 90.0)
        self.assertTrue(0.0 <= result.t <= 1.0)
        self.assertTrue(np.allclose(result.position, position_at(arc, CurveMode.BSPLINE, t=result.t), atol=1e-6))

    def test_tiny_iteration_budget_still_returns_valid_t(self) -> None:
        config = SplineEngineConfig(projection=ProjectionConfig(iteration_budget=1))
        t = project(_arc(4), CurveMode.BEZIER, position=(3.0, 3.0, 0.0), config=config)
        self.assertTrue(0.0 <= t <= 1.0)


class SpaceAndDegenerateProjectionTest(unittest.TestCase):
    def test_query_is_mapped_into_local_space(self) -> None:
        matrix = np.eye(4)
        matrix[:3, 3] = (100.0, 0.0, 0.0)
        points = [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
        result = project_detailed(points, CurveMode.LINEAR, space_matrix=matrix, position=(105.0, 1.0, 0.0))
        self.assertAlmostEqual(result.t, 0.5)
        self.assertTrue(np.allclose(result.position, [105.0, 0.0, 0.0]))

    def test_empty_and_undersized_stores_project_to_zero(self) -> None:
        self.assertEqual(project([], CurveMode.BEZIER, position=(1.0, 2.0, 3.0)), 0.0)
        self.assertEqual(project([(4.0, 4.0, 4.0)], CurveMode.LINEAR, position=(1.0, 2.0, 3.0)), 0.0)

    def test_rejects_malformed_query(self) -> None:
        with self.assertRaises(ValueError):
            project([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0)], CurveMode.LINEAR, position=(1.0, 2.0))
        with self.assertRaises(ValueError):
            project([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0)], CurveMode.LINEAR, position=(np.nan, 0.0, 0.0))

    def test_project_many(self) -> None:
        points = [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
        ts = project_many(points, CurveMode.LINEAR, positions=[(2.0, 1.0, 0.0), (8.0, -1.0, 0.0)])
        self.assertEqual(len(ts), 2)
        self.assertAlmostEqual(ts[0], 0.2)
        self.assertAlmostEqual(ts[1], 0.8)


if __name__ == "__main__":
    unittest.main()
