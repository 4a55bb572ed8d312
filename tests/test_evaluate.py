from __future__ import annotations

from pathlib import Path
import unittest
import sys

import numpy as np


SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from splinekit import quaternion as quat  # noqa: E402
from splinekit.config import EvaluationConfig, SplineEngineConfig  # noqa: E402
from splinekit.evaluate import (  # noqa: E402
    evaluate,
    evaluate_many,
    get_forward,
    position_at,
    sample_positions,
)
from splinekit.points import ControlPoint, PointArrays  # noqa: E402
from splinekit.spline import Spline  # noqa: E402
from splinekit.topology import CurveMode  # noqa: E402


# Seven points so the same store is valid for every mode (Bezier needs 3k + 1).
WIGGLE = np.array(
    [
        [0.0, 0.0, 0.0],
        [1.0, 2.0, 0.0],
        [3.0, 3.0, 1.0],
        [4.0, 0.0, 2.0],
        [6.0, 1.0, 0.0],
        [7.0, 3.0, 1.0],
        [9.0, 0.0, 0.0],
    ]
)

SQUARE = [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0), (10.0, 10.0, 0.0), (0.0, 10.0, 0.0)]


def _translation(x: float, y: float, z: float) -> np.ndarray:
    mat = np.eye(4)
    mat[:3, 3] = (x, y, z)
    return mat


class EvaluateLinearTest(unittest.TestCase):
    def test_two_point_midpoint(self) -> None:
        points = [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
        sample = evaluate(points, CurveMode.LINEAR, t=0.5)
        self.assertTrue(np.allclose(sample.position, [5.0, 0.0, 0.0]))
        self.assertTrue(np.allclose(sample.tangent, [1.0, 0.0, 0.0]))

    def test_orientation_and_scale_interpolate(self) -> None:
        quarter = quat.from_axis_angle(np.array([0.0, 0.0, 1.0]), np.pi / 2)
        points = [
            ControlPoint(position=(0, 0, 0), scale=(1, 1, 1)),
            ControlPoint(position=(2, 0, 0), orientation=quarter, scale=(3, 3, 3)),
        ]
        sample = evaluate(points, "linear", t=0.5)
        self.assertTrue(np.allclose(sample.scale, [2.0, 2.0, 2.0]))
        expected = quat.from_axis_angle(np.array([0.0, 0.0, 1.0]), np.pi / 4)
        self.assertLess(quat.angle_between(sample.orientation, expected), 1e-6)

    def test_position_at_matches_evaluate(self) -> None:
        for t in (0.0, 0.2, 0.55, 1.0):
            self.assertTrue(
                np.allclose(
                    position_at(WIGGLE, CurveMode.LINEAR, t=t),
                    evaluate(WIGGLE, CurveMode.LINEAR, t=t).position,
                )
            )


class EndpointFidelityTest(unittest.TestCase):
    def test_open_curves_start_and_end_on_their_anchors(self) -> None:
        for mode in CurveMode:
            with self.subTest(mode=mode.value):
                start = evaluate(WIGGLE, mode, t=0.0).position
                end = evaluate(WIGGLE, mode, t=1.0).position
                self.assertTrue(np.allclose(start, WIGGLE[0], atol=1e-9))
                self.assertTrue(np.allclose(end, WIGGLE[-1], atol=1e-9))

    def test_out_of_range_t_clamps_on_open_curves(self) -> None:
        for mode in CurveMode:
            with self.subTest(mode=mode.value):
                self.assertTrue(np.allclose(position_at(WIGGLE, mode, t=-0.5), WIGGLE[0]))
                self.assertTrue(np.allclose(position_at(WIGGLE, mode, t=7.0), WIGGLE[-1]))

    def test_bezier_with_collapsed_handles_matches_linear_midpoint(self) -> None:
        points = [(0.0, 0.0, 0.0), (0.0, 0.0, 0.0), (10.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
        sample = evaluate(points, CurveMode.BEZIER, t=0.5)
        self.assertTrue(np.allclose(sample.position, [5.0, 0.0, 0.0]))
        samples = sample_positions(points, CurveMode.BEZIER, num_samples=33)
        self.assertTrue(np.allclose(samples[:, 1:], 0.0))
        self.assertTrue(np.all(np.diff(samples[:, 0]) >= 0.0))

    def test_bspline_identity_orientations_stay_identity(self) -> None:
        sample = evaluate(WIGGLE, CurveMode.BSPLINE, t=0.37)
        self.assertLess(quat.angle_between(sample.orientation, quat.identity()), 1e-6)


class ClosedLoopContinuityTest(unittest.TestCase):
    def test_closed_curves_meet_at_the_seam(self) -> None:
        twist = quat.from_axis_angle(np.array([0.0, 0.0, 1.0]), 0.6)
        for mode in CurveMode:
            with self.subTest(mode=mode.value):
                spline = Spline(SQUARE, mode=CurveMode.LINEAR)
                spline.set_mode(mode)
                spline.set_point(0, spline.get_point(0).replace(orientation=twist), mirror_handles=False)
                spline.set_closed(True)
                arrays = spline.snapshot()

                start = evaluate(arrays, mode, closed=True, t=0.0)
                near_end = evaluate(arrays, mode, closed=True, t=1.0 - 1e-7)
                wrapped = evaluate(arrays, mode, closed=True, t=1.0)
                self.assertTrue(np.allclose(start.position, near_end.position, atol=1e-4))
                self.assertLess(quat.angle_between(start.orientation, near_end.orientation), 1e-3)
                self.assertTrue(np.allclose(start.position, wrapped.position))

    def test_closed_t_wraps_past_one(self) -> None:
        spline = Spline(SQUARE, closed=True)
        arrays = spline.snapshot()
        a = position_at(arrays, CurveMode.LINEAR, closed=True, t=0.125)
        b = position_at(arrays, CurveMode.LINEAR, closed=True, t=1.125)
        c = position_at(arrays, CurveMode.LINEAR, closed=True, t=-0.875)
        self.assertTrue(np.allclose(a, [5.0, 0.0, 0.0]))
        self.assertTrue(np.allclose(a, b))
        self.assertTrue(np.allclose(a, c))


class ForwardTest(unittest.TestCase):
    def test_forward_is_unit_length(self) -> None:
        for mode in CurveMode:
            for t in (0.0, 0.3, 0.71, 1.0):
                forward = get_forward(WIGGLE, mode, t=t)
                self.assertAlmostEqual(float(np.linalg.norm(forward)), 1.0, places=9)

    def test_stationary_curve_uses_fallback_axis(self) -> None:
        points = [(1.0, 1.0, 1.0), (1.0, 1.0, 1.0)]
        self.assertTrue(np.allclose(get_forward(points, CurveMode.LINEAR, t=0.5), [0.0, 0.0, 1.0]))

        config = SplineEngineConfig(evaluation=EvaluationConfig(fallback_axis=(0.0, 2.0, 0.0)))
        forward = get_forward(points, CurveMode.LINEAR, t=0.5, config=config)
        self.assertTrue(np.allclose(forward, [0.0, 1.0, 0.0]))

    def test_forward_follows_space_rotation(self) -> None:
        rotation = np.eye(4)
        rotation[:3, :3] = quat.to_matrix(quat.from_axis_angle(np.array([0.0, 0.0, 1.0]), np.pi / 2))
        points = [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
        forward = get_forward(points, CurveMode.LINEAR, space_matrix=rotation, t=0.5)
        self.assertTrue(np.allclose(forward, [0.0, 1.0, 0.0], atol=1e-9))


class SpaceTransformTest(unittest.TestCase):
    def test_local_results_are_mapped_to_world(self) -> None:
        matrix = _translation(100.0, 0.0, -5.0)
        points = [(0.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
        sample = evaluate(points, CurveMode.LINEAR, space_matrix=matrix, t=0.5)
        self.assertTrue(np.allclose(sample.position, [105.0, 0.0, -5.0]))
        self.assertTrue(np.allclose(sample.tangent, [1.0, 0.0, 0.0]))

    def test_scaled_space_scales_point_scale(self) -> None:
        matrix = np.diag([2.0, 2.0, 2.0, 1.0])
        sample = evaluate([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0)], CurveMode.LINEAR, space_matrix=matrix, t=1.0)
        self.assertTrue(np.allclose(sample.position, [2.0, 0.0, 0.0]))
        self.assertTrue(np.allclose(sample.scale, [2.0, 2.0, 2.0]))

    def test_rejects_malformed_matrix(self) -> None:
        with self.assertRaises(ValueError):
            evaluate([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0)], CurveMode.LINEAR, space_matrix=np.eye(3), t=0.5)


class DegenerateInputTest(unittest.TestCase):
    def test_empty_store_returns_origin(self) -> None:
        for mode in CurveMode:
            sample = evaluate([], mode, t=0.3)
            self.assertTrue(np.allclose(sample.position, 0.0))
            self.assertTrue(np.allclose(sample.orientation, quat.identity()))
            self.assertTrue(np.allclose(sample.scale, 1.0))
            self.assertTrue(np.allclose(sample.tangent, [0.0, 0.0, 1.0]))

    def test_undersized_store_returns_first_point(self) -> None:
        points = [(1.0, 2.0, 3.0), (4.0, 5.0, 6.0), (7.0, 8.0, 9.0)]
        sample = evaluate(points, CurveMode.BEZIER, t=0.8)
        self.assertTrue(np.allclose(sample.position, [1.0, 2.0, 3.0]))
        single = evaluate([(1.0, 2.0, 3.0)], CurveMode.BSPLINE, closed=True, t=0.4)
        self.assertTrue(np.allclose(single.position, [1.0, 2.0, 3.0]))

    def test_rejects_non_finite_positions(self) -> None:
        with self.assertRaises(ValueError):
            evaluate(np.array([[0.0, 0.0, 0.0], [np.inf, 0.0, 0.0]]), CurveMode.LINEAR, t=0.5)


class BatchHelpersTest(unittest.TestCase):
    def test_evaluate_many_matches_single_calls(self) -> None:
        ts = [0.0, 0.25, 0.8]
        batch = evaluate_many(WIGGLE, CurveMode.BSPLINE, ts=ts)
        self.assertEqual(len(batch), 3)
        for t, sample in zip(ts, batch):
            self.assertTrue(np.allclose(sample.position, position_at(WIGGLE, CurveMode.BSPLINE, t=t)))

    def test_sample_positions_shape_and_empty(self) -> None:
        arrays = PointArrays.from_positions(WIGGLE)
        self.assertEqual(sample_positions(arrays, CurveMode.BEZIER, num_samples=17).shape, (17, 3))
        self.assertEqual(sample_positions(arrays, CurveMode.BEZIER, num_samples=0).shape, (0, 3))


if __name__ == "__main__":
    unittest.main()
