"""Unit quaternion helpers (xyzw convention) backed by plain numpy arrays."""

from __future__ import annotations

import numpy as np


_EPS = 1e-9

FORWARD = np.array([0.0, 0.0, 1.0], dtype=float)
UP = np.array([0.0, 1.0, 0.0], dtype=float)


def identity() -> np.ndarray:
    """Return the identity rotation."""
    return np.array([0.0, 0.0, 0.0, 1.0], dtype=float)


def normalize(q: np.ndarray) -> np.ndarray:
    """Return `q` scaled to unit length; zero quaternions become identity."""
    q = np.asarray(q, dtype=float)
    norm = float(np.linalg.norm(q))
    if norm < _EPS or not np.isfinite(norm):
        return identity()
    return q / norm


def multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product `q1 * q2` (apply `q2` first, then `q1`)."""
    x1, y1, z1, w1 = q1
    x2, y2, z2, w2 = q2
    return np.array(
        [
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        ],
        dtype=float,
    )


def rotate(q: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    """
    Apply the rotation `q` to one vector (3,) or a batch (..., 3).

    Uses v' = v + 2 * (w * (u x v) + u x (u x v)) with u the vector part.
    """
    q = np.asarray(q, dtype=float)
    vectors = np.asarray(vectors, dtype=float)
    u = q[:3]
    w = q[3]
    uv = np.cross(u, vectors)
    uuv = np.cross(u, uv)
    return vectors + 2.0 * (w * uv + uuv)


def dot(q1: np.ndarray, q2: np.ndarray) -> float:
    return float(np.dot(q1, q2))


def angle_between(q1: np.ndarray, q2: np.ndarray) -> float:
    """Rotation angle (radians) taking `q1` to `q2`, sign-insensitive."""
    d = abs(dot(normalize(q1), normalize(q2)))
    return float(2.0 * np.arccos(min(1.0, d)))


def slerp(q1: np.ndarray, q2: np.ndarray, t: float) -> np.ndarray:
    """Spherical interpolation along the shortest arc."""
    a = normalize(q1)
    b = normalize(q2)
    cos_theta = float(np.dot(a, b))
    if cos_theta < 0.0:
        b = -b
        cos_theta = -cos_theta

    # Nearly parallel: sin(theta) vanishes, fall back to normalized lerp.
    if cos_theta > 0.9995:
        return normalize(a + (b - a) * t)

    theta = float(np.arccos(min(1.0, cos_theta)))
    sin_theta = float(np.sin(theta))
    wa = np.sin((1.0 - t) * theta) / sin_theta
    wb = np.sin(t * theta) / sin_theta
    return normalize(wa * a + wb * b)


def quad_slerp(
    q0: np.ndarray,
    q1: np.ndarray,
    q2: np.ndarray,
    q3: np.ndarray,
    t: float,
) -> np.ndarray:
    """Cubic rotation blend: De Casteljau's construction with slerp instead of lerp."""
    ab = slerp(q0, q1, t)
    bc = slerp(q1, q2, t)
    cd = slerp(q2, q3, t)
    ac = slerp(ab, bc, t)
    bd = slerp(bc, cd, t)
    return slerp(ac, bd, t)


def from_matrix(mat: np.ndarray) -> np.ndarray:
    """
    Convert a 3x3 rotation (optionally scaled) matrix to a unit quaternion.

    Columns are normalized first so affine matrices with scale are accepted.
    """
    m = np.array(mat, dtype=float, copy=True)[:3, :3]
    norms = np.linalg.norm(m, axis=0)
    norms[norms < _EPS] = 1.0
    m = m / norms

    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        s = 2.0 * np.sqrt(trace + 1.0)
        w = 0.25 * s
        x = (m[2, 1] - m[1, 2]) / s
        y = (m[0, 2] - m[2, 0]) / s
        z = (m[1, 0] - m[0, 1]) / s
    elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        s = 2.0 * np.sqrt(max(_EPS, 1.0 + m[0, 0] - m[1, 1] - m[2, 2]))
        w = (m[2, 1] - m[1, 2]) / s
        x = 0.25 * s
        y = (m[0, 1] + m[1, 0]) / s
        z = (m[0, 2] + m[2, 0]) / s
    elif m[1, 1] > m[2, 2]:
        s = 2.0 * np.sqrt(max(_EPS, 1.0 + m[1, 1] - m[0, 0] - m[2, 2]))
        w = (m[0, 2] - m[2, 0]) / s
        x = (m[0, 1] + m[1, 0]) / s
        y = 0.25 * s
        z = (m[1, 2] + m[2, 1]) / s
    else:
        s = 2.0 * np.sqrt(max(_EPS, 1.0 + m[2, 2] - m[0, 0] - m[1, 1]))
        w = (m[1, 0] - m[0, 1]) / s
        x = (m[0, 2] + m[2, 0]) / s
        y = (m[1, 2] + m[2, 1]) / s
        z = 0.25 * s
    return normalize(np.array([x, y, z, w], dtype=float))


def to_matrix(q: np.ndarray) -> np.ndarray:
    """Convert a quaternion to a 3x3 rotation matrix."""
    x, y, z, w = normalize(q)
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ],
        dtype=float,
    )


def from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    axis = np.asarray(axis, dtype=float)
    norm = float(np.linalg.norm(axis))
    if norm < _EPS:
        return identity()
    half = 0.5 * angle
    xyz = axis / norm * np.sin(half)
    return np.array([xyz[0], xyz[1], xyz[2], np.cos(half)], dtype=float)


def look_rotation(forward: np.ndarray, up: np.ndarray = UP) -> np.ndarray:
    """
    Rotation whose local +Z maps to `forward` and local +Y leans towards `up`.

    A zero forward yields identity; an up parallel to forward is replaced by
    an alternate axis so the basis stays orthonormal.
    """
    f = np.asarray(forward, dtype=float)
    f_norm = float(np.linalg.norm(f))
    if f_norm < _EPS:
        return identity()
    f = f / f_norm

    up_hint = np.asarray(up, dtype=float)
    right = np.cross(up_hint, f)
    r_norm = float(np.linalg.norm(right))
    if r_norm < 1e-6:
        alt_up = np.array([1.0, 0.0, 0.0]) if abs(f[0]) < 0.9 else np.array([0.0, 0.0, 1.0])
        right = np.cross(alt_up, f)
        r_norm = float(np.linalg.norm(right))
    right = right / r_norm
    true_up = np.cross(f, right)
    basis = np.stack((right, true_up, f), axis=-1)
    return from_matrix(basis)
