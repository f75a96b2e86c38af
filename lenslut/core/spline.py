"""Four-point cubic Hermite spline used to bridge failed LUT runs."""

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

from .errors import SingularMatrixError
from .linalg import inverse_4x4


@dataclass(frozen=True)
class SplineKnot:
    x: float
    y: float


def _knot_arrays(knots: Sequence) -> Tuple[np.ndarray, np.ndarray]:
    if len(knots) != 4:
        raise ValueError(f"Expected 4 knots, got {len(knots)}")
    xs = np.array([float(k.x if isinstance(k, SplineKnot) else k[0]) for k in knots])
    ys = np.array([float(k.y if isinstance(k, SplineKnot) else k[1]) for k in knots])
    if not np.all(np.diff(xs) > 0):
        raise ValueError(f"Knot x values must be strictly increasing, got {xs.tolist()}")
    return xs, ys


def tangent_system(knots: Sequence) -> Tuple[np.ndarray, np.ndarray]:
    """Build the 4x4 natural-spline tangent system A @ k = b.

    Interior rows enforce second-derivative continuity at x1 and x2,
    the end rows set a zero second derivative at x0 and x3.
    """
    xs, ys = _knot_arrays(knots)
    h = np.diff(xs)    # [3]
    dy = np.diff(ys)   # [3]

    A = np.zeros((4, 4), dtype=np.float64)
    b = np.zeros(4, dtype=np.float64)

    A[0, 0] = 2.0 / h[0]
    A[0, 1] = 1.0 / h[0]
    b[0] = 3.0 * dy[0] / h[0] ** 2

    for i in (1, 2):
        A[i, i - 1] = 1.0 / h[i - 1]
        A[i, i] = 2.0 * (1.0 / h[i - 1] + 1.0 / h[i])
        A[i, i + 1] = 1.0 / h[i]
        b[i] = 3.0 * (dy[i - 1] / h[i - 1] ** 2 + dy[i] / h[i] ** 2)

    A[3, 2] = 1.0 / h[2]
    A[3, 3] = 2.0 / h[2]
    b[3] = 3.0 * dy[2] / h[2] ** 2

    return A, b


def four_point_spline_tangents(knots: Sequence) -> Tuple[float, float]:
    """Tangents (k1, k2) at the two interior knots.

    Args:
        knots: four (x, y) pairs or SplineKnot, strictly increasing in x

    Returns:
        (k1, k2)

    Raises:
        SingularMatrixError: the tangent matrix is not invertible
    """
    A, b = tangent_system(knots)
    A_inv = inverse_4x4(A)
    if A_inv is None:
        raise SingularMatrixError(f"Singular spline tangent matrix for knots {list(knots)}")
    k = A_inv @ b
    return float(k[1]), float(k[2])


def evaluate_spline(
    x1: float,
    x2: float,
    y1: float,
    y2: float,
    k1: float,
    k2: float,
    x: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """Cubic Hermite interpolant on [x1, x2]; exact at both endpoints."""
    dx = x2 - x1
    t = (x - x1) / dx
    a = k1 * dx - (y2 - y1)
    b = -k2 * dx + (y2 - y1)
    return (1 - t) * y1 + t * y2 + t * (1 - t) * ((1 - t) * a + t * b)


@dataclass(frozen=True)
class SplineSegment:
    """Solved interior interval [x1, x2] of a four-knot spline."""
    x1: float
    x2: float
    y1: float
    y2: float
    k1: float
    k2: float

    @classmethod
    def from_knots(cls, knots: Sequence) -> "SplineSegment":
        xs, ys = _knot_arrays(knots)
        k1, k2 = four_point_spline_tangents(knots)
        return cls(float(xs[1]), float(xs[2]), float(ys[1]), float(ys[2]), k1, k2)

    def __call__(self, x):
        return evaluate_spline(self.x1, self.x2, self.y1, self.y2, self.k1, self.k2, x)
