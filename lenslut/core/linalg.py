"""Small dense matrix helpers: 3x3/4x4 determinants and 4x4 inverse by cofactors.

The inverse is adjugate / determinant with no pivoting. It is only fed the
fixed-structure spline tangent matrix, and keeping the plain cofactor form
makes results reproducible against stored fixtures.
"""

from typing import Optional

import numpy as np


def _as_matrix(m, n: int) -> np.ndarray:
    m = np.asarray(m, dtype=np.float64)
    if m.shape != (n, n):
        raise ValueError(f"Expected {n}x{n} matrix, got shape {m.shape}")
    return m


def _minor(m: np.ndarray, row: int, col: int) -> np.ndarray:
    """Matrix with `row` and `col` removed."""
    return np.delete(np.delete(m, row, axis=0), col, axis=1)


def determinant_3x3(m) -> float:
    """Determinant by first-row cofactor expansion."""
    m = _as_matrix(m, 3)
    return float(
        m[0, 0] * (m[1, 1] * m[2, 2] - m[1, 2] * m[2, 1])
        - m[0, 1] * (m[1, 0] * m[2, 2] - m[1, 2] * m[2, 0])
        + m[0, 2] * (m[1, 0] * m[2, 1] - m[1, 1] * m[2, 0])
    )


def cofactor_matrix_4x4(m) -> np.ndarray:
    """C[i, j] = (-1)^(i+j) * det(minor(i, j))."""
    m = _as_matrix(m, 4)
    cof = np.empty((4, 4), dtype=np.float64)
    for i in range(4):
        for j in range(4):
            sign = 1.0 if (i + j) % 2 == 0 else -1.0
            cof[i, j] = sign * determinant_3x3(_minor(m, i, j))
    return cof


def determinant_4x4(m) -> float:
    """Determinant by first-row expansion over four 3x3 minors."""
    m = _as_matrix(m, 4)
    det = 0.0
    for j in range(4):
        sign = 1.0 if j % 2 == 0 else -1.0
        det += sign * m[0, j] * determinant_3x3(_minor(m, 0, j))
    return det


def inverse_4x4(m) -> Optional[np.ndarray]:
    """Inverse as transpose(cofactors) / det; None when det is exactly zero."""
    m = _as_matrix(m, 4)
    det = determinant_4x4(m)
    if det == 0.0:
        return None
    return cofactor_matrix_4x4(m).T / det
