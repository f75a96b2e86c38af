"""lenslut core: LUT repair engine and rebuild lifecycle."""

from .config import (
    Axis,
    RepairPolicy,
    EdgePolicy,
    SpaceTime,
    ScanPass,
    RepairConfig,
    FilterParameters,
    LutConfig,
    VERTICAL_PASS,
    HORIZONTAL_PASS,
)
from .errors import LutError, SingularMatrixError, UnsupportedSpinValueError, EdgeRunError
from .linalg import determinant_3x3, determinant_4x4, cofactor_matrix_4x4, inverse_4x4
from .spline import SplineKnot, SplineSegment, four_point_spline_tangents, evaluate_spline
from .buffer import CellStatus, LutBuffer, classify_status, encode_status
from .runs import find_runs
from .repair import LutRepairEngine, RepairReport, RunRecord, repair_buffer
from .lifecycle import LutController, LutState

__all__ = [
    "Axis",
    "RepairPolicy",
    "EdgePolicy",
    "SpaceTime",
    "ScanPass",
    "RepairConfig",
    "FilterParameters",
    "LutConfig",
    "VERTICAL_PASS",
    "HORIZONTAL_PASS",
    "LutError",
    "SingularMatrixError",
    "UnsupportedSpinValueError",
    "EdgeRunError",
    "determinant_3x3",
    "determinant_4x4",
    "cofactor_matrix_4x4",
    "inverse_4x4",
    "SplineKnot",
    "SplineSegment",
    "four_point_spline_tangents",
    "evaluate_spline",
    "CellStatus",
    "LutBuffer",
    "classify_status",
    "encode_status",
    "find_runs",
    "LutRepairEngine",
    "RepairReport",
    "RunRecord",
    "repair_buffer",
    "LutController",
    "LutState",
]
