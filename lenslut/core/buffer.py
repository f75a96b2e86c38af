"""LutBuffer: per-pixel remap table with per-cell status."""

from enum import IntEnum
from typing import Optional, Union

import numpy as np
import torch

from .config import Axis

STATUS_EPS = 1e-6


class CellStatus(IntEnum):
    VALID = 0
    SOFT = 1  # kernel did not converge, placeholder value emitted
    HARD = 2  # hard failure / boundary sentinel


# Float status pairs written by the ray kernel
_STATUS_PAIRS = {
    CellStatus.VALID: (0.0, 0.0),
    CellStatus.SOFT: (0.0, 1.0),
    CellStatus.HARD: (1.0, 0.0),
}

_FAILURE_CODES = {
    "any": (CellStatus.SOFT, CellStatus.HARD),
    "soft": (CellStatus.SOFT,),
    "hard": (CellStatus.HARD,),
}


def failure_codes(failure: str):
    try:
        return _FAILURE_CODES[failure]
    except KeyError:
        raise ValueError(f"Unknown failure signature: {failure}") from None


def classify_status(status: np.ndarray, eps: float = STATUS_EPS) -> np.ndarray:
    """Map float status pairs [..., 2] to CellStatus codes [...]."""
    s1, s2 = status[..., 0], status[..., 1]
    zero1 = np.abs(s1) < eps
    zero2 = np.abs(s2) < eps
    codes = np.full(s1.shape, CellStatus.HARD, dtype=np.uint8)
    codes[zero1 & zero2] = CellStatus.VALID
    codes[zero1 & (np.abs(s2 - 1.0) < eps)] = CellStatus.SOFT
    return codes


def encode_status(codes: np.ndarray) -> np.ndarray:
    """Inverse of classify_status: CellStatus codes [...] -> float pairs [..., 2]."""
    out = np.zeros(codes.shape + (2,), dtype=np.float32)
    for code, pair in _STATUS_PAIRS.items():
        out[codes == code] = pair
    return out


class LutBuffer:
    """Row-major remap table of shape [H, W].

    coords: [H, W, 2] float32 (u, v) source texel coordinates
    status: [H, W] uint8 CellStatus codes
    """

    def __init__(self, coords: np.ndarray, status: Optional[np.ndarray] = None):
        coords = np.asarray(coords, dtype=np.float32)
        if coords.ndim != 3 or coords.shape[-1] != 2:
            raise ValueError(f"coords must be [H, W, 2], got {coords.shape}")
        if status is None:
            status = np.zeros(coords.shape[:2], dtype=np.uint8)
        status = np.asarray(status, dtype=np.uint8)
        if status.shape != coords.shape[:2]:
            raise ValueError(f"status shape {status.shape} does not match coords {coords.shape[:2]}")
        self.coords = coords
        self.status = status

    @property
    def height(self) -> int:
        return self.coords.shape[0]

    @property
    def width(self) -> int:
        return self.coords.shape[1]

    @property
    def shape(self):
        return self.height, self.width

    @classmethod
    def from_raw(cls, raw: np.ndarray) -> "LutBuffer":
        """Build from kernel output [H, W, 4] = (u, v, status1, status2)."""
        raw = np.asarray(raw)
        if raw.ndim != 3 or raw.shape[-1] != 4:
            raise ValueError(f"Raw LUT must be [H, W, 4], got {raw.shape}")
        coords = raw[..., :2].astype(np.float32, copy=True)
        return cls(coords, classify_status(raw[..., 2:4]))

    @classmethod
    def from_coords(cls, coords: np.ndarray) -> "LutBuffer":
        return cls(np.array(coords, dtype=np.float32))

    @classmethod
    def identity(cls, width: int, height: int) -> "LutBuffer":
        """Flat-space map: every pixel samples its own texel centre."""
        v, u = np.meshgrid(
            (np.arange(height, dtype=np.float32) + 0.5) / height,
            (np.arange(width, dtype=np.float32) + 0.5) / width,
            indexing="ij",
        )
        return cls(np.stack([u, v], axis=-1))

    def to_raw(self) -> np.ndarray:
        """Export to the kernel layout [H, W, 4]."""
        return np.concatenate([self.coords, encode_status(self.status)], axis=-1)

    def copy(self) -> "LutBuffer":
        return LutBuffer(self.coords.copy(), self.status.copy())

    def line(self, axis: Union[Axis, str], index: int):
        """(coords [N, 2], status [N]) views of one scan line."""
        if Axis(axis) == Axis.COLUMN:
            return self.coords[:, index], self.status[:, index]
        return self.coords[index], self.status[index]

    def failed_mask(self, failure: str = "any") -> np.ndarray:
        return np.isin(self.status, failure_codes(failure))

    def error_counts(self, axis: Union[Axis, str] = Axis.ROW, failure: str = "any") -> np.ndarray:
        """Failed cells per row (axis=ROW) or per column (axis=COLUMN)."""
        mask = self.failed_mask(failure)
        return mask.sum(axis=1 if Axis(axis) == Axis.ROW else 0)

    def num_failed(self, failure: str = "any") -> int:
        return int(self.failed_mask(failure).sum())

    def to_grid(self, device: Union[str, torch.device] = "cpu") -> torch.Tensor:
        """Sampling grid [1, H, W, 2] in [-1, 1] for F.grid_sample(align_corners=False)."""
        grid = torch.from_numpy(self.coords.copy()).to(device)
        return (grid * 2 - 1).unsqueeze(0)

    def __eq__(self, other) -> bool:
        if not isinstance(other, LutBuffer):
            return NotImplemented
        return np.array_equal(self.coords, other.coords) and np.array_equal(self.status, other.status)

    def __repr__(self) -> str:
        return f"LutBuffer({self.width}x{self.height}, failed={self.num_failed()})"
