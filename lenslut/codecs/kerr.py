"""Precomputed Kerr LUT tables: blob codec and spin-indexed store."""

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from ..core.config import LutConfig
from ..core.errors import UnsupportedSpinValueError

logger = logging.getLogger(__name__)


class KerrTableCodec:
    """Encode/decode baked Kerr tables.

    Format: raw row-major blob, 4 interleaved little-endian uint16 channels
    per cell. Channels 0-1 hold (u, v) scaled by 65535; channels 2-3 are
    reserved and ignored on decode (baked tables are fully valid).
    """

    CHANNELS = 4
    SCALE = 65535.0
    DTYPE = np.dtype("<u2")

    @classmethod
    def encode(cls, coords: np.ndarray) -> bytes:
        """Encode [H, W, 2] coordinates in [0, 1] to a blob."""
        coords = np.asarray(coords, dtype=np.float64)
        if coords.ndim != 3 or coords.shape[-1] != 2:
            raise ValueError(f"coords must be [H, W, 2], got {coords.shape}")
        H, W = coords.shape[:2]
        cells = np.zeros((H, W, cls.CHANNELS), dtype=cls.DTYPE)
        cells[..., :2] = np.round(np.clip(coords, 0.0, 1.0) * cls.SCALE)
        return cells.tobytes()

    @classmethod
    def decode(cls, blob: bytes, width: int, height: int) -> np.ndarray:
        """Decode a blob to [H, W, 2] float32 coordinates."""
        data = np.frombuffer(blob, dtype=cls.DTYPE)
        expected = width * height * cls.CHANNELS
        if data.size != expected:
            raise ValueError(
                f"Kerr table has {data.size} values, expected {expected} for {width}x{height}"
            )
        cells = data.reshape(height, width, cls.CHANNELS)
        return cells[..., :2].astype(np.float32) / np.float32(cls.SCALE)

    @classmethod
    def save(cls, path: Union[str, Path], coords: np.ndarray) -> None:
        Path(path).write_bytes(cls.encode(coords))

    @classmethod
    def load(cls, path: Union[str, Path], width: int, height: int) -> np.ndarray:
        return cls.decode(Path(path).read_bytes(), width, height)


class KerrTableStore:
    """Resolves a spin value to its precomputed table.

    Spins are matched to the nearest supported value within `spin_tolerance`;
    there is no interpolation between tables.
    """

    def __init__(
        self,
        root: Union[str, Path],
        spins: Sequence[float] = (0.5, 0.9, 0.99, 0.999),
        size: Tuple[int, int] = (1080, 1920),
        pattern: str = "kerr_a{spin}.bin",
        spin_tolerance: float = 1e-6,
    ):
        self.root = Path(root)
        self.spins = tuple(float(s) for s in spins)
        self.size = size  # (width, height) of the baked tables
        self.pattern = pattern
        self.spin_tolerance = spin_tolerance
        self._cache: Dict[float, np.ndarray] = {}

    @classmethod
    def from_config(cls, cfg: LutConfig) -> "KerrTableStore":
        if cfg.kerr_table_dir is None:
            raise ValueError("LutConfig.kerr_table_dir is not set")
        return cls(
            cfg.kerr_table_dir,
            spins=cfg.kerr_spins,
            size=cfg.kerr_table_size,
            pattern=cfg.kerr_table_pattern,
            spin_tolerance=cfg.spin_tolerance,
        )

    def resolve(self, spin: float) -> float:
        """Nearest supported spin; raises UnsupportedSpinValueError if none is close enough."""
        if not self.spins:
            raise UnsupportedSpinValueError(spin, self.spins)
        nearest = min(self.spins, key=lambda s: abs(s - spin))
        if abs(nearest - spin) > self.spin_tolerance:
            raise UnsupportedSpinValueError(spin, self.spins)
        return nearest

    def path_for(self, spin: float) -> Path:
        return self.root / self.pattern.format(spin=spin)

    def load(self, spin: float, width: Optional[int] = None, height: Optional[int] = None) -> np.ndarray:
        """Table for `spin` as [H, W, 2], resized to (width, height) if given."""
        key = self.resolve(spin)
        if key not in self._cache:
            path = self.path_for(key)
            if not path.exists():
                raise UnsupportedSpinValueError(spin, self.spins)
            logger.info(f"Loading Kerr table a={key} from {path}")
            self._cache[key] = KerrTableCodec.load(path, *self.size)

        coords = self._cache[key]
        if width is None or height is None or (width, height) == self.size:
            return coords.copy()
        return cv2.resize(coords, (width, height), interpolation=cv2.INTER_LINEAR)
