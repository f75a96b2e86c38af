"""lenslut: repair and lifecycle management for gravitational-lensing remap tables.

Main components:
- core: LUT buffer, run detection, linear/spline repair, rebuild controller
- codecs: LUT storage and precomputed Kerr table loading
"""

from .core import (
    FilterParameters,
    LutConfig,
    RepairConfig,
    SpaceTime,
    LutBuffer,
    CellStatus,
    LutRepairEngine,
    LutController,
    find_runs,
    repair_buffer,
)
from .codecs import LutCodec, KerrTableCodec, KerrTableStore

__version__ = "0.1.0"
__all__ = [
    # Core
    "FilterParameters",
    "LutConfig",
    "RepairConfig",
    "SpaceTime",
    "LutBuffer",
    "CellStatus",
    "LutRepairEngine",
    "LutController",
    "find_runs",
    "repair_buffer",
    # Codecs
    "LutCodec",
    "KerrTableCodec",
    "KerrTableStore",
]
