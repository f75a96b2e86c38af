"""LUT repair and rebuild configuration."""

from dataclasses import dataclass, field, asdict, replace
from enum import Enum, IntEnum
from pathlib import Path
from typing import Tuple, Optional, Dict, Any, List, Union

import yaml


class Axis(str, Enum):
    """Scan-line orientation.

    COLUMN scans one column across rows (vertical runs),
    ROW scans one row across columns (horizontal runs).
    """
    COLUMN = "column"
    ROW = "row"


class RepairPolicy(str, Enum):
    LINEAR = "linear"
    SPLINE = "spline"


class EdgePolicy(str, Enum):
    RAISE = "raise"
    SKIP = "skip"
    CLAMP = "clamp"


class SpaceTime(IntEnum):
    """Spacetime model; integer values match the legacy mode codes."""
    FLAT = 0
    SCHWARZSCHILD = 1
    KERR = 2


FAILURE_SIGNATURES = ("any", "soft", "hard")


def _centered_band(extent: int, width: int) -> Tuple[int, int]:
    start = max(extent // 2 - width // 2, 0)
    stop = min(extent // 2 + width // 2, extent)
    return start, stop


@dataclass
class ScanPass:
    """One detection pass over a set of parallel scan lines.

    shadow_width: central band of scan lines skipped (0 = none skipped)
    seek_width: central band searched along each line (None = whole line)
    """
    axis: Union[Axis, str] = Axis.COLUMN
    shadow_width: int = 120
    seek_width: Optional[int] = 30

    def __post_init__(self):
        self.axis = Axis(self.axis)
        if self.shadow_width < 0:
            raise ValueError(f"shadow_width must be >= 0, got {self.shadow_width}")
        if self.seek_width is not None and self.seek_width <= 0:
            raise ValueError(f"seek_width must be > 0, got {self.seek_width}")

    def fixed_indices(self, extent: int) -> List[int]:
        """Scan-line indices outside the central shadow band."""
        if self.shadow_width == 0:
            return list(range(extent))
        start, stop = _centered_band(extent, self.shadow_width)
        return list(range(0, start)) + list(range(stop, extent))

    def search_range(self, extent: int) -> Tuple[int, int]:
        """Half-open range searched along each scan line."""
        if self.seek_width is None:
            return 0, extent
        return _centered_band(extent, self.seek_width)

    def windows(self, width: int, height: int) -> Tuple[List[int], Tuple[int, int]]:
        """Resolve (fixed indices, search range) for a width x height buffer."""
        if self.axis == Axis.COLUMN:
            return self.fixed_indices(width), self.search_range(height)
        return self.fixed_indices(height), self.search_range(width)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["axis"] = self.axis.value
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScanPass":
        return cls(**d)


# Windows observed around the shadow of a portrait render target
VERTICAL_PASS = ScanPass(axis=Axis.COLUMN, shadow_width=120, seek_width=30)
HORIZONTAL_PASS = ScanPass(axis=Axis.ROW, shadow_width=450, seek_width=10)


@dataclass
class RepairConfig:
    """How a raw LUT is repaired.

    policy: "linear" | "spline"
    failure: "any" | "soft" | "hard" statuses counted as failed
    edge_policy: "raise" | "skip" | "clamp" for runs missing an anchor
    """
    policy: Union[RepairPolicy, str] = RepairPolicy.LINEAR
    failure: str = "any"
    edge_policy: Union[EdgePolicy, str] = EdgePolicy.RAISE
    passes: List[ScanPass] = field(default_factory=lambda: [replace(VERTICAL_PASS)])

    def __post_init__(self):
        self.policy = RepairPolicy(self.policy)
        self.edge_policy = EdgePolicy(self.edge_policy)
        if self.failure not in FAILURE_SIGNATURES:
            raise ValueError(f"Unknown failure signature: {self.failure}")
        self.passes = [p if isinstance(p, ScanPass) else ScanPass.from_dict(p) for p in self.passes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy.value,
            "failure": self.failure,
            "edge_policy": self.edge_policy.value,
            "passes": [p.to_dict() for p in self.passes],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RepairConfig":
        return cls(**d)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "RepairConfig":
        with open(path) as f:
            return cls.from_dict(yaml.safe_load(f) or {})


@dataclass(frozen=True)
class FilterParameters:
    """Parameters the LUT is built from.

    d: observer distance, a: spin, thetas: inclination.
    """
    space_time: SpaceTime = SpaceTime.FLAT
    source_mode: int = 1
    d: float = 0.0
    a: float = 0.0
    thetas: float = 0.0

    def __post_init__(self):
        space_time = self.space_time
        if isinstance(space_time, str):
            try:
                space_time = SpaceTime[space_time.upper()]
            except KeyError:
                raise ValueError(f"Unknown spacetime mode: {space_time}") from None
        object.__setattr__(self, "space_time", SpaceTime(space_time))

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["space_time"] = self.space_time.name.lower()
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FilterParameters":
        valid_keys = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in d.items() if k in valid_keys})


@dataclass
class LutConfig:
    """Lifecycle configuration: Kerr assets and per-source-mode repair profiles."""
    kerr_spins: Tuple[float, ...] = (0.5, 0.9, 0.99, 0.999)
    kerr_table_dir: Optional[str] = None
    kerr_table_pattern: str = "kerr_a{spin}.bin"
    kerr_table_size: Tuple[int, int] = (1080, 1920)  # (width, height)
    spin_tolerance: float = 1e-6

    # source_mode -> repair profile; modes without a profile are not repaired
    repair: Dict[int, RepairConfig] = field(default_factory=lambda: {0: RepairConfig()})

    def __post_init__(self):
        self.kerr_spins = tuple(float(s) for s in self.kerr_spins)
        self.kerr_table_size = tuple(int(s) for s in self.kerr_table_size)
        self.repair = {
            int(k): v if isinstance(v, RepairConfig) else RepairConfig.from_dict(v)
            for k, v in self.repair.items()
        }

    def repair_for(self, source_mode: int) -> Optional[RepairConfig]:
        return self.repair.get(int(source_mode))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kerr_spins": list(self.kerr_spins),
            "kerr_table_dir": self.kerr_table_dir,
            "kerr_table_pattern": self.kerr_table_pattern,
            "kerr_table_size": list(self.kerr_table_size),
            "spin_tolerance": self.spin_tolerance,
            "repair": {k: v.to_dict() for k, v in self.repair.items()},
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LutConfig":
        return cls(**d)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "LutConfig":
        with open(path) as f:
            return cls.from_dict(yaml.safe_load(f) or {})
