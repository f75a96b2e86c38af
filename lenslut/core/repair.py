"""LutRepairEngine: patch failed runs of a raw LUT in place."""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple, Union

import numpy as np

from .buffer import LutBuffer, CellStatus
from .config import Axis, RepairConfig, RepairPolicy, EdgePolicy, ScanPass
from .errors import EdgeRunError
from .runs import find_runs
from .spline import SplineSegment

logger = logging.getLogger(__name__)

_AXIS_ORDER = {Axis.COLUMN: 0, Axis.ROW: 1}


def _pass_key(scan: ScanPass):
    seek = -1 if scan.seek_width is None else scan.seek_width
    return _AXIS_ORDER[scan.axis], scan.shadow_width, seek


@dataclass
class RunRecord:
    axis: str
    fixed_index: int
    start: int
    end: int
    action: str  # "linear" | "spline" | "clamped" | "skipped"
    cells: int = 0  # cells written; fewer than length when an earlier pass claimed some

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass
class RepairReport:
    """Summary of one repair call."""
    runs: List[RunRecord] = field(default_factory=list)
    repaired_cells: int = 0

    @property
    def num_runs(self) -> int:
        return len(self.runs)

    @property
    def skipped_runs(self) -> List[RunRecord]:
        return [r for r in self.runs if r.action == "skipped"]

    def add(self, record: RunRecord) -> None:
        self.runs.append(record)
        self.repaired_cells += record.cells


class LutRepairEngine:
    """Fills failed runs by linear blend or four-point spline.

    Detection and all anchor/guard lookups read a snapshot taken before any
    writes, so a repaired cell never feeds another repair and the order of
    scan lines does not matter. Passes run in a fixed order (columns before
    rows); a cell written by one pass is left alone by later passes that
    cover it. Results go to a working copy and are committed to the caller's
    buffer only after every run succeeded.
    """

    def __init__(self, cfg: Optional[RepairConfig] = None):
        self.cfg = cfg if cfg is not None else RepairConfig()

    def repair(self, buffer: LutBuffer) -> RepairReport:
        """Repair `buffer` in place.

        On error the buffer is left unchanged.

        Raises:
            EdgeRunError: a run lacks an anchor and edge_policy is "raise"
            SingularMatrixError: spline tangent system could not be inverted
        """
        snapshot = buffer.copy()
        work = buffer.copy()
        claimed = np.zeros(buffer.status.shape, dtype=bool)
        report = RepairReport()

        for scan in sorted(self.cfg.passes, key=_pass_key):
            fixed_indices, search_range = scan.windows(buffer.width, buffer.height)
            for idx in fixed_indices:
                runs = find_runs(snapshot, scan.axis, idx, search_range, self.cfg.failure)
                if not runs:
                    continue
                error_count = sum(end - start + 1 for start, end in runs)
                logger.debug(f"{scan.axis.value}: {idx} error count: {error_count}")

                src = snapshot.line(scan.axis, idx)
                dst_coords, dst_status = work.line(scan.axis, idx)
                taken = claimed[:, idx] if scan.axis == Axis.COLUMN else claimed[idx]
                for start, end in runs:
                    free = ~taken[start:end + 1]
                    if not free.any():
                        continue
                    action, values = self._repair_run(scan.axis, idx, start, end, src)
                    record = RunRecord(scan.axis.value, idx, start, end, action)
                    if values is not None:
                        dst_coords[start:end + 1][free] = values[free]
                        dst_status[start:end + 1][free] = CellStatus.VALID
                        taken[start:end + 1] |= free
                        record.cells = int(free.sum())
                    report.add(record)

        buffer.coords[...] = work.coords
        buffer.status[...] = work.status

        if report.num_runs:
            logger.info(
                f"Repaired {report.repaired_cells} cells in {report.num_runs} runs "
                f"({len(report.skipped_runs)} skipped), policy={self.cfg.policy.value}"
            )
        return report

    def _repair_run(self, axis: Axis, idx: int, start: int, end: int, src) -> Tuple[str, Optional[np.ndarray]]:
        """(action, values [N, 2]) for one run; values is None when skipped."""
        src_coords, src_status = src
        n = src_status.shape[0]

        def is_valid(i: int) -> bool:
            return 0 <= i < n and src_status[i] == CellStatus.VALID

        before, after = start - 1, end + 1
        indices = np.arange(start, end + 1, dtype=np.float64)
        edge = self.cfg.edge_policy

        has_before, has_after = is_valid(before), is_valid(after)
        if not (has_before and has_after):
            if not (has_before or has_after):
                reason = "no valid anchor on either side"
            else:
                reason = "no valid anchor " + ("after" if has_before else "before") + " run"
            if edge == EdgePolicy.SKIP:
                logger.warning(f"Skipping run [{start}, {end}] on {axis.value} {idx}: {reason}")
                return "skipped", None
            # clamping needs at least one anchor
            if edge == EdgePolicy.RAISE or not (has_before or has_after):
                raise EdgeRunError(axis.value, idx, start, end, reason)
            anchor = before if has_before else after
            values = np.repeat(src_coords[anchor][None].astype(np.float64), len(indices), axis=0)
            return "clamped", values

        if self.cfg.policy == RepairPolicy.SPLINE:
            if is_valid(before - 1) and is_valid(after + 1):
                return "spline", self._spline(src_coords, before, after, indices)
            reason = "missing spline guard cell"
            if edge == EdgePolicy.RAISE:
                raise EdgeRunError(axis.value, idx, start, end, reason)
            if edge == EdgePolicy.SKIP:
                logger.warning(f"Skipping run [{start}, {end}] on {axis.value} {idx}: {reason}")
                return "skipped", None
        return "linear", self._linear(src_coords, before, after, indices)

    @staticmethod
    def _linear(coords: np.ndarray, before: int, after: int, indices: np.ndarray) -> np.ndarray:
        factor = ((indices - before) / (after - before))[:, None]  # [N, 1]
        lo = coords[before].astype(np.float64)
        hi = coords[after].astype(np.float64)
        return lo * (1.0 - factor) + hi * factor

    @staticmethod
    def _spline(coords: np.ndarray, before: int, after: int, indices: np.ndarray) -> np.ndarray:
        xs = (before - 1, before, after, after + 1)
        values = np.empty((len(indices), 2), dtype=np.float64)
        for ch in range(2):
            knots = [(float(x), float(coords[x, ch])) for x in xs]
            values[:, ch] = SplineSegment.from_knots(knots)(indices)
        return values


def repair_buffer(
    buffer: LutBuffer,
    policy: Optional[Union[RepairPolicy, str]] = None,
    cfg: Optional[RepairConfig] = None,
) -> RepairReport:
    """Repair `buffer` in place with `cfg`, optionally overriding its policy."""
    cfg = cfg if cfg is not None else RepairConfig()
    if policy is not None:
        cfg = replace(cfg, policy=policy)
    return LutRepairEngine(cfg).repair(buffer)
