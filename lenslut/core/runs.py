"""Detection of contiguous failed runs along LUT scan lines."""

from typing import List, Tuple, Union

import numpy as np

from .buffer import LutBuffer, failure_codes
from .config import Axis


def runs_in_mask(mask: np.ndarray, offset: int = 0) -> List[Tuple[int, int]]:
    """Maximal runs of True in a 1D mask as inclusive (start, end) pairs."""
    if mask.size == 0 or not mask.any():
        return []
    padded = np.concatenate([[False], mask, [False]]).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1) - 1
    return [(int(s) + offset, int(e) + offset) for s, e in zip(starts, ends)]


def find_runs(
    buffer: LutBuffer,
    axis: Union[Axis, str],
    fixed_index: int,
    search_range: Union[Tuple[int, int], range],
    failure: str = "any",
) -> List[Tuple[int, int]]:
    """Find failed runs on one scan line.

    Args:
        buffer: LUT to inspect
        axis: COLUMN scans a column across rows, ROW scans a row across columns
        fixed_index: column (COLUMN) or row (ROW) index of the line
        search_range: half-open (start, stop) or unit-step range along the line, clipped to it
        failure: "any" | "soft" | "hard"

    Returns:
        list of inclusive (start, end) indices along the line; empty if none
    """
    _, status = buffer.line(axis, fixed_index)
    if isinstance(search_range, range):
        if search_range.step != 1:
            raise ValueError(f"search_range must be contiguous, got step {search_range.step}")
        start, stop = search_range.start, search_range.stop
    else:
        start, stop = search_range
    start = max(int(start), 0)
    stop = min(int(stop), status.shape[0])
    if stop <= start:
        return []

    mask = np.isin(status[start:stop], failure_codes(failure))
    return runs_in_mask(mask, offset=start)
