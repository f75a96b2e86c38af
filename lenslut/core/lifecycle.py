"""LutController: dirty/clean rebuild state machine for the lensing LUT."""

import logging
import threading
from dataclasses import replace
from enum import Enum
from typing import Callable, Optional, Dict

import numpy as np

from ..codecs.kerr import KerrTableStore
from .buffer import LutBuffer
from .config import FilterParameters, LutConfig, SpaceTime
from .repair import LutRepairEngine, RepairReport

logger = logging.getLogger(__name__)

# kernel(params, width, height) -> [H, W, 4] raw (u, v, status1, status2)
RayKernel = Callable[[FilterParameters, int, int], np.ndarray]


class LutState(Enum):
    CLEAN = "clean"
    DIRTY = "dirty"


class LutController:
    """Owns the LUT and rebuilds it on demand.

    Parameter writes may come from another thread; they only bump a
    generation counter under `_state_lock`. `frame()` runs on the render
    path and rebuilds synchronously whenever the built generation is stale,
    publishing the new buffer only once it is fully repaired.
    """

    def __init__(
        self,
        width: int,
        height: int,
        kernel: Optional[RayKernel] = None,
        cfg: Optional[LutConfig] = None,
        kerr_store: Optional[KerrTableStore] = None,
        params: Optional[FilterParameters] = None,
    ):
        self.cfg = cfg if cfg is not None else LutConfig()
        self.kernel = kernel
        self._kerr_store = kerr_store

        self._state_lock = threading.Lock()
        self._rebuild_lock = threading.Lock()
        self._params = params if params is not None else FilterParameters()
        self._size = (int(width), int(height))
        self._generation = 0
        self._built_generation = -1
        self._snapshot: Optional[FilterParameters] = None

        self._buffer: Optional[LutBuffer] = None
        self.last_report: Optional[RepairReport] = None
        self.rebuild_count = 0

        self._builders: Dict[SpaceTime, Callable[[FilterParameters, int, int], LutBuffer]] = {
            SpaceTime.FLAT: self._build_flat,
            SpaceTime.SCHWARZSCHILD: self._build_schwarzschild,
            SpaceTime.KERR: self._build_kerr,
        }

    # Producer side

    @property
    def parameters(self) -> FilterParameters:
        with self._state_lock:
            return self._params

    def set_parameters(self, params: FilterParameters) -> None:
        with self._state_lock:
            self._params = params
            self._generation += 1

    def update(self, **changes) -> FilterParameters:
        """Change selected FilterParameters fields; always marks the LUT dirty."""
        with self._state_lock:
            self._params = replace(self._params, **changes)
            self._generation += 1
            return self._params

    def mark_dirty(self) -> None:
        with self._state_lock:
            self._generation += 1

    def resize(self, width: int, height: int) -> None:
        """Render target changed size; the next frame rebuilds at the new size."""
        with self._state_lock:
            self._size = (int(width), int(height))
            self._generation += 1

    # Render side

    @property
    def state(self) -> LutState:
        with self._state_lock:
            return LutState.CLEAN if self._built_generation == self._generation else LutState.DIRTY

    @property
    def is_dirty(self) -> bool:
        return self.state == LutState.DIRTY

    @property
    def snapshot(self) -> Optional[FilterParameters]:
        """Parameters the current clean buffer was built from."""
        with self._state_lock:
            return self._snapshot

    @property
    def size(self):
        with self._state_lock:
            return self._size

    def frame(self) -> LutBuffer:
        """Buffer to sample for the next frame, rebuilding first if dirty."""
        with self._rebuild_lock:
            with self._state_lock:
                generation = self._generation
                params = self._params
                width, height = self._size
                stale = generation != self._built_generation

            if stale:
                buffer = self._rebuild(params, width, height)
                with self._state_lock:
                    self._buffer = buffer
                    self._snapshot = params
                    self._built_generation = generation
                    if self._generation != generation:
                        logger.debug("Parameters changed during rebuild; LUT stays dirty")

            return self._buffer

    def _rebuild(self, params: FilterParameters, width: int, height: int) -> LutBuffer:
        logger.info(f"Computing new LUT ({width}x{height}) for {params.space_time.name}")
        self.last_report = None
        buffer = self._builders[params.space_time](params, width, height)
        self.rebuild_count += 1
        return buffer

    def _build_flat(self, params: FilterParameters, width: int, height: int) -> LutBuffer:
        return LutBuffer.identity(width, height)

    def _build_schwarzschild(self, params: FilterParameters, width: int, height: int) -> LutBuffer:
        if self.kernel is None:
            raise RuntimeError("Schwarzschild LUT requested but no ray kernel is configured")
        raw = np.asarray(self.kernel(params, width, height))
        if raw.shape != (height, width, 4):
            raise ValueError(f"Kernel returned shape {raw.shape}, expected {(height, width, 4)}")
        buffer = LutBuffer.from_raw(raw)

        repair_cfg = self.cfg.repair_for(params.source_mode)
        if repair_cfg is not None:
            self.last_report = LutRepairEngine(repair_cfg).repair(buffer)
        return buffer

    def _build_kerr(self, params: FilterParameters, width: int, height: int) -> LutBuffer:
        if self._kerr_store is None:
            self._kerr_store = KerrTableStore.from_config(self.cfg)
        coords = self._kerr_store.load(params.a, width, height)
        return LutBuffer.from_coords(coords)
