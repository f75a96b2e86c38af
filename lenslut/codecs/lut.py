"""LUT encoding/decoding for storage."""

import numpy as np
from pathlib import Path
from typing import Dict, Any, Union, Optional

from ..core.buffer import LutBuffer


class LutCodec:
    """Encode/decode repaired LUTs to/from .npy files.

    Format: Single .npy file containing a dict with:
        - coords: [H, W, 2] (u, v) coordinates
        - status: [H, W] uint8 CellStatus codes
        - params: FilterParameters dict the LUT was built from (optional)
        - meta: additional metadata (optional)
    """

    VERSION = 1

    @classmethod
    def encode(
        cls,
        buffer: LutBuffer,
        params: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, Any]] = None,
        compress: bool = False,
    ) -> Dict[str, Any]:
        """Encode a LutBuffer to a dict for saving.

        Args:
            buffer: LUT to store
            params: build parameters
            meta: additional metadata
            compress: use float16 coordinates (lossy, ~1e-3 precision)

        Returns:
            dict ready for np.save
        """
        dtype = np.float16 if compress else np.float32
        data = {
            "version": cls.VERSION,
            "coords": buffer.coords.astype(dtype),
            "status": buffer.status.astype(np.uint8),
        }
        if params is not None:
            data["params"] = dict(params)
        if meta is not None:
            data["meta"] = meta
        return data

    @classmethod
    def decode(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Decode a loaded dict; result["buffer"] is a LutBuffer."""
        result = {
            "buffer": LutBuffer(data["coords"].astype(np.float32), data["status"]),
            "version": data.get("version", 0),
        }
        if "params" in data:
            result["params"] = data["params"]
        if "meta" in data:
            result["meta"] = data["meta"]
        return result

    @classmethod
    def save(cls, path: Union[str, Path], buffer: LutBuffer, **kwargs) -> None:
        """Save a LUT to .npy file."""
        np.save(path, cls.encode(buffer, **kwargs), allow_pickle=True)

    @classmethod
    def load(cls, path: Union[str, Path]) -> Dict[str, Any]:
        """Load a LUT from .npy file."""
        data = np.load(path, allow_pickle=True).item()
        return cls.decode(data)
