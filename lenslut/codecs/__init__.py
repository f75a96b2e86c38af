"""LUT and Kerr table encoding/decoding."""

from .lut import LutCodec
from .kerr import KerrTableCodec, KerrTableStore

__all__ = ["LutCodec", "KerrTableCodec", "KerrTableStore"]
