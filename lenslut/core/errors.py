"""Fatal error types raised by the LUT engine."""


class LutError(Exception):
    """Base class for LUT engine failures."""


class SingularMatrixError(LutError):
    """Spline tangent system has a zero determinant (malformed knots)."""


class UnsupportedSpinValueError(LutError):
    """No precomputed Kerr table exists for the requested spin."""

    def __init__(self, spin: float, supported=()):
        self.spin = spin
        self.supported = tuple(supported)
        super().__init__(
            f"No precomputed Kerr table for spin a={spin}; supported: {list(self.supported)}"
        )


class EdgeRunError(LutError):
    """Failed run has no usable anchor on one side of its scan line."""

    def __init__(self, axis: str, fixed_index: int, start: int, end: int, reason: str = ""):
        self.axis = axis
        self.fixed_index = fixed_index
        self.start = start
        self.end = end
        msg = f"Unanchored run [{start}, {end}] on {axis} {fixed_index}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
