"""Exceptions raised by jax_coverage.

All errors are local validation failures raised synchronously to the caller.
They derive from ``ValueError`` so callers that only care about bad input can
catch that.
"""


class CoverageError(ValueError):
    """Base class for invalid chain or sampling parameters."""


class ConstraintError(CoverageError):
    """A joint constraint interval is malformed or out of range."""


class PrecisionError(CoverageError):
    """A sampling precision cannot be used to discretize a joint range."""
