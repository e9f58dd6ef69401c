"""
Coverage Configuration
======================
Defaults and allowed ranges for the arm and the coverage computation, plus
the validated ``CoverageSettings`` record handed to the pipeline.

Lengths are in scene units, angles in radians.
"""

import logging
import math
from dataclasses import dataclass, replace

from .errors import PrecisionError

logger = logging.getLogger(__name__)

# =============================================================================
# ARM
# =============================================================================

DEFAULT_ARM_COUNT = 3
"""Number of link joints above the base"""

BASE_LINK_LENGTH = 0.2
"""Length of the base joint"""

DEFAULT_LINK_LENGTH = 1.0
"""Length given to newly created link joints"""

DEFAULT_CONSTRAINT = (-math.pi / 2, math.pi / 2)
"""Angular interval given to newly created joints"""

# =============================================================================
# SAMPLING
# =============================================================================

DEFAULT_LINK_PRECISION = 8
"""Angle steps per link joint"""

MAX_LINK_PRECISION = 32
"""Upper bound on link precision, keeps (p+1)^n tractable"""

DEFAULT_BASE_PRECISION = 0
"""Angle steps for the base rotation (0 disables the sweep)"""

MAX_BASE_PRECISION = 64
"""Upper bound on base precision"""

# =============================================================================
# DEDUPLICATION
# =============================================================================

COVERAGE_PARTICLE_SIZE = 0.5
"""Marker size at scale 1, also the minimum octree cell size at scale 1"""

DEFAULT_COVERAGE_SCALE = 0.5
"""Default display scale of coverage markers"""

COVERAGE_SCALE_RANGE = (0.1, 1.0)
"""Display scales offered to the user"""

OCTREE_MARGIN = 0.5
"""Added to the total chain length to size the octree root"""

OCTREE_ROOT_CENTER = (-0.1, 0.0, 0.0)
"""Octree root center; the offset keeps the x = 0 bending plane off cell boundaries"""

CELL_SIZE_EPSILON = 1e-6
"""Cell sizes closer than this are considered unchanged"""


def _clamp(value, low, high):
    return min(max(value, low), high)


@dataclass(frozen=True)
class CoverageSettings:
    """Sampling and deduplication parameters for one coverage computation.

    Attributes:
        link_precision: Angle steps per link joint, at least 1.
        base_precision: Angle steps for the base rotation, 0 disables it.
        discrete: Collapse the cloud into occupied octree cells.
        scale: Display scale of the markers, drives the minimum cell size.
    """
    link_precision: int = DEFAULT_LINK_PRECISION
    base_precision: int = DEFAULT_BASE_PRECISION
    discrete: bool = False
    scale: float = DEFAULT_COVERAGE_SCALE

    def __post_init__(self):
        if self.link_precision < 1:
            raise PrecisionError(f"link_precision must be >= 1, got {self.link_precision}")
        if self.base_precision < 0:
            raise PrecisionError(f"base_precision must be >= 0, got {self.base_precision}")
        if not self.scale > 0:
            raise ValueError(f"scale must be positive, got {self.scale}")

    @classmethod
    def clamped(cls, link_precision: int = DEFAULT_LINK_PRECISION,
                base_precision: int = DEFAULT_BASE_PRECISION,
                discrete: bool = False,
                scale: float = DEFAULT_COVERAGE_SCALE) -> "CoverageSettings":
        """Build settings from raw user input, clamping into the offered ranges."""
        settings = cls(
            link_precision=_clamp(int(link_precision), 1, MAX_LINK_PRECISION),
            base_precision=_clamp(int(base_precision), 0, MAX_BASE_PRECISION),
            discrete=bool(discrete),
            scale=_clamp(float(scale), *COVERAGE_SCALE_RANGE),
        )
        requested = (link_precision, base_precision, scale)
        if (settings.link_precision, settings.base_precision, settings.scale) != requested:
            logger.warning(
                "Clamped precision (%s, %s) and scale %s to (%d, %d) and %s",
                link_precision, base_precision, scale,
                settings.link_precision, settings.base_precision, settings.scale,
            )
        return settings

    @property
    def min_cell_size(self) -> float:
        return COVERAGE_PARTICLE_SIZE * self.scale

    def with_changes(self, **changes) -> "CoverageSettings":
        return replace(self, **changes)
