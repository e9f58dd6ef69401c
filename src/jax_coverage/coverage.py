"""Coverage pipeline: sample the workspace, optionally deduplicate, report changes.

A display layer keeps the last ``CoverageFrame`` and a ``DirtyFlags`` record.
Edits mark the flags; ``update_coverage`` redoes only what they require and
tells the caller whether the number of coverage markers changed (rebuild the
display objects) or only their positions (move them).
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np
from jax import Array

from .config import CELL_SIZE_EPSILON, CoverageSettings
from .core import KinematicChain
from .octree import Octree
from .sampler import sample_workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirtyFlags:
    """What must be recomputed on the next update.

    Attributes:
        positions: The chain or the sampling changed, resample the workspace.
        cell_count: The number or kind of markers may have changed.
    """
    positions: bool = False
    cell_count: bool = False

    @classmethod
    def all(cls) -> "DirtyFlags":
        return cls(positions=True, cell_count=True)

    def chain_changed(self) -> "DirtyFlags":
        """Joint lengths, angles or constraints were edited."""
        return replace(self, positions=True)

    def arm_count_changed(self) -> "DirtyFlags":
        return DirtyFlags.all()

    def precision_changed(self) -> "DirtyFlags":
        return DirtyFlags.all()

    def discrete_toggled(self) -> "DirtyFlags":
        return DirtyFlags.all()

    def display_type_changed(self) -> "DirtyFlags":
        return replace(self, cell_count=True)

    @property
    def clean(self) -> bool:
        return not (self.positions or self.cell_count)


@dataclass(frozen=True)
class CoverageFrame:
    """Result of one coverage update.

    Attributes:
        raw_points: (N, 3) sampled tip positions, kept for incremental updates.
        points: (K, 3) coverage points: occupied cell centers when discrete,
                otherwise the raw points.
        cell_size: Effective octree cell size when discrete, else None.
        count_changed: The caller must rebuild its markers rather than move them.
        min_cell_size: Nominal minimum cell size the octree pass ran with,
                       None when not discrete.
    """
    raw_points: Array
    points: np.ndarray
    cell_size: Optional[float]
    count_changed: bool
    min_cell_size: Optional[float] = None


def deduplicate(points, chain: KinematicChain, min_cell_size: float) -> Tuple[np.ndarray, float]:
    """Collapse ``points`` into occupied octree cell centers.

    Args:
        points: (N, 3) raw coverage points
        chain: Chain the points were sampled from, sizes the octree root
        min_cell_size: Nominal minimum cell size

    Returns:
        (centers, cell_size) where centers is (K, 3) and cell_size the
        effective edge length of the cells
    """
    octree = Octree.for_chain(chain, min_cell_size)
    octree.insert_many(np.asarray(points))
    centers = octree.occupied_centers()
    cell_size = octree.effective_cell_size()
    logger.debug("Deduplicated %d points into %d cells of size %.4f",
                 len(points), len(centers), cell_size)
    return centers, cell_size


def update_coverage(
    chain: KinematicChain,
    settings: CoverageSettings,
    flags: DirtyFlags,
    previous: Optional[CoverageFrame] = None,
) -> Tuple[CoverageFrame, DirtyFlags]:
    """Bring coverage up to date with ``chain`` and ``settings``.

    The workspace is resampled only when ``flags.positions`` is set or there
    is no previous frame. A new scale in discrete mode reruns the octree pass
    over the cached raw cloud.

    Args:
        chain: Current (display) chain; it is not modified
        settings: Sampling and deduplication parameters
        flags: Pending recomputation flags
        previous: Frame returned by the last update, if any

    Returns:
        The new frame and clean flags
    """
    min_cell_size = settings.min_cell_size if settings.discrete else None
    rescaled = previous is not None and _cell_size_changed(previous.min_cell_size, min_cell_size)
    if previous is not None and flags.clean and not rescaled:
        return replace(previous, count_changed=False), flags

    if previous is None or flags.positions:
        raw_points = sample_workspace(chain, settings.link_precision, settings.base_precision)
    else:
        raw_points = previous.raw_points

    if settings.discrete:
        points, cell_size = deduplicate(raw_points, chain, min_cell_size)
    else:
        points, cell_size = np.asarray(raw_points), None

    count_changed = (
        flags.cell_count
        or previous is None
        or len(points) != len(previous.points)
        or _cell_size_changed(previous.cell_size, cell_size)
    )
    if rescaled and not flags.positions:
        logger.debug("Reran the octree pass on %d cached points", len(raw_points))
    if count_changed:
        logger.debug("Coverage marker count changed to %d", len(points))

    frame = CoverageFrame(raw_points, points, cell_size, count_changed, min_cell_size)
    return frame, DirtyFlags()


def _cell_size_changed(old: Optional[float], new: Optional[float]) -> bool:
    if old is None or new is None:
        return old is not new
    return abs(old - new) > CELL_SIZE_EPSILON
