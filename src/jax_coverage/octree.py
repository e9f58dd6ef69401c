"""Sparse octree used to collapse a dense point cloud into occupied voxel cells.

Nodes subdivide lazily while their half extent is at least the minimum cell
size; the first node below it along a descent is terminal and accumulates
points. Cell centers, not point centroids, represent occupied cells, so the
result is quantized to a fixed grid.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .chain import total_length
from .config import OCTREE_MARGIN, OCTREE_ROOT_CENTER
from .core import KinematicChain

logger = logging.getLogger(__name__)

Point = Tuple[float, float, float]


class OctreeNode:
    """One cubic cell of the octree."""

    __slots__ = ("center", "half_extent", "children", "points")

    def __init__(self, center: Point, half_extent: float):
        self.center = center
        self.half_extent = half_extent
        self.children: List[Optional["OctreeNode"]] = [None] * 8
        self.points: List[Point] = []

    def octant(self, point: Sequence[float]) -> int:
        cx, cy, cz = self.center
        x, y, z = point
        return (4 if y < cy else 0) + (2 if x < cx else 0) + (1 if z < cz else 0)

    def child_for(self, point: Sequence[float], create: bool) -> Optional["OctreeNode"]:
        index = self.octant(point)
        child = self.children[index]
        if child is None and create:
            # Child center is halfway between our center and the corner on the point's side
            cx, cy, cz = self.center
            x, y, z = point
            h = self.half_extent / 2
            child = OctreeNode(
                (cx - h if x < cx else cx + h,
                 cy - h if y < cy else cy + h,
                 cz - h if z < cz else cz + h),
                h,
            )
            self.children[index] = child
        return child


class Octree:
    """Spatial deduplicator with a minimum cell size.

    Args:
        center: Center of the root cell.
        half_extent: Half the edge length of the root cell.
        min_extent: Nodes with a half extent below this are terminal.
    """

    def __init__(self, center: Sequence[float], half_extent: float, min_extent: float):
        if half_extent <= 0 or min_extent <= 0:
            raise ValueError(
                f"Octree extents must be positive, got half_extent={half_extent}, min_extent={min_extent}"
            )
        cx, cy, cz = (float(c) for c in center)
        self.root = OctreeNode((cx, cy, cz), float(half_extent))
        self.min_extent = float(min_extent)

    @classmethod
    def for_chain(cls, chain: KinematicChain, min_cell_size: float) -> "Octree":
        """Octree whose root cell holds everything ``chain`` can reach."""
        return cls(OCTREE_ROOT_CENTER, total_length(chain) + OCTREE_MARGIN, min_cell_size)

    def _is_terminal(self, node: OctreeNode) -> bool:
        return node.half_extent < self.min_extent

    def insert(self, point: Sequence[float]) -> None:
        """Store ``point`` in the terminal cell containing it."""
        point = tuple(float(c) for c in point)
        node = self.root
        while not self._is_terminal(node):
            node = node.child_for(point, create=True)
        node.points.append(point)

    def insert_many(self, points: Iterable[Sequence[float]]) -> None:
        for point in np.asarray(points, dtype=float).reshape(-1, 3).tolist():
            self.insert(point)

    def count_at(self, point: Sequence[float]) -> int:
        """Number of stored points in the terminal cell containing ``point``."""
        node = self.root
        while not self._is_terminal(node):
            node = node.child_for(point, create=False)
            if node is None:
                return 0
        return len(node.points)

    def occupied_centers(self) -> np.ndarray:
        """Centers of all terminal cells holding at least one point.

        Cells are listed depth first with children in octant order 0..7.

        Returns:
            (K, 3) array of cell centers
        """
        centers = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            if self._is_terminal(node):
                if node.points:
                    centers.append(node.center)
                continue
            stack.extend(child for child in reversed(node.children) if child is not None)
        return np.array(centers, dtype=float).reshape(-1, 3)

    def effective_cell_size(self) -> float:
        """Edge length of the terminal cells.

        The root half extent is halved until it drops below the minimum
        extent, then doubled back to an edge length. This is a power-of-two
        fraction of the root size and generally differs from ``min_extent``.
        """
        half = self.root.half_extent
        while half >= self.min_extent:
            half /= 2
        return half * 2
