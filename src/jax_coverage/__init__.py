"""
JAX Coverage: reachable-workspace sampling for serial robot arms.

This library enumerates discretized joint angles of a kinematic chain,
evaluates the end-effector position for each combination with JAX, and
collapses the resulting point cloud into occupied octree cells.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import transforms
from . import core
from .chain import build_chain, clone_chain, world_position, total_length
from .config import CoverageSettings
from .core import Constraint, Joint, KinematicChain
from .coverage import CoverageFrame, DirtyFlags, update_coverage
from .errors import ConstraintError, CoverageError, PrecisionError
from .octree import Octree
from .sampler import sample_workspace

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "build_chain",
    "clone_chain",
    "world_position",
    "total_length",
    "CoverageSettings",
    "Constraint",
    "Joint",
    "KinematicChain",
    "CoverageFrame",
    "DirtyFlags",
    "update_coverage",
    "ConstraintError",
    "CoverageError",
    "PrecisionError",
    "Octree",
    "sample_workspace",
]
