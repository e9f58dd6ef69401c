"""
JAX-based rigid-body transforms for the kinematic chain.

This module provides JIT-compilable implementations of:
- SO(3) rotations (so3 module)
- SE(3) rigid body transforms (se3 module)

All functions are pure, stateless, and batch-friendly.
"""

from . import so3
from . import se3

__all__ = [
    "so3",
    "se3",
]
