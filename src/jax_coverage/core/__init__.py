"""Core data structures for jax_coverage.

This module provides the immutable, JAX-native representation of the arm
and the value records used to read and rebuild it.
"""

from .chain_model import Constraint, Joint, KinematicChain

__all__ = ["Constraint", "Joint", "KinematicChain"]
