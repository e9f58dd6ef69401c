"""KinematicChain PyTree data structure for a serial arm.

This module defines the immutable representation of the arm: a base joint
followed by a simple list of link joints, stored as per-joint JAX arrays so
the whole chain can be passed through ``jax.jit`` and ``jax.vmap``.
"""

from dataclasses import dataclass
from typing import Tuple

import jax.numpy as jnp
from jax import Array
from flax import struct


@dataclass(frozen=True)
class Constraint:
    """Inclusive angular bounds of one joint, in radians."""
    min: float
    max: float


@dataclass(frozen=True)
class Joint:
    """Value view of one joint of a chain.

    Attributes:
        length: Distance from this joint's origin to its child's origin
                along the local up axis.
        angle: Current rotation. The base rotates about the vertical axis,
               link joints bend about their local x axis.
        constraint: Bounds on ``angle``.
    """
    length: float
    angle: float
    constraint: Constraint


@struct.dataclass
class KinematicChain:
    """Immutable PyTree representation of a serial arm.

    Index 0 is the base joint, indices 1..num_links are the link joints
    from base to tip. Every joint owns at most one child: the next index.

    Attributes:
        lengths: Array of shape (num_joints,) with each joint's length.
        angles: Array of shape (num_joints,) with each joint's angle.
        lower: Array of shape (num_joints,) with each constraint minimum.
        upper: Array of shape (num_joints,) with each constraint maximum.
    """
    lengths: Array
    angles: Array
    lower: Array
    upper: Array

    @classmethod
    def from_joints(cls, joints) -> "KinematicChain":
        joints = tuple(joints)
        if not joints:
            raise ValueError("A chain needs at least a base joint")
        return cls(
            lengths=jnp.array([j.length for j in joints], dtype=float),
            angles=jnp.array([j.angle for j in joints], dtype=float),
            lower=jnp.array([j.constraint.min for j in joints], dtype=float),
            upper=jnp.array([j.constraint.max for j in joints], dtype=float),
        )

    @property
    def num_joints(self) -> int:
        return self.lengths.shape[0]

    @property
    def num_links(self) -> int:
        """Number of joints excluding the base."""
        return self.num_joints - 1

    def joint(self, index: int) -> Joint:
        if not -self.num_joints <= index < self.num_joints:
            raise IndexError(f"Joint index {index} out of range for {self.num_joints} joints")
        return Joint(
            length=float(self.lengths[index]),
            angle=float(self.angles[index]),
            constraint=Constraint(float(self.lower[index]), float(self.upper[index])),
        )

    @property
    def joints(self) -> Tuple[Joint, ...]:
        return tuple(self.joint(i) for i in range(self.num_joints))
