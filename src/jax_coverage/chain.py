"""Kinematic chain construction, editing and forward kinematics.

The chain is immutable: every edit returns a new ``KinematicChain`` so a
chain being sampled can never alias the one being displayed or edited.
World transforms are always recomposed from the base with ``jax.lax.scan``.
"""

import logging
import math
from typing import Optional

import jax
import jax.numpy as jnp
from jax import Array

from .config import BASE_LINK_LENGTH, DEFAULT_ARM_COUNT, DEFAULT_CONSTRAINT, DEFAULT_LINK_LENGTH
from .core import Constraint, Joint, KinematicChain
from .errors import ConstraintError
from .transforms import se3

logger = logging.getLogger(__name__)

# Twists of unit joint motion: the base turns about the vertical (y) axis,
# link joints bend about their local x axis.
BASE_TWIST = jnp.array([0.0, 0.0, 0.0, 0.0, 1.0, 0.0])
BEND_TWIST = jnp.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0])
UP_AXIS = jnp.array([0.0, 1.0, 0.0])


def build_chain(
    joint_count: int = DEFAULT_ARM_COUNT,
    base_length: float = BASE_LINK_LENGTH,
    default_link_length: float = DEFAULT_LINK_LENGTH,
    previous: Optional[KinematicChain] = None,
) -> KinematicChain:
    """Build a base joint followed by ``joint_count`` link joints.

    New joints get ``default_link_length``, angle 0 and the default
    constraint. When rebuilding from ``previous``, the leading link joints
    keep their length, angle and constraint (as many as both chains have),
    and the base keeps its angle and constraint.

    Args:
        joint_count: Number of link joints. Negative counts are treated as 0.
        base_length: Length of the base joint.
        default_link_length: Length of newly created link joints.
        previous: Chain being replaced, if any.

    Returns:
        The new KinematicChain
    """
    if joint_count < 0:
        logger.warning("Negative joint count %d, building a base-only chain", joint_count)
        joint_count = 0
    if base_length <= 0 or default_link_length <= 0:
        raise ValueError(
            f"Joint lengths must be positive, got base={base_length}, link={default_link_length}"
        )

    default_constraint = Constraint(*DEFAULT_CONSTRAINT)
    base = Joint(base_length, 0.0, default_constraint)
    links = [Joint(default_link_length, 0.0, default_constraint) for _ in range(joint_count)]

    if previous is not None:
        old = previous.joints
        base = Joint(base_length, old[0].angle, old[0].constraint)
        carried = min(previous.num_links, joint_count)
        links[:carried] = old[1:carried + 1]
        logger.debug("Rebuilt chain with %d links, carried over %d", joint_count, carried)

    return KinematicChain.from_joints([base, *links])


def clone_chain(chain: KinematicChain) -> KinematicChain:
    """Return a copy of ``chain`` that shares no buffers with it."""
    return jax.tree_util.tree_map(jnp.array, chain)


def with_readout_joint(chain: KinematicChain) -> KinematicChain:
    """Append a zero-length, fixed joint whose origin is the chain's tip."""
    return chain.replace(
        lengths=jnp.append(chain.lengths, 0.0),
        angles=jnp.append(chain.angles, 0.0),
        lower=jnp.append(chain.lower, 0.0),
        upper=jnp.append(chain.upper, 0.0),
    )


def world_transforms(chain: KinematicChain) -> Array:
    """Compose the world frame of every joint, base to tip.

    Args:
        chain: KinematicChain to evaluate

    Returns:
        Array of shape (num_joints, 4, 4) with the world pose of each joint
    """
    T_base = se3.exp(BASE_TWIST * chain.angles[0])

    def scan_body(T_world_to_parent, link):
        """Places one joint on top of its parent, then applies its bend."""
        parent_length, angle = link
        T_offset = se3.translation(UP_AXIS * parent_length)
        T_joint_motion = se3.exp(BEND_TWIST * angle)
        T_world_to_child = se3.multiply(se3.multiply(T_world_to_parent, T_offset), T_joint_motion)
        return T_world_to_child, T_world_to_child

    _, link_transforms = jax.lax.scan(
        scan_body, T_base, (chain.lengths[:-1], chain.angles[1:])
    )
    return jnp.concatenate([T_base[None], link_transforms], axis=0)


def world_position(chain: KinematicChain) -> Array:
    """World position of the chain's tip (the end-effector).

    Args:
        chain: KinematicChain to evaluate

    Returns:
        (3,) tip position
    """
    return se3.get_position(world_transforms(with_readout_joint(chain))[-1])


def total_length(chain: KinematicChain) -> float:
    """Sum of all joint lengths, base included."""
    return float(jnp.sum(chain.lengths))


def clamp_angle_to_constraint(chain: KinematicChain, index: int) -> KinematicChain:
    """Clamp one joint's angle into its constraint interval."""
    index = _check_index(chain, index)
    angle = jnp.clip(chain.angles[index], chain.lower[index], chain.upper[index])
    return chain.replace(angles=chain.angles.at[index].set(angle))


def set_constraint(chain: KinematicChain, index: int, lower: float, upper: float) -> KinematicChain:
    """Replace a joint's constraint and re-clamp its angle.

    The interval must satisfy ``-pi <= lower <= 0 <= upper <= pi``. On
    failure nothing is changed and ``ConstraintError`` is raised.
    """
    index = _check_index(chain, index)
    if not (-math.pi <= lower <= 0.0 <= upper <= math.pi):
        raise ConstraintError(
            f"Constraint [{lower}, {upper}] for joint {index} must satisfy -pi <= min <= 0 <= max <= pi"
        )
    chain = chain.replace(
        lower=chain.lower.at[index].set(lower),
        upper=chain.upper.at[index].set(upper),
    )
    return clamp_angle_to_constraint(chain, index)


def set_angle(chain: KinematicChain, index: int, angle: float) -> KinematicChain:
    """Set a joint's angle, clamped to its constraint."""
    index = _check_index(chain, index)
    if not math.isfinite(angle):
        raise ValueError(f"Joint angle must be finite, got {angle}")
    chain = chain.replace(angles=chain.angles.at[index].set(angle))
    return clamp_angle_to_constraint(chain, index)


def set_length(chain: KinematicChain, index: int, length: float) -> KinematicChain:
    """Set a joint's length."""
    index = _check_index(chain, index)
    if length <= 0:
        raise ValueError(f"Joint length must be positive, got {length}")
    return chain.replace(lengths=chain.lengths.at[index].set(length))


def _check_index(chain: KinematicChain, index: int) -> int:
    # jax silently clips out-of-range scatter indices, so check up front
    if not -chain.num_joints <= index < chain.num_joints:
        raise IndexError(f"Joint index {index} out of range for {chain.num_joints} joints")
    return index % chain.num_joints
