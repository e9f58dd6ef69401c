"""Workspace sampling: enumerate discretized joint angles, collect tip positions.

The joint-space walk is a depth-first nested loop over every link joint,
written with an explicit stack so chain length never grows the call depth.
The last joint is swept completely at every combination of the others, which
yields ``(precision + 1) ** num_links`` samples per base angle. Forward
kinematics for the enumerated angle rows runs batched under ``jax.vmap``.
"""

import logging
from dataclasses import dataclass
from typing import Iterator

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from .chain import clone_chain, world_transforms, with_readout_joint
from .core import KinematicChain
from .errors import PrecisionError
from .transforms import se3, so3

logger = logging.getLogger(__name__)

VERTICAL_AXIS = jnp.array([0.0, 1.0, 0.0])

# Angle rows evaluated per FK call
FK_BATCH_ROWS = 1 << 16


@dataclass
class _Frame:
    """One pending joint on the enumeration stack."""
    index: int
    iteration: int = 0


def iter_leaf_sweeps(lower: np.ndarray, upper: np.ndarray, precision: int) -> Iterator[np.ndarray]:
    """Walk the link-joint angle grid depth first, one leaf at a time.

    Each yielded block holds the angles of all link joints for one full sweep
    of the last joint: every shallower joint is fixed and the last joint runs
    through ``precision + 1`` evenly spaced angles from its min to its max.

    Args:
        lower: (n,) constraint minimum of each link joint
        upper: (n,) constraint maximum of each link joint
        precision: Number of angle steps per joint, at least 1

    Yields:
        Arrays of shape (precision + 1, n)
    """
    if precision < 1:
        raise PrecisionError(f"link precision must be >= 1, got {precision}")
    lower = np.asarray(lower, dtype=float)
    upper = np.asarray(upper, dtype=float)
    num_links = lower.shape[0]
    if num_links == 0:
        yield np.zeros((1, 0))
        return

    step = (upper - lower) / precision
    last = num_links - 1
    last_sweep = lower[last] + step[last] * np.arange(precision + 1)
    angles = lower.copy()

    # Pushed in chain order so the last joint is swept first
    stack = [_Frame(i) for i in range(num_links)]
    while stack:
        frame = stack.pop()
        if frame.index == last:
            block = np.repeat(angles[None, :], precision + 1, axis=0)
            block[:, last] = last_sweep
            yield block
        elif frame.iteration < precision:
            frame.iteration += 1
            angles[frame.index] = lower[frame.index] + step[frame.index] * frame.iteration
            angles[frame.index + 1:] = lower[frame.index + 1:]
            stack.append(frame)
            stack.extend(_Frame(i) for i in range(frame.index + 1, num_links))


def _tip_position(chain: KinematicChain, angles: Array) -> Array:
    return se3.get_position(world_transforms(chain.replace(angles=angles))[-1])


_tip_positions = jax.jit(jax.vmap(_tip_position, in_axes=(None, 0)))


def sample_workspace(chain: KinematicChain, link_precision: int, base_precision: int = 0) -> Array:
    """Sample the reachable workspace of ``chain``.

    Every combination of ``link_precision + 1`` angles per link joint is
    evaluated. With ``base_precision > 0`` the resulting slice, taken at the
    base's minimum angle, is replicated at ``base_precision`` further base
    angles up to its maximum; otherwise the base angle is fixed at 0. The
    caller's chain is never modified.

    Args:
        chain: KinematicChain to sample
        link_precision: Angle steps per link joint, at least 1
        base_precision: Angle steps for the base rotation, 0 disables it

    Returns:
        (N, 3) tip positions with N = (link_precision + 1) ** num_links
        * (base_precision + 1)
    """
    if link_precision < 1:
        raise PrecisionError(f"link_precision must be >= 1, got {link_precision}")
    if base_precision < 0:
        raise PrecisionError(f"base_precision must be >= 0, got {base_precision}")

    work = with_readout_joint(clone_chain(chain))
    base = work.joint(0)
    base_angle = base.constraint.min if base_precision > 0 else 0.0
    link_lower = np.asarray(work.lower[1:-1])
    link_upper = np.asarray(work.upper[1:-1])

    slices = []
    pending = []
    pending_rows = 0
    for block in iter_leaf_sweeps(link_lower, link_upper, link_precision):
        rows = np.zeros((block.shape[0], work.num_joints))
        rows[:, 0] = base_angle
        rows[:, 1:-1] = block
        pending.append(rows)
        pending_rows += rows.shape[0]
        if pending_rows >= FK_BATCH_ROWS:
            slices.append(_tip_positions(work, jnp.asarray(np.concatenate(pending))))
            pending, pending_rows = [], 0
    if pending:
        slices.append(_tip_positions(work, jnp.asarray(np.concatenate(pending))))
    points = jnp.concatenate(slices, axis=0)

    if base_precision > 0:
        points = replicate_about_base(
            points, base.constraint.max - base.constraint.min, base_precision
        )

    logger.debug(
        "Sampled %d points (%d links, link precision %d, base precision %d)",
        points.shape[0], chain.num_links, link_precision, base_precision,
    )
    return points


def replicate_about_base(points: Array, base_range: float, base_precision: int) -> Array:
    """Append copies of ``points`` rotated about the vertical axis.

    Copy ``k`` (for ``k = 1..base_precision``) is rotated by
    ``k * base_range / base_precision``; the unrotated slice comes first.

    Args:
        points: (M, 3) slice sampled at the base's minimum angle
        base_range: Width of the base constraint interval
        base_precision: Number of extra slices, at least 1

    Returns:
        (M * (base_precision + 1), 3) points
    """
    if base_precision < 1:
        raise PrecisionError(f"base_precision must be >= 1 to replicate, got {base_precision}")
    delta = base_range / base_precision
    rotations = so3.about_axis(VERTICAL_AXIS, delta * jnp.arange(1, base_precision + 1))
    copies = so3.apply(rotations, jnp.broadcast_to(points, (base_precision,) + points.shape))
    return jnp.concatenate([points, copies.reshape(-1, 3)], axis=0)
