"""Tests for workspace sampling."""

import itertools
import math

import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_coverage.chain import build_chain, set_angle, set_constraint, set_length, total_length, world_position
from jax_coverage.errors import PrecisionError
from jax_coverage.sampler import iter_leaf_sweeps, replicate_about_base, sample_workspace


def test_leaf_sweeps_follow_nested_loop_order():
    """Test the stack walk visits the angle grid like nested for-loops."""
    lower = np.array([-1.0, -0.5, -2.0])
    upper = np.array([1.0, 0.5, 0.0])
    precision = 2

    blocks = list(iter_leaf_sweeps(lower, upper, precision))

    assert len(blocks) == (precision + 1) ** 2
    for block in blocks:
        assert block.shape == (precision + 1, 3)

    grids = [np.linspace(lo, hi, precision + 1) for lo, hi in zip(lower, upper)]
    expected = np.array(list(itertools.product(*grids)))
    np.testing.assert_allclose(np.concatenate(blocks), expected, rtol=1e-12, atol=1e-12)


def test_leaf_sweeps_last_joint_fully_swept_each_time():
    """Test every leaf block runs the last joint from its min to its max."""
    lower = np.array([-1.0, -1.5])
    upper = np.array([1.0, 1.5])
    for block in iter_leaf_sweeps(lower, upper, 3):
        np.testing.assert_allclose(block[:, -1], np.linspace(-1.5, 1.5, 4), atol=1e-12)
        assert np.all(block[:, 0] == block[0, 0])


def test_leaf_sweeps_without_links():
    blocks = list(iter_leaf_sweeps(np.zeros(0), np.zeros(0), 4))
    assert len(blocks) == 1
    assert blocks[0].shape == (1, 0)


def test_leaf_sweeps_reject_zero_precision():
    with pytest.raises(PrecisionError):
        list(iter_leaf_sweeps(np.array([-1.0]), np.array([1.0]), 0))


@pytest.mark.parametrize("num_links,precision", [(1, 1), (1, 5), (2, 3), (3, 2), (4, 1)])
def test_count_law(num_links, precision):
    """Test the raw point count is (p+1)^n without base rotation."""
    points = sample_workspace(build_chain(num_links), precision)
    assert points.shape == ((precision + 1) ** num_links, 3)


@pytest.mark.parametrize("num_links,precision,base_precision", [(1, 2, 1), (2, 3, 2), (3, 1, 5)])
def test_base_replication_law(num_links, precision, base_precision):
    """Test base rotation multiplies the count by (b+1)."""
    points = sample_workspace(build_chain(num_links), precision, base_precision)
    assert points.shape == ((precision + 1) ** num_links * (base_precision + 1), 3)


def test_two_joint_binary_scenario():
    """Test two links sampled at their extremes give the four corner poses."""
    chain = build_chain(2)
    points = sample_workspace(chain, 1)

    expected = np.array([
        [0.0, -0.8, -1.0],
        [0.0, 1.2, -1.0],
        [0.0, 1.2, 1.0],
        [0.0, -0.8, 1.0],
    ])
    np.testing.assert_allclose(points, expected, rtol=1e-9, atol=1e-9)
    assert np.all(np.linalg.norm(points, axis=1) <= total_length(chain) + 1e-9)


def test_base_only_chain():
    """Test a chain without links yields the top of the base."""
    points = sample_workspace(build_chain(0), 4)
    assert points.shape == (1, 3)
    np.testing.assert_allclose(points[0], [0.0, 0.2, 0.0], atol=1e-12)


def test_base_only_chain_with_base_rotation():
    points = sample_workspace(build_chain(0), 4, base_precision=3)
    assert points.shape == (4, 3)
    np.testing.assert_allclose(points, np.tile([0.0, 0.2, 0.0], (4, 1)), atol=1e-12)


def test_samples_match_forward_kinematics():
    """Test each sample equals the tip of the chain posed at that grid point."""
    chain = build_chain(2)
    chain = set_length(chain, 2, 1.7)
    chain = set_constraint(chain, 1, -0.4, 1.2)
    chain = set_constraint(chain, 2, -math.pi, 0.3)
    precision = 3

    points = sample_workspace(chain, precision)

    grid1 = np.linspace(-0.4, 1.2, precision + 1)
    grid2 = np.linspace(-math.pi, 0.3, precision + 1)
    posed = chain
    posed = set_angle(posed, 0, 0.0)
    for i, (a1, a2) in enumerate(itertools.product(grid1, grid2)):
        posed = set_angle(set_angle(posed, 1, a1), 2, a2)
        np.testing.assert_allclose(points[i], world_position(posed), rtol=1e-9, atol=1e-9)


def test_base_slices_match_forward_kinematics():
    """Test slice k is the chain sampled with the base turned k steps from its min."""
    chain = set_constraint(build_chain(1), 0, -1.0, 2.0)
    precision, base_precision = 2, 3
    points = sample_workspace(chain, precision, base_precision)

    base_angles = np.linspace(-1.0, 2.0, base_precision + 1)
    link_angles = np.linspace(-math.pi / 2, math.pi / 2, precision + 1)
    for k, base_angle in enumerate(base_angles):
        for j, link_angle in enumerate(link_angles):
            posed = set_angle(set_angle(chain, 0, base_angle), 1, link_angle)
            np.testing.assert_allclose(
                points[k * (precision + 1) + j], world_position(posed), rtol=1e-9, atol=1e-9
            )


def test_live_angles_do_not_affect_samples():
    """Test sampling ignores the current pose when the base is not swept."""
    chain = build_chain(2)
    posed = set_angle(set_angle(set_angle(chain, 0, 1.0), 1, 0.5), 2, -0.7)

    np.testing.assert_array_equal(sample_workspace(chain, 3), sample_workspace(posed, 3))


def test_sampling_leaves_chain_untouched():
    chain = set_angle(build_chain(3), 2, 0.25)
    before = [np.array(leaf) for leaf in (chain.lengths, chain.angles, chain.lower, chain.upper)]

    sample_workspace(chain, 2, 2)

    after = [chain.lengths, chain.angles, chain.lower, chain.upper]
    for old, new in zip(before, after):
        np.testing.assert_array_equal(old, new)
    assert chain.num_joints == 4


def test_determinism():
    """Test two runs over the same chain give identical samples."""
    chain = set_length(build_chain(3), 1, 1.3)
    first = sample_workspace(chain, 4, 2)
    second = sample_workspace(chain, 4, 2)
    np.testing.assert_array_equal(first, second)


@pytest.mark.parametrize("link_precision,base_precision", [(0, 0), (-1, 0), (2, -1)])
def test_degenerate_precision_rejected(link_precision, base_precision):
    with pytest.raises(PrecisionError):
        sample_workspace(build_chain(2), link_precision, base_precision)


def test_replicate_about_base_order():
    """Test copies follow the unrotated slice in order of increasing rotation."""
    slice_ = jnp.array([[0.0, 1.0, 1.0]])
    points = replicate_about_base(slice_, math.pi, 2)
    expected = [[0.0, 1.0, 1.0], [1.0, 1.0, 0.0], [0.0, 1.0, -1.0]]
    np.testing.assert_allclose(points, expected, rtol=1e-9, atol=1e-9)


@given(
    st.lists(st.floats(min_value=0.5, max_value=4.0), min_size=1, max_size=3),
    st.integers(min_value=1, max_value=3),
    st.integers(min_value=0, max_value=3),
)
@settings(deadline=None, max_examples=15)
def test_reachability_bound(lengths, precision, base_precision):
    """Property test: no sample lies beyond the total chain length."""
    chain = build_chain(len(lengths))
    for i, length in enumerate(lengths, start=1):
        chain = set_length(chain, i, length)

    points = sample_workspace(chain, precision, base_precision)

    distances = np.linalg.norm(np.asarray(points), axis=1)
    assert np.all(distances <= total_length(chain) + 1e-6)
