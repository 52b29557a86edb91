"""Shared pytest fixtures and configuration for the test suite."""

import numpy as np
import pytest

from densitypipe.voxelization.voxel_grid import VoxelGrid


@pytest.fixture
def rng():
    """Seeded random generator so property tests are repeatable."""
    return np.random.default_rng(12345)


@pytest.fixture
def unit_grid():
    """4x4x4 grid of 1 m cells with its origin at the world origin."""
    return VoxelGrid(origin=(0.0, 0.0, 0.0), cell_width=1.0, dims=(4, 4, 4))


@pytest.fixture
def random_stats_grid(rng):
    """6x6x6 grid filled with sparse random hit/miss statistics."""
    grid = VoxelGrid(origin=(0.0, 0.0, 0.0), cell_width=1.0, dims=(6, 6, 6))
    n = grid.total_voxels
    hit_count = rng.integers(0, 3, n) * (rng.random(n) < 0.5)
    miss_count = rng.integers(0, 5, n) * (rng.random(n) < 0.6)
    grid.stats[:, 0] = hit_count
    grid.stats[:, 1] = hit_count * rng.uniform(0.05, 0.5, n)
    grid.stats[:, 2] = miss_count
    grid.stats[:, 3] = miss_count * rng.uniform(0.2, 1.0, n)
    return grid
