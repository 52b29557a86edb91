"""
Tests for DensityProjector and view direction handling.
"""

import numpy as np
import pytest

from densitypipe.exceptions import ConfigurationError
from densitypipe.projection.density_projector import (
    DensityProjector,
    ViewDirection,
    display_scale,
)
from densitypipe.voxelization.voxel_accumulator import VoxelAccumulator
from densitypipe.voxelization.voxel_grid import VoxelGrid


@pytest.fixture
def uniform_grid():
    """3x4x5 grid where every voxel has density 0.5."""
    grid = VoxelGrid((0.0, 0.0, 0.0), 1.0, (3, 4, 5))
    grid.stats[:] = VoxelAccumulator(1.0, 0.5, 1.0, 1.5).as_array()
    return grid


class TestViewDirection:
    """Test view direction parsing and axis mapping."""

    @pytest.mark.parametrize("name,axis,flip", [
        ("top", 2, False),
        ("front", 1, False),
        ("back", 1, True),
        ("left", 0, True),
        ("right", 0, False),
    ])
    def test_axis_mapping(self, name, axis, flip):
        view = ViewDirection.from_name(name)
        assert view.axis == axis
        assert view.flip_x == flip

    def test_case_insensitive(self):
        assert ViewDirection.from_name("TOP") is ViewDirection.TOP

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError, match="bottom"):
            ViewDirection.from_name("bottom")


class TestDensityProjector:
    """Test density integration along view axes."""

    @pytest.mark.parametrize("axis", [0, 1, 2])
    def test_uniform_density_projection(self, uniform_grid, axis):
        """Every pixel of a uniform grid sums n_axis * density."""
        projector = DensityProjector(uniform_grid, axis=axis)
        image = projector.project()

        assert image.shape == projector.image_shape
        np.testing.assert_allclose(image, uniform_grid.dims[axis] * 0.5)

    def test_image_shapes(self, uniform_grid):
        assert DensityProjector(uniform_grid, axis=2).image_shape == (4, 3)
        assert DensityProjector(uniform_grid, axis=1).image_shape == (5, 3)
        assert DensityProjector(uniform_grid, axis=0).image_shape == (5, 4)

    @pytest.mark.parametrize("axis", [0, 1, 2])
    def test_pixel_value_matches_project(self, random_stats_grid, axis):
        projector = DensityProjector(random_stats_grid, axis=axis)
        image = projector.project()
        height, width = projector.image_shape

        for y in range(height):
            for x in range(width):
                assert projector.pixel_value(x, y) == pytest.approx(image[y, x])

    def test_single_voxel_column(self, unit_grid):
        """Density of one voxel lands on the pixel of its column."""
        unit_grid.merge_into(1, 2, 3, VoxelAccumulator(2.0, 1.0, 0.0, 3.0))
        image = DensityProjector(unit_grid, axis=2).project()

        expected = np.zeros((4, 4))
        expected[2, 1] = 0.5
        np.testing.assert_allclose(image, expected)

    def test_explicit_in_plane_axes(self, random_stats_grid):
        projector = DensityProjector(random_stats_grid, axis=2, in_plane_axes=(1, 0))
        default = DensityProjector(random_stats_grid, axis=2).project()
        np.testing.assert_allclose(projector.project(), default.T)

    def test_invalid_axes(self, unit_grid):
        with pytest.raises(ConfigurationError, match="View axis"):
            DensityProjector(unit_grid, axis=3)
        with pytest.raises(ConfigurationError, match="In-plane axes"):
            DensityProjector(unit_grid, axis=2, in_plane_axes=(0, 2))

    def test_pixel_out_of_range(self, unit_grid):
        with pytest.raises(IndexError):
            DensityProjector(unit_grid).pixel_value(4, 0)

    def test_projection_does_not_modify_grid(self, random_stats_grid):
        before = random_stats_grid.stats.copy()
        projector = DensityProjector.for_view(random_stats_grid, ViewDirection.LEFT)
        projector.render(ViewDirection.LEFT)
        np.testing.assert_array_equal(random_stats_grid.stats, before)

    def test_render_flips_mirrored_views(self, random_stats_grid):
        projector = DensityProjector.for_view(random_stats_grid, ViewDirection.LEFT)
        image = projector.render(ViewDirection.LEFT)
        np.testing.assert_allclose(image, projector.project()[:, ::-1])

        right = DensityProjector.for_view(random_stats_grid, ViewDirection.RIGHT)
        np.testing.assert_allclose(right.render(ViewDirection.RIGHT), right.project())

    def test_render_axis_mismatch(self, unit_grid):
        projector = DensityProjector(unit_grid, axis=2)
        with pytest.raises(ConfigurationError, match="axis"):
            projector.render(ViewDirection.FRONT)


class TestDisplayScale:
    """Test the display rescale constant."""

    def test_empty_image(self):
        assert display_scale(np.zeros((3, 3))) == 1.0

    def test_mean_plus_two_sigma(self):
        image = np.array([[0.0, 1.0, 3.0]])
        assert display_scale(image) == pytest.approx(4.0)
