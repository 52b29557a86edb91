"""
DensityProjector implementation.

Integrates voxel density along a view axis into a 2D image for the
rendering collaborator. Pure read access; the grid is never modified.
"""

import logging
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from ..exceptions import ConfigurationError
from ..voxelization.voxel_grid import VoxelGrid

logger = logging.getLogger(__name__)

# Horizontal and vertical image axes for each view axis
_X_AXES = (1, 0, 0)
_Y_AXES = (2, 2, 1)


class ViewDirection(str, Enum):
    """Orthogonal view directions onto the grid."""

    TOP = "top"
    LEFT = "left"
    RIGHT = "right"
    FRONT = "front"
    BACK = "back"

    @classmethod
    def from_name(cls, name: str) -> "ViewDirection":
        try:
            return cls(name.lower())
        except ValueError as e:
            valid = ", ".join(v.value for v in cls)
            raise ConfigurationError(f"Unknown view direction '{name}', expected one of: {valid}") from e

    @property
    def axis(self) -> int:
        if self is ViewDirection.TOP:
            return 2
        if self in (ViewDirection.FRONT, ViewDirection.BACK):
            return 1
        return 0

    @property
    def flip_x(self) -> bool:
        """Whether the horizontal image axis runs against the world axis."""
        return self in (ViewDirection.LEFT, ViewDirection.BACK)


class DensityProjector:
    """
    Sums voxel density along one grid axis.

    Pixel (x, y) of the output corresponds to the column of voxels with
    index x along the horizontal in-plane axis and y along the vertical one.
    Images are indexed [y, x].
    """

    def __init__(self, grid: VoxelGrid, axis: int = 2,
                 in_plane_axes: Optional[Tuple[int, int]] = None):
        """
        Initialize projector.

        Args:
            grid: Finished (smoothed) voxel grid
            axis: View axis to integrate along (0, 1 or 2)
            in_plane_axes: (horizontal, vertical) image axes; defaults to the
                remaining axes in the conventional order for the view axis
        """
        if axis not in (0, 1, 2):
            raise ConfigurationError(f"View axis must be 0, 1 or 2, got {axis}")
        if in_plane_axes is None:
            in_plane_axes = (_X_AXES[axis], _Y_AXES[axis])
        if sorted((axis,) + tuple(in_plane_axes)) != [0, 1, 2]:
            raise ConfigurationError(
                f"In-plane axes {tuple(in_plane_axes)} must be the two axes other than view axis {axis}"
            )
        self.grid = grid
        self.axis = axis
        self.ax1, self.ax2 = in_plane_axes

    @classmethod
    def for_view(cls, grid: VoxelGrid, view_direction: ViewDirection) -> "DensityProjector":
        return cls(grid, axis=view_direction.axis)

    @property
    def image_shape(self) -> Tuple[int, int]:
        """(height, width) of the projected image."""
        return self.grid.dims[self.ax2], self.grid.dims[self.ax1]

    def pixel_value(self, x: int, y: int) -> float:
        """Total density along the voxel column behind pixel (x, y)."""
        height, width = self.image_shape
        if not (0 <= x < width and 0 <= y < height):
            raise IndexError(f"Pixel {(x, y)} outside image of shape {self.image_shape}")
        index = [0, 0, 0]
        index[self.ax1] = x
        index[self.ax2] = y
        total_density = 0.0
        for z in range(self.grid.dims[self.axis]):
            index[self.axis] = z
            total_density += self.grid.density(*index)
        return total_density

    def project(self) -> np.ndarray:
        """Total density for every pixel, shape image_shape."""
        volume = self.grid.density_volume()
        return volume.transpose(self.ax2, self.ax1, self.axis).sum(axis=2)

    def render(self, view_direction: ViewDirection) -> np.ndarray:
        """Projected image oriented for a view direction."""
        if view_direction.axis != self.axis:
            raise ConfigurationError(
                f"View '{view_direction.value}' looks along axis {view_direction.axis}, "
                f"projector integrates axis {self.axis}"
            )
        image = self.project()
        if view_direction.flip_x:
            image = image[:, ::-1]
        logger.info(f"Projected density image {image.shape[1]}x{image.shape[0]} "
                    f"for view '{view_direction.value}'")
        return image


def display_scale(image: np.ndarray) -> float:
    """
    Rescale constant for limited-range image output.

    Returns mean + 2 standard deviations of the positive pixels, or 1.0 when
    the image has none.
    """
    values = image[image > 0.0]
    if values.size == 0:
        return 1.0
    return float(np.mean(values) + 2.0 * np.std(values))
