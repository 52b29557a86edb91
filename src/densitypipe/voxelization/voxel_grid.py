"""
VoxelGrid implementation for ray-density accumulation.

Defines a uniform axis-aligned grid of VoxelAccumulator statistics stored as a
flat (nx*ny*nz, 4) array, with linear index x + nx*(y + ny*z).
"""

import logging
from pathlib import Path
from typing import Sequence, Tuple, Union

import numpy as np

from ..exceptions import ConfigurationError
from .voxel_accumulator import (
    VoxelAccumulator,
    N_FIELDS,
    HIT_COUNT,
    HIT_DEPTH,
    MISS_COUNT,
    MISS_DEPTH,
    densities_from_stats,
    num_rays_from_stats,
)

logger = logging.getLogger(__name__)


class VoxelGrid:
    """
    Uniform 3D grid of voxel accumulators covering the scene.

    Handles world/cell coordinate conversion, linear indexing and bulk
    accumulation of ray samples.
    """

    def __init__(self, origin: Sequence[float], cell_width: float, dims: Sequence[int]):
        """
        Initialize an empty grid.

        Args:
            origin: World position of the minimum corner of cell (0, 0, 0)
            cell_width: Edge length of each cubic cell
            dims: Number of cells along x, y and z

        Raises:
            ConfigurationError: If cell_width or any dimension is not positive
        """
        origin = np.asarray(origin, dtype=np.float64)
        if origin.shape != (3,) or not np.all(np.isfinite(origin)):
            raise ConfigurationError(f"Grid origin must be a finite 3-vector, got {origin}")
        if not np.isfinite(cell_width) or cell_width <= 0:
            raise ConfigurationError(f"cell_width must be positive, got {cell_width}")
        if len(dims) != 3 or any(int(d) != d or d <= 0 for d in dims):
            raise ConfigurationError(f"Grid dimensions must be three positive integers, got {tuple(dims)}")

        self.origin = origin
        self.cell_width = float(cell_width)
        self.dims = tuple(int(d) for d in dims)
        self.total_voxels = self.dims[0] * self.dims[1] * self.dims[2]
        self.stats = np.zeros((self.total_voxels, N_FIELDS), dtype=np.float64)

        logger.info(f"Grid initialized: {self.total_voxels} voxels, dims {self.dims}, "
                    f"cell width {self.cell_width}, origin {tuple(self.origin)}")

    @classmethod
    def from_bounds(cls,
                    min_bound: Sequence[float],
                    max_bound: Sequence[float],
                    cell_width: float,
                    padding: int = 1) -> "VoxelGrid":
        """
        Create a grid covering scene bounds with a margin of empty cells.

        Args:
            min_bound: Minimum corner of the scene
            max_bound: Maximum corner of the scene
            cell_width: Edge length of each cubic cell
            padding: Number of cells added on every side

        Returns:
            VoxelGrid whose cell (padding, padding, padding) contains min_bound
        """
        min_bound = np.asarray(min_bound, dtype=np.float64)
        max_bound = np.asarray(max_bound, dtype=np.float64)
        if cell_width <= 0:
            raise ConfigurationError(f"cell_width must be positive, got {cell_width}")
        if padding < 0:
            raise ConfigurationError(f"padding must be non-negative, got {padding}")
        if np.any(max_bound < min_bound):
            raise ConfigurationError(f"max_bound {tuple(max_bound)} lies below min_bound {tuple(min_bound)}")

        extent = max_bound - min_bound
        dims = np.floor(extent / cell_width).astype(int) + 1 + 2 * padding
        origin = min_bound - padding * cell_width
        return cls(origin, cell_width, tuple(int(d) for d in dims))

    @property
    def min_bound(self) -> np.ndarray:
        return self.origin

    @property
    def max_bound(self) -> np.ndarray:
        return self.origin + self.cell_width * np.array(self.dims, dtype=np.float64)

    def world_to_cell(self, point: Sequence[float]) -> np.ndarray:
        """Map a world point to fractional cell coordinates."""
        return (np.asarray(point, dtype=np.float64) - self.origin) / self.cell_width

    def cell_index(self, point: Sequence[float]) -> Tuple[int, int, int]:
        """Integer index of the cell containing a world point (may be out of range)."""
        cell = np.floor(self.world_to_cell(point)).astype(int)
        return int(cell[0]), int(cell[1]), int(cell[2])

    def cell_center(self, ix: int, iy: int, iz: int) -> np.ndarray:
        """World position of a cell centre."""
        return self.origin + (np.array([ix, iy, iz], dtype=np.float64) + 0.5) * self.cell_width

    def contains_index(self, ix: int, iy: int, iz: int) -> bool:
        return 0 <= ix < self.dims[0] and 0 <= iy < self.dims[1] and 0 <= iz < self.dims[2]

    def get_index(self, ix: int, iy: int, iz: int) -> int:
        """Linear index of a cell; raises IndexError outside the grid."""
        if not self.contains_index(ix, iy, iz):
            raise IndexError(f"Voxel index {(ix, iy, iz)} outside grid dims {self.dims}")
        return ix + self.dims[0] * (iy + self.dims[1] * iz)

    def index_to_cell(self, voxel_idx: int) -> Tuple[int, int, int]:
        """Inverse of get_index."""
        if not 0 <= voxel_idx < self.total_voxels:
            raise IndexError(f"Linear voxel index {voxel_idx} outside grid of {self.total_voxels}")
        nx, ny = self.dims[0], self.dims[1]
        iz = voxel_idx // (nx * ny)
        remainder = voxel_idx % (nx * ny)
        return remainder % nx, remainder // nx, iz

    def at(self, ix: int, iy: int, iz: int) -> VoxelAccumulator:
        """Snapshot of the accumulator stored at a cell."""
        return VoxelAccumulator.from_array(self.stats[self.get_index(ix, iy, iz)])

    def merge_into(self, ix: int, iy: int, iz: int, accumulator: VoxelAccumulator):
        """Merge an accumulator into the cell's statistics."""
        self.stats[self.get_index(ix, iy, iz)] += accumulator.as_array()

    def accumulate_samples(self,
                           voxel_indices: np.ndarray,
                           depths: np.ndarray,
                           is_hit: np.ndarray) -> None:
        """
        Fold per-voxel ray samples into the grid.

        Each sample adds one hit or miss ray of the given depth to the voxel at
        its linear index. Repeated indices are summed, so samples may arrive in
        any order.

        Args:
            voxel_indices: Linear voxel indices, shape (N,)
            depths: Depth in metres travelled through each voxel, shape (N,)
            is_hit: True where the sample terminates the ray, shape (N,)
        """
        voxel_indices = np.asarray(voxel_indices, dtype=np.int64)
        depths = np.asarray(depths, dtype=np.float64)
        is_hit = np.asarray(is_hit, dtype=bool)
        if not (len(voxel_indices) == len(depths) == len(is_hit)):
            raise ValueError("Array length mismatch in sample data")
        if len(voxel_indices) == 0:
            return
        if voxel_indices.min() < 0 or voxel_indices.max() >= self.total_voxels:
            raise IndexError("Sample voxel index outside grid")

        hits = voxel_indices[is_hit]
        misses = voxel_indices[~is_hit]
        np.add.at(self.stats[:, HIT_COUNT], hits, 1.0)
        np.add.at(self.stats[:, HIT_DEPTH], hits, depths[is_hit])
        np.add.at(self.stats[:, MISS_COUNT], misses, 1.0)
        np.add.at(self.stats[:, MISS_DEPTH], misses, depths[~is_hit])

    def density(self, ix: int, iy: int, iz: int) -> float:
        return self.at(ix, iy, iz).density()

    def stats_volume(self) -> np.ndarray:
        """Statistics as a (nx, ny, nz, 4) view indexed [x, y, z, field]."""
        return self.stats.reshape(self.dims[2], self.dims[1], self.dims[0], N_FIELDS).transpose(2, 1, 0, 3)

    def density_volume(self) -> np.ndarray:
        """Per-voxel density as an (nx, ny, nz) array indexed [x, y, z]."""
        return densities_from_stats(self.stats_volume())

    def num_rays_volume(self) -> np.ndarray:
        return num_rays_from_stats(self.stats_volume())

    def save(self, output_path: Union[str, Path]):
        """
        Save the grid to a compressed npz file.

        Args:
            output_path: Output file path
        """
        volume = self.stats_volume()
        np.savez_compressed(
            output_path,
            origin=self.origin,
            cell_width=self.cell_width,
            dims=np.array(self.dims),
            hit_count=volume[..., HIT_COUNT],
            hit_depth_sum=volume[..., HIT_DEPTH],
            miss_count=volume[..., MISS_COUNT],
            miss_depth_sum=volume[..., MISS_DEPTH],
            density=self.density_volume(),
        )
        logger.info(f"Saved density grid to {output_path}")
