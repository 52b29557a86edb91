"""
NeighborPriorSmoother implementation.

Tops up under-sampled voxels with statistics borrowed from their 3x3x3 Moore
neighbourhood, shell by shell (faces, then edges, then corners), taking only
as much of a shell as is needed to reach the configured minimum ray count.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from ..exceptions import ConfigurationError
from ..voxelization.voxel_accumulator import (
    VoxelAccumulator,
    HIT_COUNT,
    num_rays_from_stats,
)
from ..voxelization.voxel_grid import VoxelGrid

logger = logging.getLogger(__name__)


def _shell_offsets(n_nonzero: int) -> List[Tuple[int, int, int]]:
    return [
        offset for offset in itertools.product((-1, 0, 1), repeat=3)
        if sum(1 for c in offset if c != 0) == n_nonzero
    ]


FACE_OFFSETS = _shell_offsets(1)
EDGE_OFFSETS = _shell_offsets(2)
CORNER_OFFSETS = _shell_offsets(3)
SHELL_OFFSETS = (FACE_OFFSETS, EDGE_OFFSETS, CORNER_OFFSETS)


@dataclass
class SmoothingReport:
    """Summary of one smoothing pass."""

    min_rays: float
    n_interior_voxels: int = 0
    n_voxels_topped_up: int = 0
    n_hit_voxels: int = 0
    n_under_sampled_hit_voxels: int = 0

    @property
    def under_sampled_ratio(self) -> float:
        """Fraction of hit-bearing interior voxels that stayed below min_rays."""
        if self.n_hit_voxels == 0:
            return 0.0
        return self.n_under_sampled_hit_voxels / self.n_hit_voxels


def borrow_from_shells(
    voxel: VoxelAccumulator,
    shells: Sequence[VoxelAccumulator],
    min_rays: float,
) -> Tuple[VoxelAccumulator, bool]:
    """
    Top up a single voxel from its merged neighbour shells.

    Args:
        voxel: The voxel's own statistics
        shells: Merged statistics of each shell, nearest first
        min_rays: Desired ray count

    Returns:
        Tuple of (smoothed voxel, True if min_rays was reached)
    """
    result = VoxelAccumulator() + voxel
    needed = min_rays - voxel.num_rays()
    if needed <= 0.0:
        return result, True
    for shell in shells:
        shell_rays = shell.num_rays()
        if shell_rays >= needed:
            result += shell * (needed / shell_rays)
            return result, True
        result += shell
        needed -= shell_rays
    return result, False


class NeighborPriorSmoother:
    """
    Adaptive neighbour borrowing for voxels with too few ray samples.

    Reads every shell from a snapshot of the grid taken before the pass, so
    no voxel's borrowed statistics are ever borrowed again by a neighbour.
    Only interior voxels (those with all 26 neighbours inside the grid) are
    smoothed.
    """

    def __init__(self, min_rays: float = 10.0, use_legacy: bool = False):
        """
        Initialize smoother.

        Args:
            min_rays: Desired minimum ray count per voxel; 0 disables smoothing
            use_legacy: Use the per-voxel loop instead of the vectorized pass
        """
        if not np.isfinite(min_rays) or min_rays < 0:
            raise ConfigurationError(f"min_rays must be non-negative, got {min_rays}")
        self.min_rays = float(min_rays)
        self.use_legacy = use_legacy

    def smooth(self, grid: VoxelGrid) -> SmoothingReport:
        """
        Run one smoothing pass over the grid, updating it in place.

        Args:
            grid: Fully populated grid

        Returns:
            SmoothingReport with the under-sampled statistics
        """
        report = SmoothingReport(min_rays=self.min_rays)
        if self.min_rays == 0:
            logger.info("Neighbour smoothing disabled (min_rays=0)")
            return report
        if any(d < 3 for d in grid.dims):
            logger.warning(f"Grid dims {grid.dims} have no interior voxels; skipping smoothing")
            return report

        if self.use_legacy:
            logger.info("Using legacy per-voxel smoothing implementation")
            self._legacy_smooth(grid, report)
        else:
            self._vectorized_smooth(grid, report)

        self._log_report(report)
        return report

    def _vectorized_smooth(self, grid: VoxelGrid, report: SmoothingReport):
        """Whole-grid pass over array slices, reading a snapshot and writing a new buffer."""
        source = grid.stats_volume().copy()
        interior = source[1:-1, 1:-1, 1:-1]

        remaining = np.maximum(self.min_rays - num_rays_from_stats(interior), 0.0)
        active = remaining > 0.0
        hit_voxels = interior[..., HIT_COUNT] > 0.0
        report.n_interior_voxels = int(remaining.size)
        report.n_voxels_topped_up = int(np.sum(active))
        report.n_hit_voxels = int(np.sum(hit_voxels))

        borrowed = np.zeros_like(interior)
        for offsets in SHELL_OFFSETS:
            shell = self._shell_sum(source, offsets)
            shell_rays = num_rays_from_stats(shell)
            satisfied = active & (shell_rays >= remaining)
            exhausted = active & ~satisfied

            fraction = np.zeros_like(remaining)
            np.divide(remaining, shell_rays, out=fraction, where=satisfied)
            fraction[exhausted] = 1.0
            borrowed += shell * fraction[..., np.newaxis]

            remaining = np.where(exhausted, remaining - shell_rays, remaining)
            active = exhausted

        result = source
        result[1:-1, 1:-1, 1:-1] += borrowed
        grid.stats_volume()[...] = result

        report.n_under_sampled_hit_voxels = int(np.sum(active & hit_voxels))

    @staticmethod
    def _shell_sum(source: np.ndarray, offsets: Sequence[Tuple[int, int, int]]) -> np.ndarray:
        """Sum of the shifted neighbour slices for every interior voxel."""
        nx, ny, nz = source.shape[:3]
        total = np.zeros((nx - 2, ny - 2, nz - 2, source.shape[3]), dtype=source.dtype)
        for dx, dy, dz in offsets:
            total += source[1 + dx:nx - 1 + dx, 1 + dy:ny - 1 + dy, 1 + dz:nz - 1 + dz]
        return total

    def _legacy_smooth(self, grid: VoxelGrid, report: SmoothingReport):
        """
        Per-voxel smoothing loop using VoxelAccumulator objects.

        Kept for equivalence testing of the vectorized pass; far slower.
        """
        nx, ny, nz = grid.dims
        snapshot = grid.stats_volume().copy()

        def voxel_at(x, y, z):
            return VoxelAccumulator.from_array(snapshot[x, y, z])

        for x in range(1, nx - 1):
            for y in range(1, ny - 1):
                for z in range(1, nz - 1):
                    voxel = voxel_at(x, y, z)
                    report.n_interior_voxels += 1
                    if voxel.num_hits() > 0:
                        report.n_hit_voxels += 1
                    if voxel.num_rays() >= self.min_rays:
                        continue
                    report.n_voxels_topped_up += 1
                    shells = [
                        VoxelAccumulator.sum(voxel_at(x + dx, y + dy, z + dz) for dx, dy, dz in offsets)
                        for offsets in SHELL_OFFSETS
                    ]
                    smoothed, satisfied = borrow_from_shells(voxel, shells, self.min_rays)
                    if not satisfied and voxel.num_hits() > 0:
                        report.n_under_sampled_hit_voxels += 1
                    grid.stats[grid.get_index(x, y, z)] = smoothed.as_array()

    @staticmethod
    def _log_report(report: SmoothingReport):
        percentage = 100.0 * report.under_sampled_ratio
        logger.info(f"Density calculation: {percentage:.2f}% of hit voxels had insufficient "
                    f"(<{report.min_rays:g}) rays within them "
                    f"({report.n_voxels_topped_up}/{report.n_interior_voxels} interior voxels topped up)")
        if percentage > 50.0:
            logger.warning("This is high. Consider using a larger cell width, a denser cloud, "
                           "or a lower min_rays for consistent results")
        elif report.n_hit_voxels > 0 and percentage < 1.0:
            logger.info("This is low enough that a smaller cell width would give more fidelity, "
                        "or a higher min_rays more accuracy")
