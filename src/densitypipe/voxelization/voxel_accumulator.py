"""
VoxelAccumulator: per-voxel hit/miss ray statistics.

Density is the probability of a ray being intercepted per metre of depth
travelled through the voxel.
"""

from dataclasses import dataclass, astuple
from typing import Iterable

import numpy as np

# Column order of the accumulator fields in VoxelGrid.stats
HIT_COUNT = 0
HIT_DEPTH = 1
MISS_COUNT = 2
MISS_DEPTH = 3
N_FIELDS = 4


@dataclass
class VoxelAccumulator:
    """
    Hit and miss sample counts with their traversed path lengths.

    Merging is a field-wise sum, so it is associative and commutative.
    Scaling multiplies every field by the same factor, which changes the
    confidence weight of the voxel but never its density.
    """

    hit_count: float = 0.0
    hit_depth_sum: float = 0.0
    miss_count: float = 0.0
    miss_depth_sum: float = 0.0

    @classmethod
    def from_array(cls, values: np.ndarray) -> "VoxelAccumulator":
        """Build an accumulator from a length-4 row of VoxelGrid.stats."""
        return cls(*(float(v) for v in values[:N_FIELDS]))

    @classmethod
    def sum(cls, accumulators: Iterable["VoxelAccumulator"]) -> "VoxelAccumulator":
        """Merge any number of accumulators."""
        total = cls()
        for acc in accumulators:
            total += acc
        return total

    def as_array(self) -> np.ndarray:
        return np.array(astuple(self), dtype=np.float64)

    def add_hit_ray(self, depth: float):
        """Record a ray that terminated inside this voxel after `depth` metres."""
        self.hit_count += 1.0
        self.hit_depth_sum += depth

    def add_miss_ray(self, depth: float):
        """Record a ray that passed `depth` metres through this voxel unterminated."""
        self.miss_count += 1.0
        self.miss_depth_sum += depth

    def merge(self, other: "VoxelAccumulator") -> "VoxelAccumulator":
        return VoxelAccumulator(
            self.hit_count + other.hit_count,
            self.hit_depth_sum + other.hit_depth_sum,
            self.miss_count + other.miss_count,
            self.miss_depth_sum + other.miss_depth_sum,
        )

    def scaled(self, factor: float) -> "VoxelAccumulator":
        """
        Return a copy with every field multiplied by `factor`.

        Args:
            factor: Fraction of this accumulator to keep, in [0, 1]

        Raises:
            ValueError: If factor lies outside [0, 1]
        """
        if not 0.0 <= factor <= 1.0:
            raise ValueError(f"Scale factor must be in [0, 1], got {factor}")
        return VoxelAccumulator(
            self.hit_count * factor,
            self.hit_depth_sum * factor,
            self.miss_count * factor,
            self.miss_depth_sum * factor,
        )

    def __add__(self, other: "VoxelAccumulator") -> "VoxelAccumulator":
        return self.merge(other)

    def __iadd__(self, other: "VoxelAccumulator") -> "VoxelAccumulator":
        self.hit_count += other.hit_count
        self.hit_depth_sum += other.hit_depth_sum
        self.miss_count += other.miss_count
        self.miss_depth_sum += other.miss_depth_sum
        return self

    def __mul__(self, factor: float) -> "VoxelAccumulator":
        return self.scaled(factor)

    def num_rays(self) -> float:
        return self.hit_count + self.miss_count

    def num_hits(self) -> float:
        return self.hit_count

    def density(self) -> float:
        """Interceptions per metre of traversed depth, 0 when nothing was traversed."""
        depth = self.hit_depth_sum + self.miss_depth_sum
        if depth > 0.0:
            return self.hit_count / depth
        return 0.0


def densities_from_stats(stats: np.ndarray) -> np.ndarray:
    """Vectorized VoxelAccumulator.density over an (..., 4) statistics array."""
    depth = stats[..., HIT_DEPTH] + stats[..., MISS_DEPTH]
    density = np.zeros(depth.shape, dtype=np.float64)
    np.divide(stats[..., HIT_COUNT], depth, out=density, where=depth > 0.0)
    return density


def num_rays_from_stats(stats: np.ndarray) -> np.ndarray:
    """Vectorized VoxelAccumulator.num_rays over an (..., 4) statistics array."""
    return stats[..., HIT_COUNT] + stats[..., MISS_COUNT]
