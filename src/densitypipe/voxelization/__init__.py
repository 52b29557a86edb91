"""
Voxelization module for ray-density accumulation.

This module provides:
- VoxelAccumulator: Per-voxel hit/miss statistics
- VoxelGrid: Uniform grid of accumulators with world/cell conversion
- RayTraversal: Incremental grid marching of rays into the grid
"""

from .voxel_accumulator import VoxelAccumulator
from .voxel_grid import VoxelGrid
from .ray_traversal import RayTraversal, clip_ray_to_bounds, trace_ray_batch

__all__ = [
    "VoxelAccumulator",
    "VoxelGrid",
    "RayTraversal",
    "clip_ray_to_bounds",
    "trace_ray_batch",
]
