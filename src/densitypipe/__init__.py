"""Volumetric ray-density estimation for LIDAR-style ray clouds."""

from .voxelization import VoxelAccumulator, VoxelGrid, RayTraversal
from .smoothing import NeighborPriorSmoother, SmoothingReport
from .projection import DensityProjector, ViewDirection
from .orchestration import DensityPipelineOrchestrator

__version__ = "0.1.0"
__all__ = [
    "VoxelAccumulator",
    "VoxelGrid",
    "RayTraversal",
    "NeighborPriorSmoother",
    "SmoothingReport",
    "DensityProjector",
    "ViewDirection",
    "DensityPipelineOrchestrator",
]
