"""
Projection module for density visualization.

This module provides:
- DensityProjector: Column sums of voxel density along a view axis
- ViewDirection: Named orthogonal views
- display_scale: Rescale constant for limited-range images
"""

from .density_projector import DensityProjector, ViewDirection, display_scale

__all__ = ["DensityProjector", "ViewDirection", "display_scale"]
