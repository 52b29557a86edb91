"""
Smoothing module for under-sampled voxels.

This module provides:
- NeighborPriorSmoother: Shell-by-shell neighbour borrowing pass
- SmoothingReport: Under-sampling diagnostics of a pass
"""

from .neighbor_prior_smoother import NeighborPriorSmoother, SmoothingReport, borrow_from_shells

__all__ = ["NeighborPriorSmoother", "SmoothingReport", "borrow_from_shells"]
