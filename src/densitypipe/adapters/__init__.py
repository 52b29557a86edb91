"""
Ray source adapters.

This module provides:
- RayBatch: Chunk of rays handed to the traversal
- iter_array_batches: Batches over in-memory arrays
- HDF5RaySource: Chunked streaming from HDF5 ray clouds
"""

from .ray_batch_source import RayBatch, iter_array_batches
from .hdf5_ray_source import HDF5RaySource, write_rays_hdf5

__all__ = ["RayBatch", "iter_array_batches", "HDF5RaySource", "write_rays_hdf5"]
