"""Adapter for streaming ray clouds stored in HDF5 files."""

import logging
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import h5py
import numpy as np

from ..exceptions import StreamError
from .ray_batch_source import RayBatch

logger = logging.getLogger(__name__)


class HDF5RaySource:
    """
    Streams ray batches from an HDF5 ray cloud.

    The file holds datasets ``starts`` (N, 3) and ``ends`` (N, 3) plus either
    ``is_hit`` (N,) or ``alpha`` (N,), where a non-zero colour alpha marks a
    ray with a valid return. Rays are read front to back in chunks of
    ``batch_size``; each iteration opens the file afresh.
    """

    def __init__(self, file_path: Union[str, Path], batch_size: int = 100000):
        """
        Initialize the ray source.

        Args:
            file_path: Path to the HDF5 ray cloud
            batch_size: Maximum rays per yielded batch
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.file_path = Path(file_path)
        self.batch_size = batch_size

    def __iter__(self) -> Iterator[RayBatch]:
        """
        Yield consecutive RayBatch chunks.

        Raises:
            StreamError: When the file is missing, unreadable or malformed
        """
        if not self.file_path.is_file():
            raise StreamError(f"Ray cloud file does not exist: {self.file_path}")

        try:
            with h5py.File(self.file_path, "r") as h5_file:
                starts, ends, hit_dataset, hit_from_alpha = self._get_datasets(h5_file)
                n_rays = starts.shape[0]
                logger.info(f"Streaming {n_rays} rays from {self.file_path} "
                            f"in batches of {self.batch_size}")
                for begin in range(0, n_rays, self.batch_size):
                    stop = min(begin + self.batch_size, n_rays)
                    hits = hit_dataset[begin:stop]
                    if hit_from_alpha:
                        hits = hits > 0
                    yield RayBatch(starts[begin:stop], ends[begin:stop], hits)
        except StreamError:
            raise
        except (OSError, KeyError) as e:
            raise StreamError(f"Failed to read rays from {self.file_path}: {e}") from e

    def _get_datasets(self, h5_file) -> Tuple[h5py.Dataset, h5py.Dataset, h5py.Dataset, bool]:
        for name in ("starts", "ends"):
            if name not in h5_file:
                raise StreamError(f"Ray cloud {self.file_path} has no '{name}' dataset")
        starts = h5_file["starts"]
        ends = h5_file["ends"]

        if "is_hit" in h5_file:
            hit_dataset, hit_from_alpha = h5_file["is_hit"], False
        elif "alpha" in h5_file:
            hit_dataset, hit_from_alpha = h5_file["alpha"], True
        else:
            raise StreamError(f"Ray cloud {self.file_path} has neither 'is_hit' nor 'alpha' dataset")

        if starts.ndim != 2 or starts.shape[1] != 3 or ends.shape != starts.shape:
            raise StreamError(
                f"Ray cloud {self.file_path} has mismatched shapes: starts {starts.shape}, ends {ends.shape}"
            )
        if hit_dataset.shape != (starts.shape[0],):
            raise StreamError(
                f"Ray cloud {self.file_path} hit flags have shape {hit_dataset.shape}, "
                f"expected ({starts.shape[0]},)"
            )
        return starts, ends, hit_dataset, hit_from_alpha

    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Axis-aligned bounds of the hit ray ends, in one pass over the file.

        Falls back to all ray ends when the cloud has no hits, since the
        scene must still be covered by a grid.

        Returns:
            Tuple of (min_bound, max_bound)
        """
        hit_min: Optional[np.ndarray] = None
        hit_max: Optional[np.ndarray] = None
        all_min: Optional[np.ndarray] = None
        all_max: Optional[np.ndarray] = None

        for batch in self:
            if len(batch) == 0:
                continue
            all_min = _fold_min(all_min, batch.ends.min(axis=0))
            all_max = _fold_max(all_max, batch.ends.max(axis=0))
            hit_ends = batch.ends[batch.is_hit]
            if len(hit_ends) > 0:
                hit_min = _fold_min(hit_min, hit_ends.min(axis=0))
                hit_max = _fold_max(hit_max, hit_ends.max(axis=0))

        if all_min is None:
            raise StreamError(f"Ray cloud {self.file_path} contains no rays")
        if hit_min is None:
            logger.warning(f"Ray cloud {self.file_path} has no hit rays; bounding all ray ends")
            return all_min, all_max

        logger.info(f"Ray cloud bounds: {tuple(hit_min)} to {tuple(hit_max)}")
        return hit_min, hit_max


def _fold_min(current: Optional[np.ndarray], values: np.ndarray) -> np.ndarray:
    return values if current is None else np.minimum(current, values)


def _fold_max(current: Optional[np.ndarray], values: np.ndarray) -> np.ndarray:
    return values if current is None else np.maximum(current, values)


def write_rays_hdf5(output_path: Union[str, Path],
                    starts: np.ndarray,
                    ends: np.ndarray,
                    is_hit: np.ndarray):
    """
    Write a ray cloud in the layout HDF5RaySource reads.

    Args:
        output_path: Output file path
        starts: Ray start points, shape (N, 3)
        ends: Ray end points, shape (N, 3)
        is_hit: Hit flags, shape (N,)
    """
    rays = RayBatch(starts, ends, is_hit)
    with h5py.File(output_path, "w") as h5_file:
        h5_file.create_dataset("starts", data=rays.starts, dtype="f8",
                               chunks=True, compression="gzip", shuffle=True)
        h5_file.create_dataset("ends", data=rays.ends, dtype="f8",
                               chunks=True, compression="gzip", shuffle=True)
        h5_file.create_dataset("is_hit", data=rays.is_hit, dtype="?",
                               chunks=True, compression="gzip", shuffle=True)
    logger.info(f"Wrote {len(rays)} rays to {output_path}")
