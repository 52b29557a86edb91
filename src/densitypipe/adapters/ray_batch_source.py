"""Ray batch container and in-memory batch producer."""

from dataclasses import dataclass
from typing import Iterator

import numpy as np

from ..exceptions import DataValidationError


@dataclass
class RayBatch:
    """A chunk of rays from a ray cloud."""

    starts: np.ndarray  # Shape (N, 3) sensor positions
    ends: np.ndarray    # Shape (N, 3) end points
    is_hit: np.ndarray  # Shape (N,) True where the ray has a valid return

    def __post_init__(self):
        self.starts = np.asarray(self.starts, dtype=np.float64)
        self.ends = np.asarray(self.ends, dtype=np.float64)
        self.is_hit = np.asarray(self.is_hit, dtype=bool)
        if self.starts.ndim != 2 or self.starts.shape[1] != 3:
            raise DataValidationError(f"starts must have shape (N, 3), got {self.starts.shape}")
        if self.ends.shape != self.starts.shape:
            raise DataValidationError(
                f"ends shape {self.ends.shape} does not match starts shape {self.starts.shape}"
            )
        if self.is_hit.shape != (len(self.starts),):
            raise DataValidationError(
                f"is_hit must have shape ({len(self.starts)},), got {self.is_hit.shape}"
            )

    def __len__(self) -> int:
        return len(self.starts)


def iter_array_batches(starts: np.ndarray,
                       ends: np.ndarray,
                       is_hit: np.ndarray,
                       batch_size: int = 100000) -> Iterator[RayBatch]:
    """
    Split in-memory ray arrays into consecutive batches.

    Args:
        starts: Ray start points, shape (N, 3)
        ends: Ray end points, shape (N, 3)
        is_hit: Hit flags, shape (N,)
        batch_size: Maximum rays per batch

    Yields:
        RayBatch views over consecutive slices
    """
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    rays = RayBatch(starts, ends, is_hit)
    for begin in range(0, len(rays), batch_size):
        stop = begin + batch_size
        yield RayBatch(rays.starts[begin:stop], rays.ends[begin:stop], rays.is_hit[begin:stop])
