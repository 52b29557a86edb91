"""
RayTraversal implementation for ray-density accumulation.

Walks each ray through the voxel grid by incremental grid marching and
attributes the depth travelled inside every voxel either as a miss (the ray
passes through) or as a hit (the ray terminates there).
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..exceptions import DataValidationError
from .voxel_grid import VoxelGrid

logger = logging.getLogger(__name__)


def clip_ray_to_bounds(
    start: Sequence[float],
    end: Sequence[float],
    min_bound: Sequence[float],
    max_bound: Sequence[float],
) -> Optional[Tuple[List[float], List[float], bool]]:
    """
    Clip a segment to an axis-aligned box.

    Args:
        start: Segment start point
        end: Segment end point
        min_bound: Minimum box corner
        max_bound: Maximum box corner

    Returns:
        (clipped_start, clipped_end, end_was_clipped), or None when the
        segment does not intersect the box
    """
    t0, t1 = 0.0, 1.0
    for k in range(3):
        delta = end[k] - start[k]
        if delta == 0.0:
            if start[k] < min_bound[k] or start[k] > max_bound[k]:
                return None
            continue
        ta = (min_bound[k] - start[k]) / delta
        tb = (max_bound[k] - start[k]) / delta
        if ta > tb:
            ta, tb = tb, ta
        t0 = max(t0, ta)
        t1 = min(t1, tb)
        if t0 > t1:
            return None

    # Keep unclipped endpoints bit-exact
    if t0 == 0.0:
        clipped_start = [float(start[k]) for k in range(3)]
    else:
        clipped_start = [start[k] + t0 * (end[k] - start[k]) for k in range(3)]
    if t1 == 1.0:
        clipped_end = [float(end[k]) for k in range(3)]
    else:
        clipped_end = [start[k] + t1 * (end[k] - start[k]) for k in range(3)]
    return clipped_start, clipped_end, t1 < 1.0


def _walk_ray(start, end, is_hit, origin, cell_width, dims, max_bound,
              indices: list, depths: list, hits: list) -> bool:
    """Append the voxel samples of one ray; returns True if any were produced."""
    clipped = clip_ray_to_bounds(start, end, origin, max_bound)
    if clipped is None:
        return False
    start, end, end_clipped = clipped
    # A return beyond the grid is not observed inside it
    is_hit = is_hit and not end_clipped

    source = [(start[k] - origin[k]) / cell_width for k in range(3)]
    direction = [(end[k] - origin[k]) / cell_width - source[k] for k in range(3)]
    cell_length = math.sqrt(direction[0] ** 2 + direction[1] ** 2 + direction[2] ** 2)
    if cell_length == 0.0:
        return False
    world_length = cell_length * cell_width

    inds = [0, 0, 0]
    step = [0, 0, 0]
    t_max = [math.inf, math.inf, math.inf]
    t_delta = [math.inf, math.inf, math.inf]
    for k in range(3):
        d = direction[k]
        i = math.floor(source[k])
        if d < 0.0 and source[k] == i:
            i -= 1  # on a cell face and heading down: already in the lower cell
        i = min(max(i, 0), dims[k] - 1)
        inds[k] = i
        if d > 0.0:
            step[k] = 1
            t_max[k] = max((i + 1 - source[k]) / d, 0.0)
            t_delta[k] = 1.0 / d
        elif d < 0.0:
            step[k] = -1
            t_max[k] = max((source[k] - i) / -d, 0.0)
            t_delta[k] = -1.0 / d

    nx, ny = dims[0], dims[1]
    n_before = len(indices)
    t = 0.0
    while True:
        # ties go to the lowest axis
        if t_max[0] <= t_max[1] and t_max[0] <= t_max[2]:
            axis = 0
        elif t_max[1] <= t_max[2]:
            axis = 1
        else:
            axis = 2
        voxel = inds[0] + nx * (inds[1] + ny * inds[2])
        t_next = t_max[axis]

        if t_next >= 1.0:
            depth = (1.0 - t) * world_length
            if is_hit:
                indices.append(voxel)
                depths.append(depth)
                hits.append(True)
            elif depth > 0.0:
                indices.append(voxel)
                depths.append(depth)
                hits.append(False)
            break

        depth = (t_next - t) * world_length
        if depth > 0.0:
            indices.append(voxel)
            depths.append(depth)
            hits.append(False)
        t = t_next
        inds[axis] += step[axis]
        if inds[axis] < 0 or inds[axis] >= dims[axis]:
            break
        t_max[axis] += t_delta[axis]

    return len(indices) > n_before


def trace_ray_batch(
    origin: Sequence[float],
    cell_width: float,
    dims: Sequence[int],
    starts: np.ndarray,
    ends: np.ndarray,
    is_hit: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, int]:
    """
    Trace a batch of rays against a grid geometry without touching the grid.

    Only plain geometry is passed in, so the function can run in a worker
    process; the caller folds the returned samples into its VoxelGrid.

    Args:
        origin: Grid origin
        cell_width: Grid cell width
        dims: Grid dimensions
        starts: Ray start points, shape (N, 3)
        ends: Ray end points, shape (N, 3)
        is_hit: True for rays with a valid return, shape (N,)

    Returns:
        Tuple of (voxel_indices, depths, hit_flags, n_rays_contributing)
    """
    starts = np.asarray(starts, dtype=np.float64)
    ends = np.asarray(ends, dtype=np.float64)
    is_hit = np.asarray(is_hit, dtype=bool)
    if starts.ndim != 2 or starts.shape[1] != 3 or starts.shape != ends.shape:
        raise DataValidationError(
            f"Ray starts and ends must both have shape (N, 3), got {starts.shape} and {ends.shape}"
        )
    if is_hit.shape != (len(starts),):
        raise DataValidationError(f"is_hit must have shape ({len(starts)},), got {is_hit.shape}")

    origin = [float(v) for v in origin]
    dims = [int(d) for d in dims]
    max_bound = [origin[k] + cell_width * dims[k] for k in range(3)]

    indices: List[int] = []
    depths: List[float] = []
    hits: List[bool] = []
    n_contributing = 0
    for start, end, hit in zip(starts.tolist(), ends.tolist(), is_hit.tolist()):
        if _walk_ray(start, end, hit, origin, cell_width, dims, max_bound, indices, depths, hits):
            n_contributing += 1

    return (
        np.array(indices, dtype=np.int64),
        np.array(depths, dtype=np.float64),
        np.array(hits, dtype=bool),
        n_contributing,
    )


class RayTraversal:
    """
    Accumulates ray samples into a VoxelGrid.

    Rays that leave the grid are truncated at its boundary; rays entirely
    outside it and zero-length rays contribute nothing.
    """

    def __init__(self, grid: VoxelGrid):
        """
        Initialize traversal over a grid.

        Args:
            grid: Grid updated in place by every traced ray
        """
        self.grid = grid
        self.n_rays_seen = 0
        self.n_rays_traversed = 0

    def add_ray(self, start: Sequence[float], end: Sequence[float], is_hit: bool) -> bool:
        """Trace a single ray; returns True if it touched any voxel."""
        return self.add_rays(np.array([start]), np.array([end]), np.array([is_hit])) == 1

    def add_rays(self, starts: np.ndarray, ends: np.ndarray, is_hit: np.ndarray) -> int:
        """
        Trace a batch of rays and fold their samples into the grid.

        Args:
            starts: Ray start points, shape (N, 3)
            ends: Ray end points, shape (N, 3)
            is_hit: True for rays with a valid return, shape (N,)

        Returns:
            Number of rays that contributed to at least one voxel
        """
        voxel_indices, depths, hit_flags, n_contributing = trace_ray_batch(
            self.grid.origin, self.grid.cell_width, self.grid.dims, starts, ends, is_hit
        )
        self.add_samples(voxel_indices, depths, hit_flags, n_rays=len(starts), n_contributing=n_contributing)
        return n_contributing

    def add_samples(self, voxel_indices: np.ndarray, depths: np.ndarray, hit_flags: np.ndarray,
                    n_rays: int, n_contributing: int):
        """Fold samples traced elsewhere (e.g. by a worker process) into the grid."""
        self.grid.accumulate_samples(voxel_indices, depths, hit_flags)
        self.n_rays_seen += n_rays
        self.n_rays_traversed += n_contributing
        logger.debug(f"Traversed {n_contributing}/{n_rays} rays, {len(voxel_indices)} voxel samples")
