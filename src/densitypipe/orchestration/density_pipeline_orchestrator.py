"""
DensityPipelineOrchestrator implementation for the ray-density workflow.

Orchestrates the stages of density estimation:
- Grid construction from scene bounds
- Ray traversal over streamed batches (optionally in worker processes)
- Neighbour-prior smoothing
- Density projection for the requested view
"""

import logging
import multiprocessing
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
from tqdm import tqdm

from ..adapters.ray_batch_source import RayBatch
from ..exceptions import ConfigurationError, DataValidationError, StreamError
from ..projection.density_projector import DensityProjector, ViewDirection
from ..smoothing.neighbor_prior_smoother import NeighborPriorSmoother, SmoothingReport
from ..types.types_IDL import (
    DensityPipelineConfig,
    DensityProcessingOutcome,
    OperationOutcome,
)
from ..voxelization.ray_traversal import RayTraversal, trace_ray_batch
from ..voxelization.voxel_grid import VoxelGrid

logger = logging.getLogger(__name__)


@dataclass
class DensityResult:
    """Products of one density computation."""

    grid: VoxelGrid
    smoothing_report: SmoothingReport
    image: np.ndarray
    view_direction: ViewDirection
    n_rays_read: int
    n_rays_traversed: int


class DensityPipelineOrchestrator:
    """
    Orchestrates ray-density estimation from a stream of ray batches.

    The stream is consumed exactly once, in order. Any failure of the stream
    aborts the computation and no partial grid is returned.
    """

    def compute_density_grid(self,
                             ray_batches: Iterable[RayBatch],
                             config: DensityPipelineConfig) -> DensityResult:
        """
        Run the full density workflow.

        Args:
            ray_batches: Iterable of RayBatch from the ray source
            config: Pipeline configuration

        Returns:
            DensityResult with the smoothed grid and projected image

        Raises:
            ConfigurationError: Invalid configuration, raised before any ray is read
            StreamError: The ray source failed
        """
        view_direction, smoother = self._validate_config(config)
        grid = self.create_grid(config)
        traversal = RayTraversal(grid)

        batches = tqdm(ray_batches, desc="Ray batches", unit="batch", disable=not config.show_progress)
        if config.n_workers > 1:
            logger.info(f"Tracing rays with {config.n_workers} worker processes")
            self._traverse_parallel(batches, traversal, config.n_workers)
        else:
            for batch in batches:
                traversal.add_rays(batch.starts, batch.ends, batch.is_hit)
        logger.info(f"Traversed {traversal.n_rays_traversed}/{traversal.n_rays_seen} rays")

        report = smoother.smooth(grid)

        projector = DensityProjector.for_view(grid, view_direction)
        image = projector.render(view_direction)

        return DensityResult(
            grid=grid,
            smoothing_report=report,
            image=image,
            view_direction=view_direction,
            n_rays_read=traversal.n_rays_seen,
            n_rays_traversed=traversal.n_rays_traversed,
        )

    def run(self,
            ray_batches: Iterable[RayBatch],
            config: DensityPipelineConfig) -> Tuple[DensityProcessingOutcome, Optional[DensityResult]]:
        """
        Run the workflow and report the outcome instead of raising.

        Args:
            ray_batches: Iterable of RayBatch from the ray source
            config: Pipeline configuration

        Returns:
            Tuple of (outcome, result); result is None on failure
        """
        try:
            result = self.compute_density_grid(ray_batches, config)
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {e}")
            return self._failure_outcome(str(e), "CONFIGURATION_ERROR"), None
        except StreamError as e:
            logger.error(f"Ray stream failed, discarding partial grid: {e}")
            return self._failure_outcome(str(e), "STREAM_ERROR"), None
        except DataValidationError as e:
            logger.error(f"Malformed ray batch, discarding partial grid: {e}")
            return self._failure_outcome(str(e), "DATA_VALIDATION_ERROR"), None

        ratio = result.smoothing_report.under_sampled_ratio
        if ratio > 0.5:
            status = "WARNING"
            message = f"{100.0 * ratio:.1f}% of hit voxels remain under-sampled"
        else:
            status = "SUCCESS"
            message = f"Density computed from {result.n_rays_traversed} rays"

        outcome = DensityProcessingOutcome(
            outcome=OperationOutcome(
                status=status,
                message=message,
                output_artifacts={
                    "grid_dims": result.grid.dims,
                    "image_shape": result.image.shape,
                },
            ),
            n_rays_read=result.n_rays_read,
            n_rays_traversed=result.n_rays_traversed,
            under_sampled_ratio=ratio,
        )
        return outcome, result

    def create_grid(self, config: DensityPipelineConfig) -> VoxelGrid:
        """Create the empty voxel grid covering the configured scene bounds."""
        grid_config = config.grid
        return VoxelGrid.from_bounds(
            grid_config.min_bound,
            grid_config.max_bound,
            grid_config.cell_width,
            padding=grid_config.padding,
        )

    def _validate_config(self, config: DensityPipelineConfig) -> Tuple[ViewDirection, NeighborPriorSmoother]:
        """Validate configuration parameters."""
        if config.n_workers < 1:
            raise ConfigurationError(f"n_workers must be at least 1, got {config.n_workers}")
        view_direction = ViewDirection.from_name(config.view_direction)
        smoother = NeighborPriorSmoother(min_rays=config.smoothing.min_rays)
        if config.smoothing.min_rays > 0 and config.grid.padding < 1:
            logger.warning("Smoothing with padding=0 leaves boundary scene voxels unsmoothed")
        return view_direction, smoother

    def _traverse_parallel(self, batches: Iterable[RayBatch], traversal: RayTraversal, n_workers: int):
        """
        Trace batches in a process pool and fold the samples in the owner process.

        At most 2 * n_workers batches are in flight, so memory stays bounded
        however long the stream is.
        """
        grid = traversal.grid
        geometry = (tuple(grid.origin), grid.cell_width, grid.dims)
        max_pending = 2 * n_workers
        pending = deque()

        with multiprocessing.Pool(processes=n_workers) as pool:
            for batch in batches:
                async_result = pool.apply_async(
                    trace_ray_batch, (*geometry, batch.starts, batch.ends, batch.is_hit)
                )
                pending.append((len(batch), async_result))
                if len(pending) >= max_pending:
                    self._fold_traced_batch(traversal, *pending.popleft())
            while pending:
                self._fold_traced_batch(traversal, *pending.popleft())

    @staticmethod
    def _fold_traced_batch(traversal: RayTraversal, n_rays: int, async_result):
        voxel_indices, depths, hit_flags, n_contributing = async_result.get()
        traversal.add_samples(voxel_indices, depths, hit_flags, n_rays=n_rays, n_contributing=n_contributing)

    @staticmethod
    def _failure_outcome(message: str, error_code: str) -> DensityProcessingOutcome:
        return DensityProcessingOutcome(
            outcome=OperationOutcome(status="FAILURE", message=message, error_code=error_code)
        )
