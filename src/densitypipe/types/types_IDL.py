"""
Pydantic models for density pipeline configuration and outcomes.

These models carry run parameters between the command-line driver, the
orchestrator and the core components. Value checks that depend on the
grid itself are made by the components and raise ConfigurationError.
"""

from typing import Dict, Optional, Any, Tuple
from pydantic import BaseModel, Field


class DensityGridConfig(BaseModel):
    """Scene bounds and resolution from which the voxel grid is derived."""

    min_bound: Tuple[float, float, float] = Field(
        description="Minimum corner of the scene bounds in world coordinates (metres)"
    )
    max_bound: Tuple[float, float, float] = Field(
        description="Maximum corner of the scene bounds in world coordinates (metres)"
    )
    cell_width: float = Field(
        description="Edge length of each cubic voxel in metres; also the output pixel width"
    )
    padding: int = Field(
        1,
        description="Number of empty cells added on every side so the smoother has interior neighbours"
    )


class SmoothingConfig(BaseModel):
    """Parameters for the neighbour-prior smoothing pass."""

    min_rays: float = Field(
        10.0,
        description="Minimum desired ray count per voxel; larger is more accurate but more blurred. 0 disables smoothing"
    )


class DensityPipelineConfig(BaseModel):
    """Overall configuration for one density computation."""

    grid: DensityGridConfig
    smoothing: SmoothingConfig = Field(default_factory=SmoothingConfig)
    view_direction: str = Field(
        "top",
        description="Projection view: one of 'top', 'left', 'right', 'front', 'back'"
    )
    n_workers: int = Field(
        1,
        description="Number of worker processes for ray traversal; 1 traverses in-process"
    )
    show_progress: bool = Field(
        False,
        description="If true, a tqdm progress bar is shown while ray batches are consumed"
    )


class OperationOutcome(BaseModel):
    """Generic outcome for operations within components."""

    status: str = Field(
        description="Must be one of 'SUCCESS', 'FAILURE', 'WARNING'"
    )
    message: Optional[str] = Field(
        None,
        description="Human-readable message about the outcome"
    )
    error_code: Optional[str] = Field(
        None,
        description="A machine-readable code for specific error types"
    )
    output_artifacts: Optional[Dict[str, Any]] = Field(
        None,
        description="A map where keys are artifact names and values are their file paths or objects"
    )


class DensityProcessingOutcome(BaseModel):
    """Outcome for a full ray-cloud density computation."""

    outcome: OperationOutcome = Field(
        description="Overall status of the computation"
    )
    n_rays_read: int = Field(
        0,
        description="Number of rays consumed from the source"
    )
    n_rays_traversed: int = Field(
        0,
        description="Number of rays that contributed to at least one voxel"
    )
    under_sampled_ratio: Optional[float] = Field(
        None,
        description="Fraction of hit-bearing interior voxels still below min_rays after smoothing"
    )
