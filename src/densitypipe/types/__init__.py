"""Configuration and outcome models for densitypipe."""

from .types_IDL import (
    DensityGridConfig,
    SmoothingConfig,
    DensityPipelineConfig,
    OperationOutcome,
    DensityProcessingOutcome,
)

__all__ = [
    "DensityGridConfig",
    "SmoothingConfig",
    "DensityPipelineConfig",
    "OperationOutcome",
    "DensityProcessingOutcome",
]
