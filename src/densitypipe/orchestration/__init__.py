"""
Orchestration module for densitypipe.

Provides high-level orchestration of the ray-density estimation workflow.
"""

from .density_pipeline_orchestrator import DensityPipelineOrchestrator, DensityResult

__all__ = ["DensityPipelineOrchestrator", "DensityResult"]
