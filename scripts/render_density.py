#!/usr/bin/env python3
"""
Render a volumetric density projection of an HDF5 ray cloud.

Computes per-voxel occlusion density from the rays, smooths under-sampled
voxels, integrates density along the chosen view axis and writes the
projection as .npz (and optionally a .png preview).

Usage:
    python scripts/render_density.py cloud.h5 --cell-width 0.25 --view top \
        --output-dir density_output --png
"""

import sys
import argparse
import logging
from pathlib import Path

import numpy as np

# Add project src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from densitypipe.adapters.hdf5_ray_source import HDF5RaySource
from densitypipe.exceptions import StreamError
from densitypipe.logging_config import setup_logging
from densitypipe.orchestration.density_pipeline_orchestrator import DensityPipelineOrchestrator
from densitypipe.projection.density_projector import display_scale
from densitypipe.types.types_IDL import (
    DensityGridConfig,
    DensityPipelineConfig,
    SmoothingConfig,
)

logger = logging.getLogger(__name__)


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a density projection of an HDF5 ray cloud",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("ray_cloud", type=str, help="HDF5 ray cloud (starts, ends, is_hit|alpha)")
    parser.add_argument("--cell-width", type=float, default=0.1,
                        help="Voxel edge length and pixel width in metres")
    parser.add_argument("--min-rays", type=float, default=10.0,
                        help="Minimum rays per voxel for neighbour smoothing; 0 disables it")
    parser.add_argument("--view", type=str, default="top",
                        choices=["top", "left", "right", "front", "back"],
                        help="View direction")
    parser.add_argument("--batch-size", type=int, default=100000, help="Rays read per batch")
    parser.add_argument("--workers", type=int, default=1, help="Worker processes for ray traversal")
    parser.add_argument("--output-dir", type=str, default="density_output", help="Output directory")
    parser.add_argument("--png", action="store_true", help="Also write a matplotlib .png preview")
    parser.add_argument("--save-grid", action="store_true", help="Also save the full voxel grid")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging and progress bar")
    return parser.parse_args()


def save_png_preview(image: np.ndarray, output_path: Path, title: str):
    """Write the projection scaled by display_scale to a png."""
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(8, 8))
    im = ax.imshow(
        image,
        cmap="viridis",
        vmin=0.0,
        vmax=display_scale(image),
        origin="lower",
        aspect="equal",
    )
    plt.colorbar(im, ax=ax, label="Integrated density")
    ax.set_title(title)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved preview to {output_path}")


def main() -> int:
    args = parse_arguments()
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    source = HDF5RaySource(args.ray_cloud, batch_size=args.batch_size)
    try:
        min_bound, max_bound = source.bounds()
    except StreamError as e:
        logger.error(f"Could not read ray cloud bounds: {e}")
        return 1

    config = DensityPipelineConfig(
        grid=DensityGridConfig(
            min_bound=tuple(min_bound),
            max_bound=tuple(max_bound),
            cell_width=args.cell_width,
        ),
        smoothing=SmoothingConfig(min_rays=args.min_rays),
        view_direction=args.view,
        n_workers=args.workers,
        show_progress=args.verbose,
    )

    orchestrator = DensityPipelineOrchestrator()
    outcome, result = orchestrator.run(source, config)
    logger.info(f"Outcome: {outcome.outcome.status} - {outcome.outcome.message}")
    if result is None:
        return 1

    stem = Path(args.ray_cloud).stem
    projection_path = output_dir / f"{stem}_density_{args.view}.npz"
    np.savez_compressed(
        projection_path,
        image=result.image,
        cell_width=args.cell_width,
        view=args.view,
        under_sampled_ratio=result.smoothing_report.under_sampled_ratio,
    )
    logger.info(f"Saved projection to {projection_path}")

    if args.save_grid:
        result.grid.save(output_dir / f"{stem}_density_grid.npz")
    if args.png:
        save_png_preview(result.image, output_dir / f"{stem}_density_{args.view}.png",
                         f"{stem} density ({args.view})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
