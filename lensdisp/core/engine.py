"""DisplacementEngine: Main generation pipeline."""

import torch
from typing import Optional, Dict, Tuple

from .config import LensConfig, DisplacementParams
from .grid import build_grid
from .raster import rasterize_triangles
from .displacement import emit_displacement


class DisplacementEngine:
    """Bakes lens distortion displacement maps."""

    def __init__(self, cfg: Optional[LensConfig] = None, chunk_size: int = 4096):
        self.cfg = cfg or LensConfig()
        self.chunk_size = chunk_size

    @torch.no_grad()
    def generate(
        self,
        params: Optional[DisplacementParams] = None,
    ) -> Tuple[torch.Tensor, Dict]:
        """Generate a displacement map.

        Args:
            params: optional DisplacementParams (samples from config if None)

        Returns:
            displacement: [H, W, 4] map; channels (0, 1) distorted->undistorted,
                (2, 3) undistorted->distorted, both after the output transform
            meta: dict with params, coverage, grid mesh and interpolated UV
        """
        if params is None:
            params = self.cfg.sample()

        pixel_uv_size = params.pixel_uv_size()
        coefs = params.coefficients

        # Vertex stage
        mesh = build_grid(
            coefs,
            params.undistorted_matrix,
            params.distorted_matrix,
            pixel_uv_size,
            params.grid_subdivision_x,
            params.grid_subdivision_y,
        )

        # Rasterize: every vertex must be ready before interpolation
        positions, varyings = mesh.triangles()
        interpolated_uv, coverage = rasterize_triangles(
            positions, varyings, params.width, params.height, chunk_size=self.chunk_size,
        )

        # Pixel stage
        displacement = emit_displacement(
            interpolated_uv,
            coefs,
            params.undistorted_matrix,
            params.distorted_matrix,
            pixel_uv_size,
            params.output_transform,
            coverage=coverage,
            clear_value=params.clear_value,
        )

        meta = {
            "params": params,
            "coverage": coverage,
            "coverage_ratio": coverage.float().mean().item(),
            "mesh": mesh,
            "interpolated_uv": interpolated_uv,
        }

        return displacement, meta
