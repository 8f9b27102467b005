"""LensDisp Core: Lens distortion displacement map generation."""

from .config import LensConfig, DisplacementParams
from .engine import DisplacementEngine
from .distortion import DistortionCoefficients, distort
from .camera import (
    CameraMatrix,
    flip_uv,
    viewport_uv_to_view,
    view_to_viewport_uv,
    undistort_viewport_uv,
    distort_viewport_uv,
    compute_overscan_factor,
)
from .grid import GridMesh, build_grid
from .raster import rasterize_triangles
from .displacement import OutputTransform, emit_displacement, warp_with_displacement
from .metrics import approximation_error, round_trip_error

__all__ = [
    "LensConfig",
    "DisplacementParams",
    "DisplacementEngine",
    "DistortionCoefficients",
    "distort",
    "CameraMatrix",
    "flip_uv",
    "viewport_uv_to_view",
    "view_to_viewport_uv",
    "undistort_viewport_uv",
    "distort_viewport_uv",
    "compute_overscan_factor",
    "GridMesh",
    "build_grid",
    "rasterize_triangles",
    "OutputTransform",
    "emit_displacement",
    "warp_with_displacement",
    "approximation_error",
    "round_trip_error",
]
