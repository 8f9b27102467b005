"""LensDisp: Baked lens distortion displacement maps.

Main components:
- core: Distortion model, grid approximator and generation engine
- generators: CSV config and dataset generation
- codecs: Displacement map encoding/decoding
"""

from .core import (
    LensConfig,
    DisplacementParams,
    DisplacementEngine,
    DistortionCoefficients,
    CameraMatrix,
    OutputTransform,
    distort,
    undistort_viewport_uv,
    distort_viewport_uv,
    compute_overscan_factor,
    warp_with_displacement,
    approximation_error,
    round_trip_error,
)
from .generators import CSVGenerator, DatasetGenerator
from .codecs import DisplacementCodec

__version__ = "0.1.0"
__all__ = [
    # Core
    "LensConfig",
    "DisplacementParams",
    "DisplacementEngine",
    "DistortionCoefficients",
    "CameraMatrix",
    "OutputTransform",
    "distort",
    "undistort_viewport_uv",
    "distort_viewport_uv",
    "compute_overscan_factor",
    "warp_with_displacement",
    "approximation_error",
    "round_trip_error",
    # Generators
    "CSVGenerator",
    "DatasetGenerator",
    # Codecs
    "DisplacementCodec",
]
