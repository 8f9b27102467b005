"""Displacement map generation configuration."""

from dataclasses import dataclass, field, asdict
from typing import Tuple, Optional, Dict, Any
import math
import numpy as np
import torch

from .camera import CameraMatrix
from .displacement import OutputTransform
from .distortion import DistortionCoefficients


_DTYPES = {
    "float32": torch.float32,
    "float64": torch.float64,
}


@dataclass
class DisplacementParams:
    """All inputs of a single displacement map generation pass."""
    coefficients: DistortionCoefficients = field(default_factory=DistortionCoefficients)
    undistorted_matrix: CameraMatrix = field(default_factory=CameraMatrix)
    distorted_matrix: CameraMatrix = field(default_factory=CameraMatrix)
    width: int = 512
    height: int = 512
    output_transform: OutputTransform = field(default_factory=OutputTransform)
    grid_subdivision_x: int = 32
    grid_subdivision_y: int = 32
    clear_value: float = 0.0
    device: str = "cpu"
    dtype: str = "float32"

    @property
    def torch_dtype(self) -> torch.dtype:
        if self.dtype not in _DTYPES:
            raise ValueError(f"Unknown dtype: {self.dtype}")
        return _DTYPES[self.dtype]

    def pixel_uv_size(self) -> torch.Tensor:
        """[2] size of one output pixel in viewport UV: (1/width, 1/height)."""
        return torch.tensor(
            [1.0 / self.width, 1.0 / self.height],
            device=torch.device(self.device), dtype=self.torch_dtype,
        )

    def validate(self) -> "DisplacementParams":
        """Check calibration inputs; the generation pass itself never validates."""
        for name in ("undistorted_matrix", "distorted_matrix"):
            m = getattr(self, name)
            values = m.to_list()
            if not all(math.isfinite(v) for v in values):
                raise ValueError(f"{name} has non-finite entries: {values}")
            if m.fx == 0 or m.fy == 0:
                raise ValueError(f"{name} has a zero focal term: {values}")
        coefs = self.coefficients.to_dict()
        if not all(math.isfinite(v) for v in coefs.values()):
            raise ValueError(f"Non-finite distortion coefficients: {coefs}")
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Invalid output size: {self.width}x{self.height}")
        if self.grid_subdivision_x < 1 or self.grid_subdivision_y < 1:
            raise ValueError(
                f"Invalid grid subdivision: {self.grid_subdivision_x}x{self.grid_subdivision_y}"
            )
        if self.output_transform.multiply == 0:
            raise ValueError("Output multiply must be non-zero")
        if self.dtype not in _DTYPES:
            raise ValueError(f"Unknown dtype: {self.dtype}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Flat dict (one value per key), suitable for CSV rows."""
        d = dict(self.coefficients.to_dict())
        for prefix, m in (("undistorted", self.undistorted_matrix), ("distorted", self.distorted_matrix)):
            for k, v in m.to_dict().items():
                d[f"{prefix}_{k}"] = v
        d.update(
            width=self.width,
            height=self.height,
            output_multiply=self.output_transform.multiply,
            output_add=self.output_transform.add,
            grid_subdivision_x=self.grid_subdivision_x,
            grid_subdivision_y=self.grid_subdivision_y,
            clear_value=self.clear_value,
            device=self.device,
            dtype=self.dtype,
        )
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DisplacementParams":
        defaults = cls()

        def _matrix(prefix: str) -> CameraMatrix:
            default = getattr(defaults, f"{prefix}_matrix")
            return CameraMatrix(*(
                float(d.get(f"{prefix}_{k}", getattr(default, k))) for k in ("fx", "fy", "cx", "cy")
            ))

        return cls(
            coefficients=DistortionCoefficients.from_dict(d),
            undistorted_matrix=_matrix("undistorted"),
            distorted_matrix=_matrix("distorted"),
            width=int(d.get("width", defaults.width)),
            height=int(d.get("height", defaults.height)),
            output_transform=OutputTransform(
                multiply=float(d.get("output_multiply", 1.0)),
                add=float(d.get("output_add", 0.0)),
            ),
            grid_subdivision_x=int(d.get("grid_subdivision_x", defaults.grid_subdivision_x)),
            grid_subdivision_y=int(d.get("grid_subdivision_y", defaults.grid_subdivision_y)),
            clear_value=float(d.get("clear_value", defaults.clear_value)),
            device=str(d.get("device", defaults.device)),
            dtype=str(d.get("dtype", defaults.dtype)),
        )


@dataclass
class LensConfig:
    """Configuration for random lens sampling with parameter ranges.

    Each range parameter is (min, max) for uniform sampling.
    """
    # Radial
    k1: Tuple[float, float] = (-0.3, 0.3)
    k2: Tuple[float, float] = (-0.1, 0.1)
    k3: Tuple[float, float] = (0.0, 0.0)

    # Tangential
    p1: Tuple[float, float] = (-0.01, 0.01)
    p2: Tuple[float, float] = (-0.01, 0.01)

    # Camera
    horizontal_fov: Tuple[float, float] = (60.0, 90.0)  # degrees
    focal_jitter: Tuple[float, float] = (1.0, 1.0)  # distorted focal / undistorted focal
    center_jitter: Tuple[float, float] = (0.0, 0.0)  # principal point offset, UV

    # Output
    width: int = 512
    height: int = 512
    grid_subdivision_x: int = 32
    grid_subdivision_y: int = 32
    output_multiply: float = 1.0
    output_add: float = 0.0
    clear_value: float = 0.0

    device: str = "cpu"
    dtype: str = "float32"

    def sample(self, rng: Optional[np.random.Generator] = None) -> DisplacementParams:
        """Sample random parameters from config ranges."""
        if rng is None:
            rng = np.random.default_rng()

        def _uniform(r: Tuple[float, float]) -> float:
            return float(rng.uniform(r[0], r[1]))

        coefs = DistortionCoefficients(
            k1=_uniform(self.k1),
            k2=_uniform(self.k2),
            k3=_uniform(self.k3),
            p1=_uniform(self.p1),
            p2=_uniform(self.p2),
        )

        aspect = self.width / self.height
        undistorted = CameraMatrix.from_fov(_uniform(self.horizontal_fov), aspect)
        focal_scale = _uniform(self.focal_jitter)
        distorted = CameraMatrix(
            fx=undistorted.fx * focal_scale,
            fy=undistorted.fy * focal_scale,
            cx=undistorted.cx + _uniform(self.center_jitter),
            cy=undistorted.cy + _uniform(self.center_jitter),
        )

        return DisplacementParams(
            coefficients=coefs,
            undistorted_matrix=undistorted,
            distorted_matrix=distorted,
            width=self.width,
            height=self.height,
            output_transform=OutputTransform(self.output_multiply, self.output_add),
            grid_subdivision_x=self.grid_subdivision_x,
            grid_subdivision_y=self.grid_subdivision_y,
            clear_value=self.clear_value,
            device=self.device,
            dtype=self.dtype,
        )

    def param_defaults(self) -> Dict[str, Any]:
        """Flat DisplacementParams values for columns a CSV row leaves out.

        Zero coefficients, and both cameras at the middle of the FOV range
        without jitter.
        """
        fov = 0.5 * (self.horizontal_fov[0] + self.horizontal_fov[1])
        matrix = CameraMatrix.from_fov(fov, self.width / self.height)
        return DisplacementParams(
            undistorted_matrix=matrix,
            distorted_matrix=matrix,
            width=self.width,
            height=self.height,
            output_transform=OutputTransform(self.output_multiply, self.output_add),
            grid_subdivision_x=self.grid_subdivision_x,
            grid_subdivision_y=self.grid_subdivision_y,
            clear_value=self.clear_value,
            device=self.device,
            dtype=self.dtype,
        ).to_dict()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LensConfig":
        valid_keys = set(cls.__dataclass_fields__)
        filtered = {k: tuple(v) if isinstance(v, list) else v for k, v in d.items() if k in valid_keys}
        return cls(**filtered)
