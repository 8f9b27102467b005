"""Displacement map emission and application."""

from dataclasses import dataclass, asdict
from typing import Dict, Optional

import torch
import torch.nn.functional as F

from .camera import CameraMatrix, undistort_viewport_uv
from .distortion import DistortionCoefficients


@dataclass(frozen=True)
class OutputTransform:
    """out = add + multiply * displacement, for all four channels."""
    multiply: float = 1.0
    add: float = 0.0

    @classmethod
    def normalized(cls, max_displacement: float) -> "OutputTransform":
        """Map [-max_displacement, max_displacement] to [0, 1]."""
        return cls(multiply=0.5 / max_displacement, add=0.5)

    def apply(self, x: torch.Tensor) -> torch.Tensor:
        return self.add + self.multiply * x

    def invert(self, x: torch.Tensor) -> torch.Tensor:
        return (x - self.add) / self.multiply

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> "OutputTransform":
        return cls(multiply=float(d.get("multiply", 1.0)), add=float(d.get("add", 0.0)))


def pixel_positions(height: int, width: int, device=None, dtype=torch.float32) -> torch.Tensor:
    """Rasterizer pixel positions (pixel centers, i + 0.5) as [H, W, 2] (x, y)."""
    y, x = torch.meshgrid(
        torch.arange(height, device=device, dtype=dtype) + 0.5,
        torch.arange(width, device=device, dtype=dtype) + 0.5,
        indexing="ij",
    )
    return torch.stack([x, y], dim=-1)


def pixel_viewport_uv(pixel_pos: torch.Tensor, pixel_uv_size: torch.Tensor) -> torch.Tensor:
    """Viewport UV of a rasterizer pixel position, with the half-pixel correction."""
    return pixel_pos * pixel_uv_size - pixel_uv_size * 0.5


def emit_displacement(
    interpolated_uv: torch.Tensor,
    coefs: DistortionCoefficients,
    undistorted_matrix: CameraMatrix,
    distorted_matrix: CameraMatrix,
    pixel_uv_size: torch.Tensor,
    output_transform: OutputTransform = OutputTransform(),
    coverage: Optional[torch.Tensor] = None,
    clear_value: float = 0.0,
) -> torch.Tensor:
    """Pixel stage: pack both displacement directions into 4 channels.

    Args:
        interpolated_uv: [H, W, 2] distorted grid UV interpolated at each pixel
        coefs: lens coefficients
        undistorted_matrix, distorted_matrix: camera matrices
        pixel_uv_size: [2] size of one pixel in UV
        output_transform: (multiply, add) applied to every channel
        coverage: optional [H, W] bool; uncovered pixels keep clear_value
        clear_value: value of uncovered pixels

    Returns:
        displacement: [H, W, 4] = (distort->undistort xy, undistort->distort xy)
    """
    H, W = interpolated_uv.shape[:2]
    pos = pixel_positions(H, W, interpolated_uv.device, interpolated_uv.dtype)
    viewport_uv = pixel_viewport_uv(pos, pixel_uv_size)

    exact_uv = undistort_viewport_uv(viewport_uv, coefs, undistorted_matrix, distorted_matrix)
    distort_to_undistort = exact_uv - viewport_uv
    undistort_to_distort = interpolated_uv - viewport_uv

    out = output_transform.apply(torch.cat([distort_to_undistort, undistort_to_distort], dim=-1))

    if coverage is not None:
        out = torch.where(coverage.unsqueeze(-1), out, torch.full_like(out, clear_value))
    return out


def warp_with_displacement(
    image: torch.Tensor,
    displacement: torch.Tensor,
    output_transform: OutputTransform = OutputTransform(),
    direction: str = "distort",
    padding_mode: str = "zeros",
) -> torch.Tensor:
    """Resample an image through a baked displacement map.

    direction="distort" samples an undistorted image at uv + channels (0, 1),
    producing the distorted view; direction="undistort" samples a distorted
    image at uv + channels (2, 3).

    Args:
        image: [C, H, W] or [B, C, H, W]
        displacement: [H, W, 4] map as produced by the engine
        output_transform: transform the map was baked with
        direction: "distort" | "undistort"
        padding_mode: grid_sample padding mode

    Returns:
        warped: same shape as image, resolution of the map
    """
    if direction == "distort":
        channels = slice(0, 2)
    elif direction == "undistort":
        channels = slice(2, 4)
    else:
        raise ValueError(f"Unknown direction: {direction}")

    single = image.dim() == 3
    if single:
        image = image.unsqueeze(0)
    B = image.shape[0]
    H, W = displacement.shape[:2]

    disp = output_transform.invert(displacement[..., channels].to(image.dtype))
    pixel_uv_size = torch.tensor([1.0 / W, 1.0 / H], device=image.device, dtype=image.dtype)
    uv = pixel_viewport_uv(pixel_positions(H, W, image.device, image.dtype), pixel_uv_size) + disp.to(image.device)

    grid = (uv + pixel_uv_size * 0.5) * 2 - 1
    grid = grid.unsqueeze(0).expand(B, -1, -1, -1)
    out = F.grid_sample(image, grid, mode="bilinear", padding_mode=padding_mode, align_corners=False)
    return out.squeeze(0) if single else out
