"""Accuracy metrics for baked displacement maps."""

import torch
from typing import Dict, Optional

from .camera import undistort_viewport_uv, distort_viewport_uv
from .config import DisplacementParams
from .displacement import pixel_positions, pixel_viewport_uv


def _summary(err: torch.Tensor, mask: torch.Tensor) -> Dict[str, float]:
    err = err[mask]
    if err.numel() == 0:
        return {"max": float("nan"), "mean": float("nan"), "rms": float("nan"), "pixels": 0}
    return {
        "max": err.max().item(),
        "mean": err.mean().item(),
        "rms": torch.sqrt((err ** 2).mean()).item(),
        "pixels": int(err.numel()),
    }


def _viewport_uv(params: DisplacementParams, like: torch.Tensor) -> torch.Tensor:
    pixel_uv_size = params.pixel_uv_size().to(device=like.device, dtype=like.dtype)
    pos = pixel_positions(params.height, params.width, like.device, like.dtype)
    return pixel_viewport_uv(pos, pixel_uv_size)


def round_trip_error(
    displacement: torch.Tensor,
    params: DisplacementParams,
    coverage: Optional[torch.Tensor] = None,
) -> Dict[str, float]:
    """Residual |undistort(uv + undistort_to_distort) - uv| in UV units.

    Cheap check of the interpolated channel against the closed-form direction.
    """
    uv = _viewport_uv(params, displacement)
    u2d = params.output_transform.invert(displacement[..., 2:4])
    recovered = undistort_viewport_uv(
        uv + u2d, params.coefficients, params.undistorted_matrix, params.distorted_matrix
    )
    err = torch.linalg.norm(recovered - uv, dim=-1)
    mask = coverage if coverage is not None else torch.ones_like(err, dtype=torch.bool)
    return _summary(err, mask)


def approximation_error(
    displacement: torch.Tensor,
    params: DisplacementParams,
    coverage: Optional[torch.Tensor] = None,
) -> Dict[str, float]:
    """Distance between the interpolated channel and the exact numerical inverse (UV units)."""
    uv = _viewport_uv(params, displacement)
    u2d = params.output_transform.invert(displacement[..., 2:4])
    exact = distort_viewport_uv(
        uv, params.coefficients, params.undistorted_matrix, params.distorted_matrix
    )
    err = torch.linalg.norm((uv + u2d) - exact, dim=-1)
    mask = coverage if coverage is not None else torch.ones_like(err, dtype=torch.bool)
    return _summary(err, mask)
