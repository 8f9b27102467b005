"""Camera matrices and viewport UV <-> view position mapping."""

import math
from dataclasses import dataclass, asdict
from typing import Dict, Sequence, Tuple

import cv2
import numpy as np
import torch

from .distortion import DistortionCoefficients, distort


@dataclass(frozen=True)
class CameraMatrix:
    """Affine intrinsics between the z=1 view plane and viewport UV.

    uv = view * (fx, fy) + (cx, cy)
    """
    fx: float = 1.0
    fy: float = 1.0
    cx: float = 0.0
    cy: float = 0.0

    @property
    def focal(self) -> Tuple[float, float]:
        return (self.fx, self.fy)

    @property
    def center(self) -> Tuple[float, float]:
        return (self.cx, self.cy)

    @classmethod
    def identity(cls) -> "CameraMatrix":
        return cls(1.0, 1.0, 0.0, 0.0)

    @classmethod
    def from_fov(
        cls,
        horizontal_fov: float,
        aspect_ratio: float = 1.0,
        center: Tuple[float, float] = (0.5, 0.5),
    ) -> "CameraMatrix":
        """Pinhole camera covering the viewport with the given horizontal FOV (degrees).

        aspect_ratio is width / height of the viewport.
        """
        fx = 0.5 / math.tan(math.radians(horizontal_fov) / 2)
        return cls(fx, fx * aspect_ratio, center[0], center[1])

    def to_opencv(self) -> np.ndarray:
        """3x3 intrinsic matrix in UV units."""
        return np.array([
            [self.fx, 0.0, self.cx],
            [0.0, self.fy, self.cy],
            [0.0, 0.0, 1.0],
        ], dtype=np.float64)

    def to_list(self):
        return [self.fx, self.fy, self.cx, self.cy]

    @classmethod
    def from_list(cls, values: Sequence[float]) -> "CameraMatrix":
        fx, fy, cx, cy = (float(v) for v in values)
        return cls(fx, fy, cx, cy)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> "CameraMatrix":
        return cls(float(d["fx"]), float(d["fy"]), float(d["cx"]), float(d["cy"]))


def flip_uv(uv: torch.Tensor) -> torch.Tensor:
    """Flip the vertical UV axis: (u, v) -> (u, 1 - v)."""
    return torch.stack([uv[..., 0], 1 - uv[..., 1]], dim=-1)


def viewport_uv_to_view(uv: torch.Tensor, matrix: CameraMatrix) -> torch.Tensor:
    """[..., 2] viewport UV -> [..., 2] normalized view position."""
    x = (uv[..., 0] - matrix.cx) / matrix.fx
    y = (uv[..., 1] - matrix.cy) / matrix.fy
    return torch.stack([x, y], dim=-1)


def view_to_viewport_uv(view: torch.Tensor, matrix: CameraMatrix) -> torch.Tensor:
    """[..., 2] normalized view position -> [..., 2] viewport UV."""
    u = view[..., 0] * matrix.fx + matrix.cx
    v = view[..., 1] * matrix.fy + matrix.cy
    return torch.stack([u, v], dim=-1)


def undistort_viewport_uv(
    distorted_uv: torch.Tensor,
    coefs: DistortionCoefficients,
    undistorted_matrix: CameraMatrix,
    distorted_matrix: CameraMatrix,
) -> torch.Tensor:
    """Map distorted viewport UV to the equivalent undistorted viewport UV.

    Closed form: the forward lens model is evaluated between the distorted
    camera (input side) and the undistorted camera (output side).
    """
    distorted_view = viewport_uv_to_view(distorted_uv, distorted_matrix)
    undistorted_view = distort(distorted_view, coefs)
    return view_to_viewport_uv(undistorted_view, undistorted_matrix)


def distort_viewport_uv(
    undistorted_uv: torch.Tensor,
    coefs: DistortionCoefficients,
    undistorted_matrix: CameraMatrix,
    distorted_matrix: CameraMatrix,
    max_iter: int = 100,
    eps: float = 1e-12,
) -> torch.Tensor:
    """Numerical inverse of undistort_viewport_uv.

    Solved point by point with OpenCV's iterative undistortion. Slow; used as
    the reference for measuring the grid approximation.

    Args:
        undistorted_uv: [..., 2] undistorted viewport UV
        coefs: lens coefficients
        undistorted_matrix: camera matrix of the undistorted frame
        distorted_matrix: camera matrix of the distorted frame
        max_iter, eps: termination criteria of the solver

    Returns:
        distorted_uv: [..., 2] tensor on the input device/dtype
    """
    shape = undistorted_uv.shape
    pts = undistorted_uv.detach().reshape(-1, 1, 2).cpu().numpy().astype(np.float64)

    criteria = (cv2.TERM_CRITERIA_COUNT | cv2.TERM_CRITERIA_EPS, max_iter, eps)
    out = cv2.undistortPoints(
        pts,
        undistorted_matrix.to_opencv(),
        np.array(coefs.to_opencv(), dtype=np.float64),
        R=np.eye(3, dtype=np.float64),
        P=distorted_matrix.to_opencv(),
        criteria=criteria,
    )

    out = torch.from_numpy(np.ascontiguousarray(out.reshape(shape)))
    return out.to(device=undistorted_uv.device, dtype=undistorted_uv.dtype)


def compute_overscan_factor(
    coefs: DistortionCoefficients,
    undistorted_matrix: CameraMatrix,
    distorted_matrix: CameraMatrix,
    samples_per_edge: int = 64,
) -> float:
    """Scale the undistorted render needs so every distorted pixel has a source.

    The distorted viewport border is undistorted and the farthest point from
    the viewport center, per axis, decides the factor (never below 1).
    """
    t = torch.linspace(0, 1, samples_per_edge, dtype=torch.float64)
    zeros, ones = torch.zeros_like(t), torch.ones_like(t)
    border = torch.cat([
        torch.stack([t, zeros], dim=-1),
        torch.stack([t, ones], dim=-1),
        torch.stack([zeros, t], dim=-1),
        torch.stack([ones, t], dim=-1),
    ])

    undistorted = undistort_viewport_uv(border, coefs, undistorted_matrix, distorted_matrix)
    extent = (2 * (undistorted - 0.5).abs()).max().item()
    return max(1.0, extent)
