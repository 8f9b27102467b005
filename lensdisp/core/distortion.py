"""Radial + tangential (Brown-Conrady) lens distortion model."""

from dataclasses import dataclass, asdict
from typing import Dict, Sequence

import torch


@dataclass(frozen=True)
class DistortionCoefficients:
    """Radial (k1, k2, k3) and tangential (p1, p2) lens coefficients."""
    k1: float = 0.0
    k2: float = 0.0
    k3: float = 0.0
    p1: float = 0.0
    p2: float = 0.0

    @property
    def radial(self):
        return (self.k1, self.k2, self.k3)

    @property
    def tangential(self):
        return (self.p1, self.p2)

    def is_zero(self) -> bool:
        return all(c == 0.0 for c in (self.k1, self.k2, self.k3, self.p1, self.p2))

    def to_opencv(self):
        """Coefficients in OpenCV order [k1, k2, p1, p2, k3]."""
        return [self.k1, self.k2, self.p1, self.p2, self.k3]

    @classmethod
    def from_opencv(cls, coefs: Sequence[float]) -> "DistortionCoefficients":
        coefs = [float(c) for c in coefs]
        coefs = coefs + [0.0] * max(0, 5 - len(coefs))
        return cls(k1=coefs[0], k2=coefs[1], p1=coefs[2], p2=coefs[3], k3=coefs[4])

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, float]) -> "DistortionCoefficients":
        return cls(**{k: float(d.get(k, 0.0)) for k in ("k1", "k2", "k3", "p1", "p2")})


def distort(view_pos: torch.Tensor, coefs: DistortionCoefficients) -> torch.Tensor:
    """Apply the distortion model to normalized view positions (z=1 plane).

    Args:
        view_pos: [..., 2] normalized view positions
        coefs: lens coefficients

    Returns:
        distorted: [..., 2] distorted view positions
    """
    x = view_pos[..., 0]
    y = view_pos[..., 1]

    r2 = x * x + y * y
    # Horner order must stay as written
    radial = 1 + r2 * (coefs.k1 + r2 * (coefs.k2 + r2 * coefs.k3))

    xd = x * radial + coefs.p2 * (r2 + 2 * x * x) + 2 * coefs.p1 * x * y
    yd = y * radial + coefs.p1 * (r2 + 2 * y * y) + 2 * coefs.p2 * x * y

    return torch.stack([xd, yd], dim=-1)
