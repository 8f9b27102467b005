"""Displacement map encoding/decoding for storage."""

import numpy as np
from pathlib import Path
from typing import Dict, Any, Union, Optional


class DisplacementCodec:
    """Encode/decode displacement maps and metadata to/from .npy files.

    Format: Single .npy file containing a dict with:
        - displacement: [H, W, 4] map (distorted->undistorted xy, undistorted->distorted xy)
        - coverage: [H, W] bool, pixels shaded by the grid (optional)
        - params: flat dict of generation parameters
        - meta: additional metadata
    """

    VERSION = 1

    @classmethod
    def encode(
        cls,
        displacement: np.ndarray,
        coverage: Optional[np.ndarray] = None,
        params: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, Any]] = None,
        compress: bool = False,
    ) -> Dict[str, Any]:
        """Encode a displacement map to a dict for saving.

        Args:
            displacement: [H, W, 4] displacement map
            coverage: [H, W] coverage mask
            params: generation parameters
            meta: additional metadata
            compress: use float16 (a half-float render target)

        Returns:
            dict ready for np.save
        """
        if displacement.ndim != 3 or displacement.shape[-1] != 4:
            raise ValueError(f"Expected [H, W, 4] displacement, got {displacement.shape}")

        dtype = np.float16 if compress else np.float32

        data = {
            "version": cls.VERSION,
            "displacement": displacement.astype(dtype),
        }

        if coverage is not None:
            data["coverage"] = coverage.astype(bool)

        if params is not None:
            data["params"] = cls._serialize_params(params)

        if meta is not None:
            data["meta"] = meta

        return data

    @classmethod
    def decode(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Decode a displacement map from a loaded dict.

        Args:
            data: dict loaded from .npy

        Returns:
            dict with numpy arrays and params
        """
        result = {
            "displacement": data["displacement"].astype(np.float32),
        }

        if "coverage" in data:
            result["coverage"] = data["coverage"].astype(bool)

        if "params" in data:
            result["params"] = dict(data["params"])

        if "meta" in data:
            result["meta"] = data["meta"]

        result["version"] = data.get("version", 0)

        return result

    @classmethod
    def save(cls, path: Union[str, Path], **kwargs) -> None:
        """Save displacement map to .npy file."""
        data = cls.encode(**kwargs)
        np.save(path, data, allow_pickle=True)

    @classmethod
    def load(cls, path: Union[str, Path]) -> Dict[str, Any]:
        """Load displacement map from .npy file."""
        data = np.load(path, allow_pickle=True).item()
        return cls.decode(data)

    @staticmethod
    def to_preview(displacement: np.ndarray, scale: Optional[float] = None) -> np.ndarray:
        """8-bit RGB preview: R/G = distorted->undistorted x/y, B = |undistorted->distorted|.

        scale is the displacement mapped to full intensity (auto if None).
        """
        d2u = displacement[..., 0:2]
        u2d = np.linalg.norm(displacement[..., 2:4], axis=-1)
        if scale is None:
            finite = np.abs(displacement[np.isfinite(displacement)])
            scale = float(finite.max()) if finite.size else 1.0
        scale = scale if scale > 0 else 1.0

        rgb = np.empty(displacement.shape[:2] + (3,), dtype=np.float32)
        rgb[..., 0:2] = 0.5 + 0.5 * d2u / scale
        rgb[..., 2] = u2d / scale
        rgb = np.nan_to_num(rgb, nan=0.0)
        return (rgb.clip(0, 1) * 255).astype(np.uint8)

    @staticmethod
    def _serialize_params(params: Dict[str, Any]) -> Dict[str, Any]:
        """Serialize params to JSON-safe types."""
        serialized = {}
        for k, v in params.items():
            if isinstance(v, np.ndarray):
                serialized[k] = v.tolist()
            elif isinstance(v, (np.floating, np.integer)):
                serialized[k] = float(v) if isinstance(v, np.floating) else int(v)
            elif hasattr(v, "item"):
                serialized[k] = v.item()
            else:
                serialized[k] = v
        return serialized
