"""Tests for LensConfig and DisplacementParams."""

import pytest
import numpy as np
import torch

from lensdisp.core import (
    CameraMatrix,
    DisplacementParams,
    DistortionCoefficients,
    LensConfig,
    OutputTransform,
)


class TestLensConfig:
    def test_default_config(self):
        cfg = LensConfig()
        assert cfg.k1 == (-0.3, 0.3)
        assert cfg.width == 512
        assert cfg.grid_subdivision_x == 32
        assert cfg.device == "cpu"

    def test_sample(self):
        cfg = LensConfig()
        params = cfg.sample()

        assert isinstance(params, DisplacementParams)
        assert cfg.k1[0] <= params.coefficients.k1 <= cfg.k1[1]
        assert params.coefficients.k3 == 0.0
        assert params.width == cfg.width
        assert params.undistorted_matrix == params.distorted_matrix

    def test_sample_deterministic(self):
        cfg = LensConfig()

        params1 = cfg.sample(np.random.default_rng(42))
        params2 = cfg.sample(np.random.default_rng(42))

        assert params1.coefficients == params2.coefficients
        assert params1.undistorted_matrix == params2.undistorted_matrix

    def test_sample_jitter(self):
        cfg = LensConfig(focal_jitter=(1.1, 1.1), center_jitter=(0.01, 0.01))
        params = cfg.sample(np.random.default_rng(0))

        assert params.distorted_matrix.fx == pytest.approx(params.undistorted_matrix.fx * 1.1)
        assert params.distorted_matrix.cx == pytest.approx(params.undistorted_matrix.cx + 0.01)

    def test_sample_aspect(self):
        params = LensConfig(width=200, height=100, horizontal_fov=(90.0, 90.0)).sample()
        assert params.undistorted_matrix.fx == pytest.approx(0.5)
        assert params.undistorted_matrix.fy == pytest.approx(1.0)

    def test_to_dict(self):
        d = LensConfig().to_dict()
        assert d["k1"] == (-0.3, 0.3)
        assert d["grid_subdivision_y"] == 32

    def test_from_dict(self):
        cfg = LensConfig.from_dict({"k1": [-0.1, 0.1], "width": 64, "unknown": 1})
        assert cfg.k1 == (-0.1, 0.1)
        assert cfg.width == 64

    def test_param_defaults(self):
        cfg = LensConfig(width=200, height=100, horizontal_fov=(80.0, 100.0), output_multiply=2.0, dtype="float64")
        params = DisplacementParams.from_dict(cfg.param_defaults())

        assert params.coefficients.is_zero()
        assert params.undistorted_matrix == params.distorted_matrix
        assert params.undistorted_matrix.fx == pytest.approx(0.5)
        assert params.width == 200
        assert params.output_transform.multiply == 2.0
        assert params.dtype == "float64"


class TestDisplacementParams:
    @pytest.fixture
    def params(self):
        return DisplacementParams(
            coefficients=DistortionCoefficients(k1=0.1, p2=0.005),
            undistorted_matrix=CameraMatrix(0.5, 0.5, 0.5, 0.5),
            distorted_matrix=CameraMatrix(0.55, 0.55, 0.49, 0.51),
            width=320,
            height=240,
            output_transform=OutputTransform(2.0, 0.5),
            grid_subdivision_x=16,
            grid_subdivision_y=12,
            dtype="float64",
        )

    def test_pixel_uv_size(self, params):
        size = params.pixel_uv_size()
        assert size.dtype == torch.float64
        assert size.tolist() == pytest.approx([1 / 320, 1 / 240])

    def test_dict_round_trip(self, params):
        d = params.to_dict()
        assert d["k1"] == 0.1
        assert d["distorted_cx"] == 0.49
        assert d["output_multiply"] == 2.0
        assert DisplacementParams.from_dict(d) == params

    def test_from_dict_float_fields(self, params):
        # CSV rows come back with floats for integer fields
        d = {k: float(v) if isinstance(v, int) else v for k, v in params.to_dict().items()}
        d["extra"] = "ignored"
        restored = DisplacementParams.from_dict(d)
        assert restored.width == 320
        assert restored.grid_subdivision_y == 12

    def test_validate_ok(self, params):
        assert params.validate() is params

    @pytest.mark.parametrize("field,value", [
        ("undistorted_matrix", CameraMatrix(0.0, 1.0, 0.5, 0.5)),
        ("distorted_matrix", CameraMatrix(1.0, float("nan"), 0.5, 0.5)),
        ("coefficients", DistortionCoefficients(k1=float("inf"))),
        ("width", 0),
        ("grid_subdivision_x", 0),
        ("output_transform", OutputTransform(0.0, 0.5)),
        ("dtype", "float16"),
    ])
    def test_validate_rejects(self, params, field, value):
        setattr(params, field, value)
        with pytest.raises(ValueError):
            params.validate()
