"""Tests for camera matrices and the coordinate mapper."""

import pytest
import numpy as np
import torch

from lensdisp.core import (
    CameraMatrix,
    DistortionCoefficients,
    compute_overscan_factor,
    distort,
    distort_viewport_uv,
    flip_uv,
    undistort_viewport_uv,
    view_to_viewport_uv,
    viewport_uv_to_view,
)


class TestCameraMatrix:
    def test_identity(self):
        m = CameraMatrix.identity()
        assert m.to_list() == [1.0, 1.0, 0.0, 0.0]
        assert m == CameraMatrix()

    def test_from_fov(self):
        m = CameraMatrix.from_fov(90.0, aspect_ratio=2.0)
        assert m.fx == pytest.approx(0.5)
        assert m.fy == pytest.approx(1.0)
        assert m.center == (0.5, 0.5)

    def test_to_opencv(self):
        K = CameraMatrix(2.0, 3.0, 0.4, 0.6).to_opencv()
        assert K.shape == (3, 3)
        assert np.allclose(K, [[2.0, 0.0, 0.4], [0.0, 3.0, 0.6], [0.0, 0.0, 1.0]])

    def test_list_and_dict(self):
        m = CameraMatrix(1.5, 1.2, 0.45, 0.55)
        assert CameraMatrix.from_list(m.to_list()) == m
        assert CameraMatrix.from_dict(m.to_dict()) == m


class TestCoordinateMapper:
    @pytest.fixture
    def matrix(self):
        return CameraMatrix(0.7, 0.9, 0.48, 0.52)

    def test_uv_to_view(self, matrix):
        view = viewport_uv_to_view(torch.tensor([0.48 + 0.7, 0.52 - 0.9], dtype=torch.float64), matrix)
        assert view[0].item() == pytest.approx(1.0)
        assert view[1].item() == pytest.approx(-1.0)

    def test_view_uv_round_trip(self, matrix):
        uv = torch.rand(32, 2, dtype=torch.float64)
        back = view_to_viewport_uv(viewport_uv_to_view(uv, matrix), matrix)
        assert torch.allclose(back, uv, atol=1e-12)

    def test_flip_uv(self):
        uv = torch.tensor([0.25, 0.1])
        assert torch.allclose(flip_uv(uv), torch.tensor([0.25, 0.9]))
        assert torch.allclose(flip_uv(flip_uv(uv)), uv)

    def test_undistort_is_composition(self, matrix):
        coefs = DistortionCoefficients(k1=0.1, p1=0.01)
        uv = torch.rand(32, 2, dtype=torch.float64)

        expected = view_to_viewport_uv(distort(viewport_uv_to_view(uv, matrix), coefs), matrix)
        out = undistort_viewport_uv(uv, coefs, matrix, matrix)

        assert torch.allclose(out, expected, atol=1e-12)

    def test_undistort_identity_without_distortion(self):
        uv = torch.rand(32, 2, dtype=torch.float64)
        m = CameraMatrix.identity()
        out = undistort_viewport_uv(uv, DistortionCoefficients(), m, m)
        assert torch.allclose(out, uv, atol=1e-12)

    def test_undistort_uses_both_matrices(self):
        undistorted = CameraMatrix(2.0, 2.0, 0.0, 0.0)
        distorted = CameraMatrix.identity()
        uv = torch.tensor([0.25, 0.5], dtype=torch.float64)
        out = undistort_viewport_uv(uv, DistortionCoefficients(), undistorted, distorted)
        assert torch.allclose(out, torch.tensor([0.5, 1.0], dtype=torch.float64))

    def test_zero_focal_propagates(self):
        m = CameraMatrix(0.0, 1.0, 0.5, 0.5)
        out = undistort_viewport_uv(torch.tensor([[0.25, 0.5]]), DistortionCoefficients(k1=0.1), m, m)
        assert not torch.isfinite(out).all()


class TestExactInverse:
    @pytest.fixture
    def setup(self):
        coefs = DistortionCoefficients(k1=0.1, k2=0.01, p1=0.002, p2=-0.001)
        undistorted = CameraMatrix.from_fov(90.0)
        distorted = CameraMatrix(0.51, 0.51, 0.49, 0.505)
        return coefs, undistorted, distorted

    def test_inverts_undistort(self, setup):
        coefs, undistorted, distorted = setup
        uv = torch.rand(200, 2, dtype=torch.float64)

        distorted_uv = distort_viewport_uv(uv, coefs, undistorted, distorted)
        recovered = undistort_viewport_uv(distorted_uv, coefs, undistorted, distorted)

        assert torch.allclose(recovered, uv, atol=1e-8)

    def test_strong_distortion_iterates_to_convergence(self):
        # A handful of fixed-point steps leaves ~1e-3 error here; the solver must run to eps
        coefs = DistortionCoefficients(k1=0.3, k2=0.05)
        m = CameraMatrix.from_fov(90.0)
        uv = torch.rand(100, 2, dtype=torch.float64) * 0.6 + 0.2

        distorted_uv = distort_viewport_uv(uv, coefs, m, m)
        recovered = undistort_viewport_uv(distorted_uv, coefs, m, m)

        assert torch.allclose(recovered, uv, atol=1e-9)

    def test_preserves_shape_and_dtype(self, setup):
        coefs, undistorted, distorted = setup
        uv = torch.rand(4, 6, 2, dtype=torch.float32)
        out = distort_viewport_uv(uv, coefs, undistorted, distorted)
        assert out.shape == (4, 6, 2)
        assert out.dtype == torch.float32


class TestOverscan:
    def test_no_distortion(self):
        m = CameraMatrix.from_fov(90.0)
        assert compute_overscan_factor(DistortionCoefficients(), m, m) == pytest.approx(1.0)

    def test_radial_expansion(self):
        # Corner view position (1, 1) has R2 = 2, so it lands at 1 + 2*k1
        m = CameraMatrix.from_fov(90.0)
        factor = compute_overscan_factor(DistortionCoefficients(k1=0.1), m, m)
        assert factor == pytest.approx(1.2)

    def test_never_below_one(self):
        m = CameraMatrix.from_fov(90.0)
        assert compute_overscan_factor(DistortionCoefficients(k1=-0.2), m, m) == 1.0
