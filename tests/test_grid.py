"""Tests for the undistortion grid (vertex stage)."""

import pytest
import torch

from lensdisp.core import CameraMatrix, DistortionCoefficients, build_grid
from lensdisp.core.grid import distorted_grid_uv, grid_cell_corners, num_grid_vertices


class TestGridTopology:
    def test_quad_decomposition(self):
        corners = grid_cell_corners(torch.arange(6), 4, 4)
        expected = torch.tensor([[0, 0], [0, 1], [1, 0], [1, 1], [1, 0], [0, 1]], dtype=torch.float32)
        assert torch.equal(corners, expected)

    def test_column_major_cells(self):
        # cell 5 of a 4x3 grid: column 5 // 3 = 1, row 5 % 3 = 2
        corners = grid_cell_corners(torch.tensor([6 * 5]), 4, 3)
        assert corners[0].tolist() == [1.0, 2.0]

    def test_every_lattice_point_used(self):
        sx, sy = 5, 3
        corners = grid_cell_corners(torch.arange(num_grid_vertices(sx, sy)), sx, sy)
        points = {tuple(c) for c in corners.long().tolist()}
        assert points == {(i, j) for i in range(sx + 1) for j in range(sy + 1)}

    def test_distorted_uv_flip_and_half_pixel(self):
        pixel_uv_size = torch.tensor([1 / 64, 1 / 32], dtype=torch.float64)
        uv = distorted_grid_uv(torch.arange(6), 8, 4, pixel_uv_size)

        # corner (0, 0) -> flipped to (0, 1), shifted by half a pixel
        assert uv[0].tolist() == pytest.approx([-1 / 128, 1 - 1 / 64])
        # corner (1, 1) -> (1/8, 1 - 1/4)
        assert uv[3].tolist() == pytest.approx([1 / 8 - 1 / 128, 0.75 - 1 / 64])


class TestBuildGrid:
    @pytest.fixture
    def pixel_uv_size(self):
        return torch.tensor([1 / 64, 1 / 64], dtype=torch.float64)

    def test_sizes(self, pixel_uv_size):
        m = CameraMatrix.identity()
        mesh = build_grid(DistortionCoefficients(), m, m, pixel_uv_size, 4, 3)

        assert mesh.num_vertices == 72
        assert mesh.num_triangles == 24
        positions, varyings = mesh.triangles()
        assert positions.shape == (24, 3, 2)
        assert varyings.shape == (24, 3, 2)

    def test_no_distortion_positions(self, pixel_uv_size):
        m = CameraMatrix.identity()
        mesh = build_grid(DistortionCoefficients(), m, m, pixel_uv_size, 8, 8)

        # Undistorted position equals the un-shifted grid point in clip space
        corners = grid_cell_corners(torch.arange(mesh.num_vertices), 8, 8, torch.float64) / 8
        expected = corners * 2 - 1

        assert torch.allclose(mesh.positions, expected, atol=1e-12)
        assert mesh.positions.abs().max().item() <= 1 + 1e-12

    def test_varying_is_distorted_uv(self, pixel_uv_size):
        m = CameraMatrix(1.0, 1.0, 0.5, 0.5)
        coefs = DistortionCoefficients(k1=0.1)
        mesh = build_grid(coefs, m, m, pixel_uv_size, 4, 4)

        expected = distorted_grid_uv(torch.arange(mesh.num_vertices), 4, 4, pixel_uv_size)
        assert torch.equal(mesh.distorted_uv, expected)

    def test_radial_distortion_pushes_outward(self, pixel_uv_size):
        m = CameraMatrix(1.0, 1.0, 0.5, 0.5)
        flat = build_grid(DistortionCoefficients(), m, m, pixel_uv_size, 4, 4)
        bent = build_grid(DistortionCoefficients(k1=0.2), m, m, pixel_uv_size, 4, 4)

        assert bent.positions.abs().max() > flat.positions.abs().max()

    def test_vertex_subset(self, pixel_uv_size):
        m = CameraMatrix.identity()
        full = build_grid(DistortionCoefficients(k1=0.05), m, m, pixel_uv_size, 4, 4)
        subset = build_grid(
            DistortionCoefficients(k1=0.05), m, m, pixel_uv_size, 4, 4,
            vertex_index=torch.tensor([0, 7, 95]),
        )
        assert torch.equal(subset.positions, full.positions[[0, 7, 95]])
