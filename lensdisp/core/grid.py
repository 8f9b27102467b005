"""Undistortion grid: tessellated viewport with analytically undistorted vertices.

Each grid cell is two triangles (6 vertices). Vertex positions are the
undistorted locations of the grid points in clip space; each vertex carries
its distorted viewport UV, which the rasterizer interpolates per pixel. This
gives a piecewise-linear inverse of undistort_viewport_uv without a solver.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import torch

from .camera import CameraMatrix, flip_uv, undistort_viewport_uv
from .distortion import DistortionCoefficients

VERTICES_PER_CELL = 6


@dataclass
class GridMesh:
    """Output of the vertex stage.

    positions: [N, 2] clip-space positions in [-1, 1] (y up)
    distorted_uv: [N, 2] distorted viewport UV varying
    """
    positions: torch.Tensor
    distorted_uv: torch.Tensor
    subdivision_x: int
    subdivision_y: int

    @property
    def num_vertices(self) -> int:
        return self.positions.shape[0]

    @property
    def num_triangles(self) -> int:
        return self.num_vertices // 3

    def triangles(self) -> Tuple[torch.Tensor, torch.Tensor]:
        """Positions [T, 3, 2] and varyings [T, 3, 2] grouped per triangle."""
        return self.positions.view(-1, 3, 2), self.distorted_uv.view(-1, 3, 2)


def num_grid_vertices(subdivision_x: int, subdivision_y: int) -> int:
    return VERTICES_PER_CELL * subdivision_x * subdivision_y


def grid_cell_corners(
    vertex_index: torch.Tensor,
    subdivision_x: int,
    subdivision_y: int,
    dtype: torch.dtype = torch.float32,
) -> torch.Tensor:
    """Grid-space corner (column + cu, row + cv) of each vertex index.

    Local vertex ids 0..5 visit corners (0,0), (0,1), (1,0), (1,1), (1,0), (0,1):
    two triangles sharing the (1,0)-(0,1) diagonal.
    """
    cell = vertex_index // VERTICES_PER_CELL
    local = vertex_index - cell * VERTICES_PER_CELL
    column = cell // subdivision_y
    row = cell - column * subdivision_y

    corner_u = ((local + 1) // 3) & 1
    corner_v = local & 1

    return torch.stack([column + corner_u, row + corner_v], dim=-1).to(dtype)


def distorted_grid_uv(
    vertex_index: torch.Tensor,
    subdivision_x: int,
    subdivision_y: int,
    pixel_uv_size: torch.Tensor,
) -> torch.Tensor:
    """Distorted viewport UV of each grid vertex, with the half-pixel shift."""
    corners = grid_cell_corners(vertex_index, subdivision_x, subdivision_y, pixel_uv_size.dtype)
    inv_size = torch.tensor(
        [1.0 / subdivision_x, 1.0 / subdivision_y],
        device=pixel_uv_size.device, dtype=pixel_uv_size.dtype,
    )
    return flip_uv(corners * inv_size) - pixel_uv_size * 0.5


def build_grid(
    coefs: DistortionCoefficients,
    undistorted_matrix: CameraMatrix,
    distorted_matrix: CameraMatrix,
    pixel_uv_size: torch.Tensor,
    subdivision_x: int,
    subdivision_y: int,
    vertex_index: Optional[torch.Tensor] = None,
) -> GridMesh:
    """Run the vertex stage for every grid vertex (or a subset of indices).

    Args:
        coefs: lens coefficients
        undistorted_matrix, distorted_matrix: camera matrices
        pixel_uv_size: [2] size of one output pixel in UV
        subdivision_x, subdivision_y: grid resolution in cells
        vertex_index: optional [N] vertex ids; all vertices if None

    Returns:
        GridMesh with clip-space positions and distorted UV varyings
    """
    device, dtype = pixel_uv_size.device, pixel_uv_size.dtype
    if vertex_index is None:
        vertex_index = torch.arange(
            num_grid_vertices(subdivision_x, subdivision_y), device=device, dtype=torch.long
        )

    grid_uv = distorted_grid_uv(vertex_index, subdivision_x, subdivision_y, pixel_uv_size)
    undistorted_uv = undistort_viewport_uv(grid_uv, coefs, undistorted_matrix, distorted_matrix)
    positions = flip_uv(undistorted_uv + pixel_uv_size * 0.5) * 2 - 1

    return GridMesh(
        positions=positions,
        distorted_uv=grid_uv,
        subdivision_x=subdivision_x,
        subdivision_y=subdivision_y,
    )
