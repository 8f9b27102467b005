"""Triangle rasterization with linear (barycentric) varying interpolation.

Vertices are snapped to a fixed-point sub-pixel grid and edge functions are
evaluated in integer arithmetic, so shared edges are watertight and the
top-left fill convention assigns each pixel center to exactly one triangle.
"""

from typing import Tuple, Union

import torch

SUBPIXEL_BITS = 8
SUBPIXEL_SCALE = 1 << SUBPIXEL_BITS
# Vertices farther than this (in pixels) from the origin are rejected
GUARD_BAND = float(1 << 20)


def viewport_transform(clip: torch.Tensor, width: int, height: int) -> torch.Tensor:
    """Clip-space [-1, 1] (y up) -> pixel coordinates (y down, row 0 at top)."""
    x = (clip[..., 0] + 1) * 0.5 * width
    y = (1 - clip[..., 1]) * 0.5 * height
    return torch.stack([x, y], dim=-1)


def _edge(a: torch.Tensor, b: torch.Tensor, px: torch.Tensor, py: torch.Tensor) -> torch.Tensor:
    """Edge function of a->b at (px, py); a, b: [T, 2], px/py broadcast against [T, 1, 1]."""
    ax, ay = a[:, 0].view(-1, 1, 1), a[:, 1].view(-1, 1, 1)
    bx, by = b[:, 0].view(-1, 1, 1), b[:, 1].view(-1, 1, 1)
    return (bx - ax) * (py - ay) - (by - ay) * (px - ax)


def _is_top_left(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """Top-left fill convention for edge a->b of a positively wound triangle."""
    dx = (b[:, 0] - a[:, 0]).view(-1, 1, 1)
    dy = (b[:, 1] - a[:, 1]).view(-1, 1, 1)
    return (dy < 0) | ((dy == 0) & (dx > 0))


def _covers(w: torch.Tensor, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    return (w > 0) | ((w == 0) & _is_top_left(a, b))


def _rasterize_chunk(
    tri: torch.Tensor,
    var: torch.Tensor,
    prim_ids: torch.Tensor,
    width: int,
    height: int,
    image: torch.Tensor,
    coverage: torch.Tensor,
) -> None:
    """Rasterize one chunk of triangles into the flat image/coverage buffers."""
    in_band = (torch.isfinite(tri) & (tri.abs() < GUARD_BAND)).all(dim=2).all(dim=1)
    tri, var, prim_ids = tri[in_band], var[in_band], prim_ids[in_band]
    if tri.shape[0] == 0:
        return

    fixed = torch.round(tri.double() * SUBPIXEL_SCALE).long()
    v0, v1, v2 = fixed[:, 0], fixed[:, 1], fixed[:, 2]
    a0, a1, a2 = var[:, 0], var[:, 1], var[:, 2]

    # Either winding is accepted: rewind so the interior has positive edge values
    area = (v1[:, 0] - v0[:, 0]) * (v2[:, 1] - v0[:, 1]) - (v1[:, 1] - v0[:, 1]) * (v2[:, 0] - v0[:, 0])
    swap = (area < 0).unsqueeze(-1)
    v1, v2 = torch.where(swap, v2, v1), torch.where(swap, v1, v2)
    a1, a2 = torch.where(swap, a2, a1), torch.where(swap, a1, a2)
    area = area.abs()

    # Pixel i has its center at (i + 0.5) * SUBPIXEL_SCALE; bounds are inclusive
    half = SUBPIXEL_SCALE // 2
    xs = torch.stack([v0[:, 0], v1[:, 0], v2[:, 0]], dim=1)
    ys = torch.stack([v0[:, 1], v1[:, 1], v2[:, 1]], dim=1)
    x0 = _ceil_div(xs.amin(dim=1) - half, SUBPIXEL_SCALE).clamp(0, width)
    x1 = torch.div(xs.amax(dim=1) - half, SUBPIXEL_SCALE, rounding_mode="floor").clamp(-1, width - 1)
    y0 = _ceil_div(ys.amin(dim=1) - half, SUBPIXEL_SCALE).clamp(0, height)
    y1 = torch.div(ys.amax(dim=1) - half, SUBPIXEL_SCALE, rounding_mode="floor").clamp(-1, height - 1)

    keep = (area > 0) & (x0 <= x1) & (y0 <= y1)
    if not keep.any():
        return
    v0, v1, v2 = v0[keep], v1[keep], v2[keep]
    a0, a1, a2 = a0[keep], a1[keep], a2[keep]
    area, prim_ids = area[keep], prim_ids[keep]
    x0, x1, y0, y1 = x0[keep], x1[keep], y0[keep], y1[keep]

    device = tri.device
    bw = int((x1 - x0).max().item()) + 1
    bh = int((y1 - y0).max().item()) + 1
    px = x0.view(-1, 1, 1) + torch.arange(bw, device=device).view(1, 1, bw)  # [T, 1, bw]
    py = y0.view(-1, 1, 1) + torch.arange(bh, device=device).view(1, bh, 1)  # [T, bh, 1]
    in_box = (px <= x1.view(-1, 1, 1)) & (py <= y1.view(-1, 1, 1))

    cx = px * SUBPIXEL_SCALE + half
    cy = py * SUBPIXEL_SCALE + half
    w0 = _edge(v1, v2, cx, cy)
    w1 = _edge(v2, v0, cx, cy)
    w2 = _edge(v0, v1, cx, cy)

    inside = in_box & _covers(w0, v1, v2) & _covers(w1, v2, v0) & _covers(w2, v0, v1)
    t_idx, j_idx, i_idx = inside.nonzero(as_tuple=True)
    if t_idx.numel() == 0:
        return

    inv_area = 1.0 / area[t_idx].double()
    l0 = (w0[t_idx, j_idx, i_idx].double() * inv_area).unsqueeze(-1)
    l1 = (w1[t_idx, j_idx, i_idx].double() * inv_area).unsqueeze(-1)
    l2 = (w2[t_idx, j_idx, i_idx].double() * inv_area).unsqueeze(-1)
    values = l0 * a0[t_idx].double() + l1 * a1[t_idx].double() + l2 * a2[t_idx].double()

    flat = (y0[t_idx] + j_idx) * width + (x0[t_idx] + i_idx)

    # Overlapping primitives: the later one wins, as in GPU draw order
    ids = prim_ids[t_idx]
    winner = torch.full((width * height,), -1, device=device, dtype=torch.long)
    winner.scatter_reduce_(0, flat, ids, reduce="amax")
    last = ids == winner[flat]

    image[flat[last]] = values[last].to(image.dtype)
    coverage[flat[last]] = True


def _ceil_div(a: torch.Tensor, b: int) -> torch.Tensor:
    return -torch.div(-a, b, rounding_mode="floor")


def rasterize_triangles(
    positions: torch.Tensor,
    varyings: torch.Tensor,
    width: int,
    height: int,
    clear_value: Union[float, torch.Tensor] = 0.0,
    chunk_size: int = 4096,
) -> Tuple[torch.Tensor, torch.Tensor]:
    """Rasterize clip-space triangles and interpolate per-vertex varyings.

    Args:
        positions: [T, 3, 2] clip-space vertex positions (y up)
        varyings: [T, 3, C] per-vertex attributes
        width, height: target size in pixels
        clear_value: value of pixels no triangle covers
        chunk_size: triangles processed per batch

    Returns:
        interpolated: [H, W, C] varyings at pixel centers
        coverage: [H, W] bool, True where some triangle covered the pixel
    """
    device, dtype = varyings.device, varyings.dtype
    C = varyings.shape[-1]

    image = torch.empty(height * width, C, device=device, dtype=dtype)
    image[:] = torch.as_tensor(clear_value, device=device, dtype=dtype)
    coverage = torch.zeros(height * width, device=device, dtype=torch.bool)

    screen = viewport_transform(positions, width, height)
    prim_ids = torch.arange(screen.shape[0], device=device, dtype=torch.long)

    for start in range(0, screen.shape[0], chunk_size):
        end = start + chunk_size
        _rasterize_chunk(
            screen[start:end], varyings[start:end], prim_ids[start:end],
            width, height, image, coverage,
        )

    return image.view(height, width, C), coverage.view(height, width)
