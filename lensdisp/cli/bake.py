"""CLI for baking a single displacement map from lens coefficients."""

import argparse
import sys
from pathlib import Path

import numpy as np
import torch
from PIL import Image

from lensdisp import (
    CameraMatrix,
    DisplacementCodec,
    DisplacementEngine,
    DisplacementParams,
    DistortionCoefficients,
    OutputTransform,
    approximation_error,
    compute_overscan_factor,
    round_trip_error,
    warp_with_displacement,
)


def load_image(path: Path) -> torch.Tensor:
    """Load image as [3, H, W] tensor in [0, 1]."""
    img = Image.open(path).convert("RGB")
    arr = np.array(img, dtype=np.float32) / 255.0
    return torch.from_numpy(arr).permute(2, 0, 1)


def save_image(path: Path, tensor: torch.Tensor):
    """Save [3, H, W] tensor to image."""
    path.parent.mkdir(parents=True, exist_ok=True)
    arr = tensor.permute(1, 2, 0).cpu().numpy()
    arr = (arr.clip(0, 1) * 255).astype(np.uint8)
    Image.fromarray(arr).save(path)


def build_params(args) -> DisplacementParams:
    coefs = DistortionCoefficients(k1=args.k1, k2=args.k2, k3=args.k3, p1=args.p1, p2=args.p2)

    if args.undistorted_matrix is not None:
        undistorted = CameraMatrix.from_list(args.undistorted_matrix)
    else:
        undistorted = CameraMatrix.from_fov(args.fov, args.width / args.height)
    distorted = CameraMatrix.from_list(args.distorted_matrix) if args.distorted_matrix is not None else undistorted

    return DisplacementParams(
        coefficients=coefs,
        undistorted_matrix=undistorted,
        distorted_matrix=distorted,
        width=args.width,
        height=args.height,
        output_transform=OutputTransform(*args.output_transform),
        grid_subdivision_x=args.grid[0],
        grid_subdivision_y=args.grid[1],
        clear_value=args.clear_value,
        device=args.device,
        dtype=args.dtype,
    )


def main():
    parser = argparse.ArgumentParser(description="Bake a lens distortion displacement map")
    parser.add_argument("-o", "--output", type=Path, required=True, help="Output .npy map")
    parser.add_argument("--k1", type=float, default=0.0, help="Radial coefficient k1")
    parser.add_argument("--k2", type=float, default=0.0, help="Radial coefficient k2")
    parser.add_argument("--k3", type=float, default=0.0, help="Radial coefficient k3")
    parser.add_argument("--p1", type=float, default=0.0, help="Tangential coefficient p1")
    parser.add_argument("--p2", type=float, default=0.0, help="Tangential coefficient p2")
    parser.add_argument("--fov", type=float, default=90.0, help="Horizontal FOV (degrees) when no matrix is given")
    parser.add_argument("--undistorted-matrix", type=float, nargs=4, metavar=("FX", "FY", "CX", "CY"),
                        help="Undistorted camera matrix in UV units")
    parser.add_argument("--distorted-matrix", type=float, nargs=4, metavar=("FX", "FY", "CX", "CY"),
                        help="Distorted camera matrix in UV units (defaults to the undistorted one)")
    parser.add_argument("--width", type=int, default=512, help="Map width")
    parser.add_argument("--height", type=int, default=512, help="Map height")
    parser.add_argument("--grid", type=int, nargs=2, default=[32, 32], metavar=("SX", "SY"),
                        help="Grid subdivision")
    parser.add_argument("--output-transform", type=float, nargs=2, default=[1.0, 0.0],
                        metavar=("MULTIPLY", "ADD"), help="Applied to all four channels")
    parser.add_argument("--clear-value", type=float, default=0.0, help="Value of uncovered pixels")
    parser.add_argument("--dtype", type=str, default="float32", choices=["float32", "float64"])
    parser.add_argument("--device", type=str, default="cpu", help="Device")
    parser.add_argument("--compress", action="store_true", help="Store as float16")
    parser.add_argument("--preview", type=Path, help="Optional PNG preview")
    parser.add_argument("--warp-image", type=Path, help="Image to distort through the baked map")
    parser.add_argument("--warp-output", type=Path, help="Where to write the warped image")
    parser.add_argument("--report", action="store_true", help="Print accuracy of the approximated channel")

    args = parser.parse_args()

    try:
        params = build_params(args).validate()
    except ValueError as e:
        print(f"Invalid lens parameters: {e}")
        sys.exit(1)

    engine = DisplacementEngine()
    displacement, meta = engine.generate(params)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    DisplacementCodec.save(
        args.output,
        displacement=displacement.cpu().numpy(),
        coverage=meta["coverage"].cpu().numpy(),
        params=params.to_dict(),
        meta={"coverage_ratio": meta["coverage_ratio"]},
        compress=args.compress,
    )
    print(f"Saved {params.width}x{params.height} map -> {args.output}")
    print(f"  Coverage: {meta['coverage_ratio'] * 100:.2f}%")

    if args.preview is not None:
        args.preview.parent.mkdir(parents=True, exist_ok=True)
        raw = params.output_transform.invert(displacement).cpu().numpy()
        Image.fromarray(DisplacementCodec.to_preview(raw)).save(args.preview)
        print(f"  Preview: {args.preview}")

    if args.warp_image is not None:
        image = load_image(args.warp_image).to(displacement.device, displacement.dtype)
        warped = warp_with_displacement(image, displacement, params.output_transform, direction="distort")
        warp_output = args.warp_output or args.warp_image.with_name(args.warp_image.stem + "_distorted.png")
        save_image(warp_output, warped)
        print(f"  Warped: {warp_output}")

    if args.report:
        overscan = compute_overscan_factor(params.coefficients, params.undistorted_matrix, params.distorted_matrix)
        rt = round_trip_error(displacement, params, meta["coverage"])
        approx = approximation_error(displacement, params, meta["coverage"])
        print(f"  Overscan factor: {overscan:.4f}")
        print(f"  Round trip error (UV): max {rt['max']:.3e}, rms {rt['rms']:.3e}")
        print(f"  Inverse error (UV): max {approx['max']:.3e}, rms {approx['rms']:.3e}")


if __name__ == "__main__":
    main()
