"""CLI for baking displacement map datasets from CSV configuration."""

import argparse
from pathlib import Path

from lensdisp import LensConfig
from lensdisp.generators import DatasetGenerator


def main():
    parser = argparse.ArgumentParser(description="Bake displacement maps from CSV configuration")
    parser.add_argument("csv", type=Path, help="Path to CSV configuration file")
    parser.add_argument("-o", "--output", type=Path, required=True, help="Output dataset root directory")
    parser.add_argument("-w", "--workers", type=int, default=4, help="Number of parallel workers")
    parser.add_argument("--device", type=str, default="cpu", choices=["cpu", "cuda"], help="Device to use")
    parser.add_argument("--no-skip", action="store_true", help="Don't skip existing outputs")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bar")
    parser.add_argument("--no-preview", action="store_true", help="Don't write PNG previews")
    parser.add_argument("--width", type=int, default=512, help="Map width for rows without a width column")
    parser.add_argument("--height", type=int, default=512, help="Map height for rows without a height column")
    parser.add_argument("--grid", type=int, nargs=2, default=[32, 32], metavar=("SX", "SY"),
                        help="Grid subdivision for rows without grid columns")
    parser.add_argument("--fov", type=float, default=75.0,
                        help="Horizontal FOV (degrees) for rows without camera matrix columns")

    args = parser.parse_args()

    cfg = LensConfig(
        width=args.width,
        height=args.height,
        grid_subdivision_x=args.grid[0],
        grid_subdivision_y=args.grid[1],
        horizontal_fov=(args.fov, args.fov),
        device=args.device,
    )
    gen = DatasetGenerator(args.csv, args.output, cfg)

    results = gen.generate(
        num_workers=args.workers,
        device=args.device,
        skip_existing=not args.no_skip,
        progress=not args.no_progress,
        save_preview=not args.no_preview,
    )

    print(f"\nGeneration complete:")
    print(f"  Total samples: {results['total']}")
    print(f"  Processed: {results['processed']}")
    print(f"  Skipped: {results['skipped']}")
    print(f"  Errors: {len(results['errors'])}")

    if results['errors']:
        print("\nErrors:")
        for err in results['errors'][:10]:
            print(f"  {err['sample_id']}: {err['error']}")
        if len(results['errors']) > 10:
            print(f"  ... and {len(results['errors']) - 10} more")


if __name__ == "__main__":
    main()
