"""Command line interface for pixelseg."""
import argparse
import json
import logging
import sys
from pathlib import Path

from pixelseg.palette import get_palette, parse_color, parse_palette
from pixelseg.raster_ingest import load_pixel_buffer, save_pixel_buffer
from pixelseg.segmenter import ColorSegmenter
from pixelseg.selection import SelectionEngine
from pixelseg.types import ImageLoadError, SegmenterConfig


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog='pixelseg',
        description='Color segmentation and cleanup for raster logos and photos'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Show progress logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    seg = subparsers.add_parser('segment', help='Reduce colors and list connected regions')
    seg.add_argument('input', type=str, help='Input image path')
    seg.add_argument(
        '--colors',
        type=int,
        default=256,
        help='Maximum palette size for median cut (default: 256)'
    )
    seg.add_argument(
        '--palette',
        type=str,
        default=None,
        help='Snap to a fixed palette: a name (web-safe, material, grayscale, pantone) '
             'or comma-separated colors such as "#ff0000,#00ff00"'
    )
    seg.add_argument(
        '--palette-tolerance',
        type=float,
        default=30.0,
        help='Maximum color distance when snapping to a palette (default: 30)'
    )
    seg.add_argument(
        '--min-area',
        type=int,
        default=2,
        help='Discard regions smaller than this many pixels (default: 2)'
    )
    seg.add_argument(
        '--blur',
        type=float,
        default=0.7,
        help='Gaussian blur sigma before quantization, 0 to disable (default: 0.7)'
    )
    seg.add_argument(
        '--json',
        type=str,
        default=None,
        help='Write the palette and region summary to this JSON file'
    )
    seg.add_argument(
        '--top',
        type=int,
        default=10,
        help='Number of largest regions to print (default: 10)'
    )

    erase = subparsers.add_parser('erase', help='Make every pixel of a color transparent')
    erase.add_argument('input', type=str, help='Input image path')
    erase.add_argument('-o', '--output', type=str, required=True, help='Output PNG path')
    erase.add_argument('--color', type=str, required=True, help='Color to erase, e.g. "#ffffff"')
    erase.add_argument(
        '--tolerance',
        type=float,
        default=40.0,
        help='Color tolerance (default: 40)'
    )

    return parser


def run_segment(args) -> int:
    palette = None
    if args.palette:
        palette = get_palette(args.palette)
        if palette is None:
            try:
                palette = parse_palette(args.palette)
            except ValueError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1

    try:
        config = SegmenterConfig(
            max_colors=args.colors,
            palette=palette,
            palette_tolerance=args.palette_tolerance,
            min_area=args.min_area,
            blur_sigma=args.blur,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    result = ColorSegmenter(config).segment_file(args.input)

    print(f"Image: {result.width}x{result.height}")
    print(f"Palette: {len(result.palette)} colors")
    print(f"Regions: {len(result.regions)}")
    for region in result.regions[:args.top]:
        b = region.bounds
        print(f"  {region.color.to_hex()}  {region.area:>8} px  "
              f"bounds ({b.min_x}, {b.min_y})-({b.max_x}, {b.max_y})")

    if args.json:
        summary = {
            'width': result.width,
            'height': result.height,
            'palette': [c.to_hex() for c in result.palette],
            'regions': [
                {
                    'color_index': r.color_index,
                    'color': r.color.to_hex(),
                    'area': r.area,
                    'bounds': [r.bounds.min_x, r.bounds.min_y, r.bounds.max_x, r.bounds.max_y],
                }
                for r in result.regions
            ],
        }
        Path(args.json).write_text(json.dumps(summary, indent=2))
        print(f"Summary written to {args.json}")

    return 0


def run_erase(args) -> int:
    try:
        color = parse_color(args.color)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    engine = SelectionEngine(load_pixel_buffer(args.input))
    erased = engine.bulk_color_erase(color, args.tolerance)
    save_pixel_buffer(engine.commit(), args.output)

    print(f"Erased {erased} pixels matching {color.to_hex()}")
    print(f"Saved to {args.output}")
    return 0


def main(args=None):
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.INFO if parsed_args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s'
    )

    input_path = Path(parsed_args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    try:
        if parsed_args.command == 'segment':
            return run_segment(parsed_args)
        return run_erase(parsed_args)
    except ImageLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
