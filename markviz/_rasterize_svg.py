#!/usr/bin/env python3
"""
Helper script to rasterize an SVG document to PNG with CairoSVG.
This script is intended to be executed in a subprocess with its working
directory set to a scratch directory holding the input file.

Usage:
    python _rasterize_svg.py <input_svg> <output_png> [<width> <height>]
"""
import sys


def main(argv):
    try:
        import cairosvg
    except Exception as e:
        print(f"Failed to import cairosvg: {e}", file=sys.stderr)
        return 2

    if len(argv) < 2:
        print("Insufficient arguments", file=sys.stderr)
        return 2

    input_svg = argv[0]
    output_png = argv[1]
    width = int(argv[2]) if len(argv) > 2 else None
    height = int(argv[3]) if len(argv) > 3 else None

    try:
        cairosvg.svg2png(
            url=input_svg,
            write_to=output_png,
            output_width=width,
            output_height=height,
            background_color='white'
        )
        return 0
    except Exception as e:
        print(f"Error rasterizing SVG: {e}", file=sys.stderr)
        return 3


if __name__ == '__main__':
    sys.exit(main(sys.argv[1:]))
