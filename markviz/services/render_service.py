"""
SVG rasterization service module.

This module turns SVG markup into PNG bytes by running the
_rasterize_svg.py helper in a subprocess, and handles scratch files,
timeouts and size limits around it.
"""

import logging
import subprocess
import sys
import tempfile
from pathlib import Path

from markviz.errors import GenerationError

logger = logging.getLogger(__name__)

RASTERIZE_TIMEOUT_SECONDS = 60


class RasterizationError(GenerationError):
    """Raised when the rasterization subprocess fails."""
    pass


class RasterTooLargeError(RasterizationError):
    """Raised when the rendered PNG exceeds the size limit."""
    pass


class RasterMissingError(RasterizationError):
    """Raised when the rendered PNG cannot be found."""
    pass


def rasterize_svg(
    svg_markup: str,
    *,
    width: int = 800,
    height: int = 600,
    max_png_size: int = 10 * 1024 * 1024
) -> bytes:
    """
    Render SVG markup to PNG.

    Writes the markup to a scratch directory, runs the helper script with
    that directory as its working directory and reads back the PNG.

    Args:
        svg_markup: Complete SVG document text
        width: Output width in pixels
        height: Output height in pixels
        max_png_size: Maximum allowed PNG size in bytes (default: 10MB)

    Returns:
        PNG image bytes

    Raises:
        RasterizationError: If the subprocess fails or times out
        RasterTooLargeError: If the PNG exceeds max_png_size
        RasterMissingError: If the PNG was not produced
        FileNotFoundError: If the helper script is missing
    """
    helper_script = Path(__file__).parent.parent / '_rasterize_svg.py'
    if not helper_script.exists():
        raise FileNotFoundError(f"Helper script not found: {helper_script}")

    with tempfile.TemporaryDirectory(prefix='markviz-') as scratch:
        scratch_dir = Path(scratch)
        (scratch_dir / 'input.svg').write_text(svg_markup, encoding='utf-8')

        cmd = [
            sys.executable,
            str(helper_script),
            'input.svg',
            'output.png',
            str(width),
            str(height),
        ]

        logger.debug(f"Executing rasterization: {cmd}")
        try:
            proc = subprocess.run(
                cmd,
                cwd=scratch,
                capture_output=True,
                text=True,
                timeout=RASTERIZE_TIMEOUT_SECONDS
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"Rasterization timed out after {RASTERIZE_TIMEOUT_SECONDS} seconds")
            raise RasterizationError("SVG rasterization timed out") from e
        except OSError as e:
            logger.error(f"Rasterization subprocess error: {e}")
            raise RasterizationError(f"Failed to execute SVG rasterization: {e}") from e

        if proc.returncode != 0:
            error_msg = proc.stderr.strip() if proc.stderr else proc.stdout.strip()
            logger.error(f"Rasterization failed with code {proc.returncode}: {error_msg}")
            raise RasterizationError(f"SVG rasterization failed: {error_msg}")

        png_path = scratch_dir / 'output.png'
        if not png_path.exists():
            logger.error(f"Rendered PNG not found: {png_path}")
            raise RasterMissingError(f"Rendered PNG not found at: {png_path}")

        png_size = png_path.stat().st_size
        if png_size > max_png_size:
            logger.warning(f"PNG size {png_size} bytes exceeds limit {max_png_size} bytes")
            raise RasterTooLargeError(
                f"PNG too large: {png_size} bytes (max: {max_png_size})"
            )

        logger.info(f"SVG rasterized successfully ({png_size} bytes)")
        return png_path.read_bytes()
