"""Two-tone fractal synthesis and PNG persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np
import PIL.Image

from .renderer import FractalParams, ViewWindow, render_mask

logger = logging.getLogger(__name__)

BLACK = (0, 0, 0)
WHITE = (255, 255, 255)


@dataclass(frozen=True)
class ImageArtifact:
    """A persisted raster file and its size in bytes."""

    path: Path
    size: int

    @classmethod
    def from_path(cls, path: Path) -> "ImageArtifact":
        path = Path(path)
        return cls(path=path, size=path.stat().st_size)


def _check_dimensions(width: int, height: int) -> None:
    if int(width) <= 0 or int(height) <= 0:
        raise ValueError(f"image dimensions must be positive, got {width}x{height}")


def synthesize(
    width: int,
    height: int,
    params: Optional[FractalParams] = None,
    *,
    pattern: Optional[str] = "mandelbrot",
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Build a ``(height, width, 3)`` uint8 pixel grid.

    ``"mandelbrot"`` paints bounded points black and escaped points white.
    Any other pattern falls back to uniform random noise drawn from ``rng``.
    """

    _check_dimensions(width, height)
    pixels = np.full((height, width, 3), 255, dtype=np.uint8)

    if pattern == "mandelbrot":
        params = params if params is not None else FractalParams()
        logger.debug("Generating Mandelbrot pattern with params: %s", params)
        logger.debug("View window: %s", ViewWindow.from_params(params, width, height))
        pixels[render_mask(params, width, height)] = BLACK
    else:
        logger.warning("Unrecognized pattern type: %s. Defaulting to random noise.", pattern)
        rng = rng if rng is not None else np.random.default_rng()
        pixels[...] = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)

    return pixels


def save_image(pixels: np.ndarray, filename: str, output_dir: Path) -> ImageArtifact:
    """Write ``pixels`` as a PNG at ``output_dir / filename``, replacing any previous file."""

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    PIL.Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)).save(str(path), format="PNG")
    artifact = ImageArtifact.from_path(path)
    logger.info("Image saved to %s", path)
    return artifact


def generate_image(
    width: int,
    height: int,
    pattern: Optional[str],
    filename: str,
    params: Optional[FractalParams] = None,
    *,
    output_dir: Path,
    rng: Optional[np.random.Generator] = None,
) -> ImageArtifact:
    logger.info(
        "Generating image: pattern=%s, filename=%s, width=%d, height=%d",
        pattern, filename, width, height,
    )
    pixels = synthesize(width, height, params, pattern=pattern, rng=rng)
    return save_image(pixels, filename, output_dir)
