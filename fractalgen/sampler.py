"""Retry-until-accepted sampling of fractal images by visual density."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import imageio.v3 as iio
import numpy as np

from .config import ParameterRanges, SamplerConfig
from .renderer import FractalParams
from .synthesis import ImageArtifact, generate_image

logger = logging.getLogger(__name__)


class AttemptLimitExceeded(RuntimeError):
    """Raised when the optional attempt ceiling is reached without acceptance."""

    def __init__(self, attempts: int, last_ratio: float, band: tuple[float, float]) -> None:
        super().__init__(
            f"no image accepted after {attempts} attempts "
            f"(last fractal ratio {last_ratio:.4f}, band {band[0]}-{band[1]})"
        )
        self.attempts = attempts
        self.last_ratio = last_ratio
        self.band = band


@dataclass(frozen=True)
class Attempt:
    """Dimensions and parameters drawn for one synthesis attempt."""

    width: int
    height: int
    params: FractalParams


@dataclass(frozen=True)
class AcceptanceResult:
    fractal_ratio: float
    attempts: int
    artifact: ImageArtifact
    accepted: Attempt


def draw_attempt(ranges: ParameterRanges, rng: np.random.Generator) -> Attempt:
    """Draw fresh dimensions and fractal parameters from ``ranges``."""

    width = int(rng.integers(ranges.width[0], ranges.width[1], endpoint=True))
    height = int(rng.integers(ranges.height[0], ranges.height[1], endpoint=True))
    params = FractalParams(
        x_pos=float(rng.uniform(*ranges.x_pos)),
        y_pos=float(rng.uniform(*ranges.y_pos)),
        escape_radius=float(rng.uniform(*ranges.escape_radius)),
        max_iterations=int(rng.integers(*ranges.max_iterations)),
        smoothness=int(rng.integers(*ranges.smoothness)),
        color_step=float(rng.uniform(*ranges.color_step)),
    )
    return Attempt(width=width, height=height, params=params)


def fractal_ratio(pixels: np.ndarray) -> float:
    """Fraction of pixels that are pure black."""

    pixels = np.asarray(pixels)
    if pixels.size == 0:
        return 0.0
    if pixels.ndim == 2:
        black = pixels == 0
    else:
        black = np.all(pixels[..., :3] == 0, axis=-1)
    return float(np.count_nonzero(black)) / float(black.size)


def measure_fractal_ratio(path: Path) -> float:
    """Decode the file at ``path`` and return its fractal ratio."""

    return fractal_ratio(iio.imread(Path(path)))


def in_band(ratio: float, band: tuple[float, float]) -> bool:
    low, high = band
    return low <= ratio <= high


def sample_until_accepted(index: int, config: SamplerConfig, rng: np.random.Generator) -> AcceptanceResult:
    """Regenerate ``config.filename_for(index)`` until its fractal ratio is inside the band.

    With ``config.max_attempts`` unset the loop only ends on acceptance.
    I/O and decode errors are not retried.
    """

    filename = config.filename_for(index)
    band = config.acceptance_band
    attempts = 0
    ratio = float("nan")

    while True:
        if config.max_attempts is not None and attempts >= config.max_attempts:
            raise AttemptLimitExceeded(attempts, ratio, band)

        attempt = draw_attempt(config.ranges, rng)
        logger.info(
            "Params for image %d: width=%d, height=%d, %s",
            index, attempt.width, attempt.height, attempt.params,
        )
        artifact = generate_image(
            attempt.width,
            attempt.height,
            config.pattern,
            filename,
            attempt.params,
            output_dir=config.output_dir,
            rng=rng,
        )
        ratio = measure_fractal_ratio(artifact.path)
        attempts += 1
        logger.info("Image %d: attempt %d, fractal_ratio=%.4f", index, attempts, ratio)

        if in_band(ratio, band):
            return AcceptanceResult(fractal_ratio=ratio, attempts=attempts, artifact=artifact, accepted=attempt)

        logger.info("Fractal ratio out of range (%.4f). Regenerating image %d...", ratio, index)
