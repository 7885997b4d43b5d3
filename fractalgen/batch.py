"""Concurrent generation of independent accepted images."""

from __future__ import annotations

import asyncio
import logging
import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np

from .config import SamplerConfig
from .padding import pad
from .sampler import AcceptanceResult, sample_until_accepted
from .synthesis import ImageArtifact

logger = logging.getLogger(__name__)


class BatchError(RuntimeError):
    """One or more units of a batch failed.

    ``failures`` maps unit index to the exception it raised.
    """

    def __init__(self, failures: dict[int, Exception], total: int) -> None:
        indices = ", ".join(str(i) for i in sorted(failures))
        super().__init__(f"{len(failures)} of {total} image generation tasks failed (indices: {indices})")
        self.failures = failures
        self.total = total

    @property
    def first(self) -> Exception:
        return self.failures[min(self.failures)]


@dataclass(frozen=True)
class GenerationOutcome:
    index: int
    acceptance: AcceptanceResult
    artifact: ImageArtifact
    noise_bytes: int


def preview_image(path: Path) -> None:
    """Open ``path`` in the platform's default image viewer."""

    logger.info("Attempting to preview image: %s", path)
    if sys.platform == "darwin":
        subprocess.Popen(["open", str(path)])
    elif sys.platform.startswith("linux"):
        subprocess.Popen(["xdg-open", str(path)])
    else:
        logger.warning("Preview is not supported on %s", sys.platform)


def generate_one(
    index: int,
    config: SamplerConfig,
    rng: np.random.Generator,
    *,
    preview: bool = False,
) -> GenerationOutcome:
    """Run one unit: sample until accepted, pad, optionally preview."""

    logger.info("Starting generation for image %d", index)
    acceptance = sample_until_accepted(index, config, rng)
    artifact, noise_bytes = pad(acceptance.artifact, rng, size_range=config.noise_bytes)
    logger.info(
        "Image %d accepted after %d attempts, fractal ratio: %.4f",
        index, acceptance.attempts, acceptance.fractal_ratio,
    )
    if preview:
        preview_image(artifact.path)
    logger.info("Finished generation for image %d", index)
    return GenerationOutcome(index=index, acceptance=acceptance, artifact=artifact, noise_bytes=noise_bytes)


async def run_batch_async(
    count: int,
    config: SamplerConfig,
    *,
    seed: Optional[int] = None,
    preview: bool = False,
) -> list[GenerationOutcome]:
    if count <= 0:
        return []

    streams = [np.random.default_rng(child) for child in np.random.SeedSequence(seed).spawn(count)]
    loop = asyncio.get_running_loop()

    with ThreadPoolExecutor(max_workers=count, thread_name_prefix="regen") as executor:
        tasks = [
            loop.run_in_executor(executor, _run_unit, index, config, streams[index], preview)
            for index in range(count)
        ]
        logger.info("Awaiting all image generation tasks...")
        results = await asyncio.gather(*tasks, return_exceptions=True)

    failures: dict[int, Exception] = {}
    outcomes: list[GenerationOutcome] = []
    for index, result in enumerate(results):
        if isinstance(result, Exception):
            failures[index] = result
        elif isinstance(result, BaseException):
            raise result
        else:
            outcomes.append(result)

    if failures:
        error = BatchError(failures, count)
        raise error from error.first
    logger.info("All image generation tasks completed.")
    return outcomes


def _run_unit(index: int, config: SamplerConfig, rng: np.random.Generator, preview: bool) -> GenerationOutcome:
    try:
        return generate_one(index, config, rng, preview=preview)
    except Exception as exc:
        logger.error("Image %d failed: %s", index, exc)
        raise


def run_batch(
    count: int,
    config: SamplerConfig,
    *,
    seed: Optional[int] = None,
    preview: bool = False,
) -> list[GenerationOutcome]:
    """Generate ``count`` images concurrently and wait for every unit.

    Raises ``BatchError`` once all units have finished if any of them failed.
    """

    logger.info("Generating %d images...", count)
    return asyncio.run(run_batch_async(count, config, seed=seed, preview=preview))
