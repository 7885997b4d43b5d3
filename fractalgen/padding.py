"""Append random trailing bytes to encoded images.

PNG decoders stop at the ``IEND`` chunk, so the extra bytes grow the file
without changing the decoded pixels.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace

import numpy as np

from .synthesis import ImageArtifact

logger = logging.getLogger(__name__)

NOISE_BYTES = (1_000_000, 3_000_000)

_KB = 1024
_MB = _KB * 1024
_GB = _MB * 1024


def human_readable_size(num_bytes: int) -> str:
    if num_bytes >= _GB:
        return f"{num_bytes / _GB:.2f} GB"
    if num_bytes >= _MB:
        return f"{num_bytes / _MB:.2f} MB"
    if num_bytes >= _KB:
        return f"{num_bytes / _KB:.2f} KB"
    return f"{num_bytes} bytes"


def pad(
    artifact: ImageArtifact,
    rng: np.random.Generator,
    *,
    size_range: tuple[int, int] = NOISE_BYTES,
) -> tuple[ImageArtifact, int]:
    """Append a random-length block of random bytes to ``artifact``.

    Returns the grown artifact and the number of bytes appended.
    """

    noise_bytes = int(rng.integers(size_range[0], size_range[1], endpoint=True))
    noise = rng.bytes(noise_bytes)

    with open(artifact.path, "r+b") as fh:
        original_size = os.fstat(fh.fileno()).st_size
        fh.seek(0, os.SEEK_END)
        fh.write(noise)

    padded = replace(artifact, size=original_size + noise_bytes)
    logger.info(
        "Appended %d bytes of noise to %s (original size: %s, new size: %s)",
        noise_bytes,
        artifact.path,
        human_readable_size(original_size),
        human_readable_size(padded.size),
    )
    return padded, noise_bytes
