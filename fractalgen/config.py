"""Configuration records for generation and upload."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_OUTPUT_DIR = Path("data/images")
DEFAULT_LEDGER_PATH = Path("data/urls.csv")

ACCEPTANCE_BAND = (0.3, 0.7)
NARROW_ACCEPTANCE_BAND = (0.4, 0.6)


def _check_range(name: str, bounds: tuple, *, inclusive: bool) -> None:
    low, high = bounds
    if inclusive and low > high:
        raise ValueError(f"{name} range is empty: {bounds}")
    if not inclusive and not low < high:
        raise ValueError(f"{name} range is empty: {bounds}")


@dataclass(frozen=True)
class ParameterRanges:
    """Sampling ranges for one attempt.

    Pixel dimensions are inclusive on both ends; every other range is
    half-open ``[low, high)``.
    """

    width: tuple[int, int] = (3000, 5000)
    height: tuple[int, int] = (2000, 3500)
    x_pos: tuple[float, float] = (-0.5, 0.5)
    y_pos: tuple[float, float] = (0.6, 0.9)
    escape_radius: tuple[float, float] = (0.01, 0.2)
    max_iterations: tuple[int, int] = (400, 1200)
    smoothness: tuple[int, int] = (1, 20)
    color_step: tuple[float, float] = (1000.0, 10000.0)

    def __post_init__(self) -> None:
        _check_range("width", self.width, inclusive=True)
        _check_range("height", self.height, inclusive=True)
        if self.width[0] <= 0 or self.height[0] <= 0:
            raise ValueError("pixel dimensions must be positive")
        for name in ("x_pos", "y_pos", "escape_radius", "max_iterations", "smoothness", "color_step"):
            _check_range(name, getattr(self, name), inclusive=False)
        if self.escape_radius[0] <= 0 or self.color_step[0] <= 0 or self.max_iterations[0] <= 0:
            raise ValueError("escape_radius, color_step and max_iterations must be positive")


@dataclass(frozen=True)
class SamplerConfig:
    """Settings shared by every unit of a generation batch."""

    ranges: ParameterRanges = field(default_factory=ParameterRanges)
    acceptance_band: tuple[float, float] = ACCEPTANCE_BAND
    max_attempts: Optional[int] = None
    output_dir: Path = DEFAULT_OUTPUT_DIR
    pattern: str = "mandelbrot"
    noise_bytes: tuple[int, int] = (1_000_000, 3_000_000)

    def __post_init__(self) -> None:
        low, high = self.acceptance_band
        if not 0.0 <= low <= high <= 1.0:
            raise ValueError(f"acceptance band must satisfy 0 <= lo <= hi <= 1, got {self.acceptance_band}")
        if self.max_attempts is not None and self.max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive or None, got {self.max_attempts}")
        _check_range("noise_bytes", self.noise_bytes, inclusive=True)
        if self.noise_bytes[0] < 0:
            raise ValueError("noise_bytes must be non-negative")
        object.__setattr__(self, "output_dir", Path(self.output_dir))

    def filename_for(self, index: int) -> str:
        return f"mandelbrot_{index}.png"


@dataclass(frozen=True)
class UploadConfig:
    """Target bucket and manifest location for ``regen upload``."""

    bucket: str = "benchmarkap"
    region: str = "lon1"
    prefix: str = "fractals/"
    source_dir: Path = DEFAULT_OUTPUT_DIR
    ledger_path: Path = DEFAULT_LEDGER_PATH
    acl: str = "public-read"

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_dir", Path(self.source_dir))
        object.__setattr__(self, "ledger_path", Path(self.ledger_path))

    @property
    def endpoint_url(self) -> str:
        return f"https://{self.region}.digitaloceanspaces.com"

    def origin_url(self, file_name: str) -> str:
        return f"https://{self.bucket}.{self.region}.digitaloceanspaces.com/{self.prefix}{file_name}"

    def cdn_url(self, file_name: str) -> str:
        return f"https://{self.bucket}.{self.region}.cdn.digitaloceanspaces.com/{self.prefix}{file_name}"
