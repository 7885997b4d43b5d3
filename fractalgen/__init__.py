"""Public API for fractal image generation and upload."""

from .batch import BatchError, GenerationOutcome, generate_one, preview_image, run_batch
from .config import (
    ACCEPTANCE_BAND,
    NARROW_ACCEPTANCE_BAND,
    ParameterRanges,
    SamplerConfig,
    UploadConfig,
)
from .padding import human_readable_size, pad
from .renderer import (
    FractalParams,
    RenderResult,
    ViewWindow,
    escape_intensity,
    evaluate,
    evaluate_grid,
    render_mask,
    render_window,
    smooth_escape,
)
from .sampler import (
    AcceptanceResult,
    AttemptLimitExceeded,
    draw_attempt,
    fractal_ratio,
    measure_fractal_ratio,
    sample_until_accepted,
)
from .synthesis import ImageArtifact, generate_image, save_image, synthesize

__all__ = [
    "ACCEPTANCE_BAND",
    "AcceptanceResult",
    "AttemptLimitExceeded",
    "BatchError",
    "FractalParams",
    "GenerationOutcome",
    "ImageArtifact",
    "NARROW_ACCEPTANCE_BAND",
    "ParameterRanges",
    "RenderResult",
    "SamplerConfig",
    "UploadConfig",
    "ViewWindow",
    "draw_attempt",
    "escape_intensity",
    "evaluate",
    "evaluate_grid",
    "fractal_ratio",
    "generate_image",
    "generate_one",
    "human_readable_size",
    "measure_fractal_ratio",
    "pad",
    "preview_image",
    "render_mask",
    "render_window",
    "run_batch",
    "sample_until_accepted",
    "save_image",
    "smooth_escape",
    "synthesize",
]
