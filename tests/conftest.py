import numpy as np
import pytest

from fractalgen.config import ParameterRanges, SamplerConfig


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def small_ranges():
    # Straddles the cusp of the main cardioid at c = 0.25 so roughly half of
    # every tiny render is bounded.
    return ParameterRanges(
        width=(24, 32),
        height=(16, 24),
        x_pos=(0.2, 0.3),
        y_pos=(-0.05, 0.05),
        escape_radius=(0.1, 0.2),
        max_iterations=(20, 40),
        smoothness=(1, 20),
        color_step=(1000.0, 10000.0),
    )


@pytest.fixture
def small_config(tmp_path, small_ranges):
    return SamplerConfig(
        ranges=small_ranges,
        acceptance_band=(0.1, 0.9),
        max_attempts=25,
        output_dir=tmp_path / "images",
        noise_bytes=(10, 100),
    )


@pytest.fixture
def blocked_dir(tmp_path):
    """An output directory that cannot be created because its parent is a file."""

    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"not a directory")
    return blocker / "images"
