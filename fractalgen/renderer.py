"""Escape-time primitives for the quadratic Mandelbrot map."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
import tensorflow as tf

HORIZON_SQ = 4.0
STRIP_ROWS = 256
_LN2 = math.log(2.0)


@dataclass(frozen=True)
class FractalParams:
    """Parameters for one synthesis attempt.

    The field defaults are the reference view used when no parameters are
    supplied.
    """

    x_pos: float = -0.00275
    y_pos: float = 0.78912
    escape_radius: float = 0.125689
    max_iterations: int = 800
    smoothness: int = 8
    color_step: float = 6000.0

    def __post_init__(self) -> None:
        if not self.escape_radius > 0:
            raise ValueError(f"escape_radius must be positive, got {self.escape_radius}")
        if int(self.max_iterations) <= 0:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        if not self.color_step > 0:
            raise ValueError(f"color_step must be positive, got {self.color_step}")


@dataclass(frozen=True)
class ViewWindow:
    """Rectangle of the complex plane mapped onto the pixel grid."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float

    def __post_init__(self) -> None:
        if not (self.x_max > self.x_min and self.y_max > self.y_min):
            raise ValueError(f"degenerate view window: {self}")

    @classmethod
    def from_params(cls, params: FractalParams, width: int, height: int) -> "ViewWindow":
        view_width = 4.0 * params.escape_radius
        view_height = view_width * (height / width)
        return cls(
            x_min=params.x_pos - view_width / 2.0,
            x_max=params.x_pos + view_width / 2.0,
            y_min=params.y_pos - view_height / 2.0,
            y_max=params.y_pos + view_height / 2.0,
        )

    def sample_axes(self, width: int, height: int) -> tuple[np.ndarray, np.ndarray]:
        """Return the real and imaginary coordinates of each column and row."""

        xs = self.x_min + (np.arange(width, dtype=np.float64) / width) * (self.x_max - self.x_min)
        ys = self.y_min + (np.arange(height, dtype=np.float64) / height) * (self.y_max - self.y_min)
        return xs, ys


@dataclass(frozen=True)
class RenderResult:
    """Container for the numerical results of an escape-time render."""

    iterations: np.ndarray
    magnitude_sq: np.ndarray
    smooth: np.ndarray
    intensity: np.ndarray
    inside: np.ndarray


def evaluate(c_real: float, c_imag: float, max_iterations: int) -> tuple[int, float]:
    """Iterate ``z <- z**2 + c`` from zero until escape or ``max_iterations``."""

    z_real = 0.0
    z_imag = 0.0
    iterations = 0
    magnitude_sq = 0.0
    while magnitude_sq < HORIZON_SQ and iterations < max_iterations:
        next_real = z_real * z_real - z_imag * z_imag + c_real
        z_imag = 2.0 * z_real * z_imag + c_imag
        z_real = next_real
        magnitude_sq = z_real * z_real + z_imag * z_imag
        iterations += 1
    return iterations, magnitude_sq


def smooth_escape(iterations: int, magnitude_sq: float) -> float:
    """Continuous escape estimate for a point that left the horizon."""

    if magnitude_sq <= 0.0:
        return float(iterations)
    log_zn = math.log(magnitude_sq) / 2.0
    if log_zn <= 0.0:
        return float(iterations)
    nu = math.log(log_zn / _LN2) / _LN2
    return iterations + 1.0 - nu


def escape_intensity(smoothed: float, color_step: float) -> int:
    color_val = (smoothed / color_step) * 255.0
    return int(min(max(color_val, 0.0), 255.0))


@tf.function(reduce_retracing=True)
def _escape_step(
    z_re: tf.Tensor,
    z_im: tf.Tensor,
    c_re: tf.Tensor,
    c_im: tf.Tensor,
    ns: tf.Tensor,
    mag_sq: tf.Tensor,
    active: tf.Tensor,
) -> tuple[tf.Tensor, ...]:
    """Advance every point that is still inside the horizon by one iteration."""

    next_re = z_re * z_re - z_im * z_im + c_re
    next_im = 2.0 * z_re * z_im + c_im
    z_re = tf.where(active, next_re, z_re)
    z_im = tf.where(active, next_im, z_im)
    mag_sq = tf.where(active, z_re * z_re + z_im * z_im, mag_sq)
    ns = ns + tf.cast(active, tf.int32)
    active = tf.logical_and(active, mag_sq < HORIZON_SQ)
    return z_re, z_im, ns, mag_sq, active


@tf.function(reduce_retracing=True)
def _escape_run(c_re: tf.Tensor, c_im: tf.Tensor, max_iterations: tf.Tensor) -> tuple[tf.Tensor, tf.Tensor]:
    """Iterate the whole grid with a TensorFlow while loop."""

    max_iterations = tf.cast(max_iterations, tf.int32)
    i = tf.constant(0, dtype=tf.int32)
    z_re = tf.zeros_like(c_re)
    z_im = tf.zeros_like(c_im)
    mag_sq = tf.zeros_like(c_re)
    ns = tf.zeros(tf.shape(c_re), tf.int32)
    active = tf.ones(tf.shape(c_re), tf.bool)

    def cond(i, z_re, z_im, ns, mag_sq, active):
        return tf.logical_and(tf.less(i, max_iterations), tf.reduce_any(active))

    def body(i, z_re, z_im, ns, mag_sq, active):
        z_re, z_im, ns, mag_sq, active = _escape_step(z_re, z_im, c_re, c_im, ns, mag_sq, active)
        return i + 1, z_re, z_im, ns, mag_sq, active

    _, _, _, ns, mag_sq, _ = tf.while_loop(cond, body, (i, z_re, z_im, ns, mag_sq, active))
    return ns, mag_sq


def _default_device() -> str:
    return "/GPU:0" if tf.config.list_physical_devices("GPU") else "/CPU:0"


def evaluate_grid(
    c_real: np.ndarray,
    c_imag: np.ndarray,
    max_iterations: int,
    *,
    color_step: float = 6000.0,
    device: Optional[str] = None,
) -> RenderResult:
    """Evaluate every sample of a plane grid; arrays must share one shape."""

    c_real = np.asarray(c_real, dtype=np.float64)
    c_imag = np.asarray(c_imag, dtype=np.float64)
    if c_real.shape != c_imag.shape:
        raise ValueError(f"coordinate shapes differ: {c_real.shape} vs {c_imag.shape}")

    with tf.device(device if device is not None else _default_device()):
        c_re = tf.convert_to_tensor(c_real, dtype=tf.float64)
        c_im = tf.convert_to_tensor(c_imag, dtype=tf.float64)
        ns, mag_sq = _escape_run(c_re, c_im, tf.constant(max_iterations, dtype=tf.int32))

        escaped = tf.less(ns, max_iterations)
        tiny = tf.constant(np.finfo(np.float64).tiny, dtype=tf.float64)
        log_zn = tf.math.log(tf.maximum(mag_sq, tiny)) / 2.0
        nu = tf.math.log(tf.maximum(log_zn / _LN2, tiny)) / _LN2
        ns_float = tf.cast(ns, tf.float64)
        smooth = tf.where(escaped, ns_float + 1.0 - nu, ns_float)
        intensity = tf.cast(tf.clip_by_value(smooth / color_step * 255.0, 0.0, 255.0), tf.uint8)

    iterations = ns.numpy()
    return RenderResult(
        iterations=iterations,
        magnitude_sq=mag_sq.numpy(),
        smooth=smooth.numpy(),
        intensity=intensity.numpy(),
        inside=iterations >= max_iterations,
    )


def _strips(params: FractalParams, width: int, height: int, strip_rows: int, device: Optional[str]):
    """Yield ``(row_slice, RenderResult)`` for consecutive horizontal bands of the frame."""

    if int(strip_rows) <= 0:
        raise ValueError(f"strip_rows must be positive, got {strip_rows}")
    window = ViewWindow.from_params(params, width, height)
    xs, ys = window.sample_axes(width, height)
    for top in range(0, height, strip_rows):
        rows = slice(top, min(top + strip_rows, height))
        grid_re, grid_im = np.meshgrid(xs, ys[rows])
        yield rows, evaluate_grid(
            grid_re,
            grid_im,
            int(params.max_iterations),
            color_step=float(params.color_step),
            device=device,
        )


def render_window(
    params: FractalParams,
    width: int,
    height: int,
    *,
    strip_rows: int = STRIP_ROWS,
    device: Optional[str] = None,
) -> tuple[RenderResult, ViewWindow]:
    """Evaluate the view window described by ``params`` at ``width`` x ``height``.

    The frame is evaluated ``strip_rows`` rows at a time so the TensorFlow
    working set stays bounded by the strip, not the frame.
    """

    iterations = np.empty((height, width), dtype=np.int32)
    magnitude_sq = np.empty((height, width), dtype=np.float64)
    smooth = np.empty((height, width), dtype=np.float64)
    intensity = np.empty((height, width), dtype=np.uint8)
    inside = np.empty((height, width), dtype=bool)
    for rows, strip in _strips(params, width, height, strip_rows, device):
        iterations[rows] = strip.iterations
        magnitude_sq[rows] = strip.magnitude_sq
        smooth[rows] = strip.smooth
        intensity[rows] = strip.intensity
        inside[rows] = strip.inside
    result = RenderResult(
        iterations=iterations,
        magnitude_sq=magnitude_sq,
        smooth=smooth,
        intensity=intensity,
        inside=inside,
    )
    return result, ViewWindow.from_params(params, width, height)


def render_mask(
    params: FractalParams,
    width: int,
    height: int,
    *,
    strip_rows: int = STRIP_ROWS,
    device: Optional[str] = None,
) -> np.ndarray:
    """Boolean ``(height, width)`` mask of bounded points, evaluated strip by strip."""

    inside = np.empty((height, width), dtype=bool)
    for rows, strip in _strips(params, width, height, strip_rows, device):
        inside[rows] = strip.inside
    return inside
