"""Smoothing utilities for binned spectra."""

import logging
import math

import numpy as np
from scipy.ndimage import convolve1d

from .sensor_config import (
    SMOOTHING_KERNEL_SIZE,
    SMOOTHING_SIGMA,
    DISPLAY_SMOOTHING_SIGMA,
)

logger = logging.getLogger(__name__)


def gaussian_kernel(size: int, sigma: float) -> np.ndarray:
    """Build a normalized Gaussian kernel.

    Args:
        size: Number of taps; must be odd and positive
        sigma: Standard deviation in taps; must be finite and > 0

    Returns:
        ``size`` weights centred on ``size // 2`` that sum to 1.0

    Raises:
        ValueError: if ``size`` is even or < 1, or ``sigma`` is not a positive number
    """
    if size < 1 or size % 2 == 0:
        raise ValueError(f"Kernel size must be a positive odd integer, got {size}")
    if not np.isfinite(sigma) or sigma <= 0:
        raise ValueError(f"Kernel sigma must be > 0, got {sigma}")

    x = np.arange(size, dtype=float) - size // 2
    kernel = np.exp(-(x * x) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


def kernel_size_for_sigma(sigma: float) -> int:
    """Odd kernel size covering +/- 3 sigma."""
    return math.ceil(sigma * 3) * 2 + 1


def sanitize_profile(profile) -> np.ndarray:
    """Return a float copy with NaN, infinite and negative entries set to 0."""
    values = np.array(profile, dtype=float, copy=True).ravel()
    bad = ~np.isfinite(values)
    if np.any(bad):
        logger.warning(f"Replacing {int(bad.sum())} non-finite spectrum values with 0")
        values[bad] = 0.0
    values[values < 0] = 0.0
    return values


def _truncated_convolve(values: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    # Taps outside the array are dropped and the rest renormalized, so the
    # ends are weighted averages of the neighbours that exist.
    weighted = convolve1d(values, kernel, mode='constant', cval=0.0)
    support = convolve1d(np.ones_like(values), kernel, mode='constant', cval=0.0)
    out = np.zeros_like(values)
    np.divide(weighted, support, out=out, where=support > 0)
    return out


def smooth_spectrum(profile,
                    kernel_size: int = SMOOTHING_KERNEL_SIZE,
                    sigma: float = SMOOTHING_SIGMA) -> np.ndarray:
    """Gaussian-smooth a profile with edge truncation.

    Args:
        profile: 1-D intensity array
        kernel_size: Odd number of kernel taps
        sigma: Gaussian standard deviation in bins

    Returns:
        New smoothed array of the same length
    """
    values = sanitize_profile(profile)
    if values.size == 0:
        return values
    return _truncated_convolve(values, gaussian_kernel(kernel_size, sigma))


def display_smooth(profile, sigma: float = DISPLAY_SMOOTHING_SIGMA) -> np.ndarray:
    """Extra smoothing for display, kernel size derived from ``sigma``."""
    return smooth_spectrum(profile, kernel_size=kernel_size_for_sigma(sigma), sigma=sigma)


def moving_average(profile, window: int = 5) -> np.ndarray:
    """Centred moving average; windows are truncated at the ends."""
    if window < 1 or window % 2 == 0:
        raise ValueError(f"Moving-average window must be a positive odd integer, got {window}")
    values = np.asarray(profile, dtype=float)
    if values.size == 0:
        return values.copy()
    return _truncated_convolve(values, np.ones(window, dtype=float))
