"""Absorbance from a reference and a sample intensity profile."""

import logging

import numpy as np

from .errors import DimensionMismatchError
from .sensor_config import ABSORBANCE_MAX, RED_CORRECTION, RedRegionCorrection
from .wavelength import bin_edge_wavelength

logger = logging.getLogger(__name__)


def red_region_correction(wavelength, correction: RedRegionCorrection = RED_CORRECTION):
    """Attenuation factor for absorbance at ``wavelength`` (scalar or array).

    1.0 outside the band, falling linearly to ``1 - max_reduction`` at the
    band centre.
    """
    wl = np.asarray(wavelength, dtype=float)
    dist = np.abs(wl - correction.center)
    inside = dist < correction.half_width
    factor = np.where(
        inside,
        1.0 - correction.max_reduction * (1.0 - dist / correction.half_width),
        1.0,
    )
    return float(factor) if factor.ndim == 0 else factor


def compute_absorbance(reference, sample,
                       correction: RedRegionCorrection = RED_CORRECTION,
                       max_absorbance: float = ABSORBANCE_MAX) -> np.ndarray:
    """Compute a display-range absorbance profile.

    A = min(max_absorbance, |-log10(S/R) * c|) per bin, with ``c`` the red
    region correction. Bins where either intensity is not a positive finite
    number give 0.

    Args:
        reference: Reference intensity profile R
        sample: Sample intensity profile S

    Returns:
        New absorbance array in [0, max_absorbance]

    Raises:
        DimensionMismatchError: if the profiles differ in length
    """
    ref = np.asarray(reference, dtype=float).ravel()
    smp = np.asarray(sample, dtype=float).ravel()
    if ref.shape != smp.shape:
        raise DimensionMismatchError("Reference/sample profiles", ref.shape, smp.shape)

    n = ref.size
    absorbance = np.zeros(n, dtype=float)
    if n == 0:
        return absorbance

    valid = np.isfinite(ref) & np.isfinite(smp) & (ref > 0) & (smp > 0)
    degenerate = n - int(valid.sum())
    if degenerate:
        logger.debug(f"{degenerate} of {n} bins have no measurable absorbance")
    if not np.any(valid):
        return absorbance

    idx = np.nonzero(valid)[0]
    c = red_region_correction(bin_edge_wavelength(idx, max(n, 2)), correction)
    values = np.abs(-np.log10(smp[idx] / ref[idx]) * c)
    absorbance[idx] = np.minimum(max_absorbance, values)
    return absorbance
