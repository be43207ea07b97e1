"""Peak detection for annotated absorbance and intensity plots."""

import numpy as np
from typing import Dict, List, Optional
from dataclasses import dataclass

from .preprocessing import moving_average
from .sensor_config import PEAK_PARAMS, peak_threshold_for
from .wavelength import bin_to_wavelength


@dataclass
class Peak:
    """A locally dominant maximum of a profile."""
    wavelength: int     # nm
    value: float        # moving-average value at the peak, profile scale
    index: int          # bin index
    x: float            # rendered x coordinate (px)


def plot_x_positions(n: int,
                     plot_width: float = PEAK_PARAMS['plot_width'],
                     margin_left: float = PEAK_PARAMS['margin_left'],
                     margin_right: float = PEAK_PARAMS['margin_right']) -> np.ndarray:
    """Rendered x coordinate of every bin for a plot of the given geometry."""
    x_scale = (plot_width - margin_left - margin_right) / max(1, n - 1)
    return margin_left + np.arange(n) * x_scale


def detect_peaks(profile,
                 params: Optional[Dict[str, float]] = None) -> List[Peak]:
    """Find well-separated local maxima in a smoothed profile.

    Values are clamped to ``min(1, |v|)`` and averaged with a centred moving
    window. Index ``i`` is a candidate when its averaged value is strictly
    greater than the two neighbours on each side and than the threshold of its
    colour region. Candidates are accepted left to right and a candidate within
    ``proximity_px`` rendered pixels of an already accepted peak is dropped,
    even if it is higher.

    Args:
        profile: Smoothed 1-D profile (typically absorbance)
        params: Overrides for ``PEAK_PARAMS``

    Returns:
        Accepted peaks in index order
    """
    cfg = dict(PEAK_PARAMS)
    if params:
        cfg.update(params)

    values = np.asarray(profile, dtype=float).ravel()
    n = values.size
    if n < 5:
        return []

    values = np.where(np.isfinite(values), np.minimum(1.0, np.abs(values)), 0.0)
    averaged = moving_average(values, window=int(cfg['window']))
    xs = plot_x_positions(n, cfg['plot_width'], cfg['margin_left'], cfg['margin_right'])
    proximity = float(cfg['proximity_px'])

    peaks: List[Peak] = []
    for i in range(2, n - 2):
        curr = averaged[i]
        if not (curr > averaged[i - 1] and curr > averaged[i - 2]
                and curr > averaged[i + 1] and curr > averaged[i + 2]):
            continue
        wavelength = bin_to_wavelength(i, n)
        if not curr > peak_threshold_for(wavelength, cfg):
            continue
        x = float(xs[i])
        if all(abs(p.x - x) > proximity for p in peaks):
            peaks.append(Peak(wavelength=wavelength, value=float(curr), index=i, x=x))

    return peaks
