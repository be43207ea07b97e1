"""
Display-side helpers: live scale tracking and matplotlib plots.
"""
from dataclasses import dataclass
from typing import List, Optional, Dict, Sequence, Tuple, Union
import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection
from matplotlib.figure import Figure
from pathlib import Path
import logging

from .core.peak_analysis import Peak
from .core.preprocessing import display_smooth
from .core.sensor_config import WAVELENGTH_MIN, WAVELENGTH_MAX

logger = logging.getLogger(__name__)


@dataclass
class DisplayScaleTracker:
    """Rolling maximum used to normalize live spectra between frames.

    A frame whose maximum exceeds the tracked value replaces it immediately;
    otherwise the tracked value decays toward the frame maximum as
    ``decay * max_seen + (1 - decay) * frame_max``.
    """
    max_seen: float = 0.0
    decay: float = 0.9
    min_frame_max: float = 0.01

    def __post_init__(self):
        if not 0.0 <= self.decay <= 1.0:
            raise ValueError(f"Display decay must be in [0, 1], got {self.decay}")
        if not self.min_frame_max > 0:
            raise ValueError(f"min_frame_max must be > 0, got {self.min_frame_max}")

    def update(self, profile) -> float:
        values = np.asarray(profile, dtype=float)
        finite = values[np.isfinite(values)]
        frame_max = max(float(finite.max()) if finite.size else 0.0, self.min_frame_max)
        if frame_max > self.max_seen:
            self.max_seen = frame_max
        else:
            self.max_seen = self.decay * self.max_seen + (1.0 - self.decay) * frame_max
        return self.max_seen

    def normalize(self, profile) -> np.ndarray:
        """Update with ``profile`` and return it divided by the tracked maximum."""
        scale = self.update(profile)
        values = np.asarray(profile, dtype=float)
        return np.where(np.isfinite(values), values / scale, 0.0)

    def reset(self) -> None:
        self.max_seen = 0.0


def display_scale_max(profile, floor: float = 0.1) -> float:
    """Upper y limit for a live plot.

    Data that already looks normalized (over 90% of values <= 1) is shown on a
    fixed 0-1 scale; anything else is scaled to its 95th percentile.
    """
    values = display_smooth(profile) if len(profile) else np.asarray([], dtype=float)
    values = values[np.isfinite(values)]
    if values.size == 0:
        return floor
    if np.count_nonzero(values <= 1.0) > values.size * 0.9:
        return 1.0
    ordered = np.sort(values)
    p95 = ordered[min(int(np.floor(ordered.size * 0.95)), ordered.size - 1)]
    return max(float(p95), floor)


def wavelength_to_rgb(wavelength: float) -> Tuple[float, float, float]:
    """Approximate display colour (0-1 RGB) of a visible wavelength."""
    wl = float(wavelength)
    r = g = b = 0.0
    if 380 <= wl < 440:
        r = -(wl - 440) / (440 - 380)
        b = 1.0
    elif 440 <= wl < 490:
        g = (wl - 440) / (490 - 440)
        b = 1.0
    elif 490 <= wl < 510:
        g = 1.0
        b = -(wl - 510) / (510 - 490)
    elif 510 <= wl < 580:
        r = (wl - 510) / (580 - 510)
        g = 1.0
    elif 580 <= wl < 645:
        r = 1.0
        g = -(wl - 645) / (645 - 580)
    elif 645 <= wl <= 750:
        r = 1.0

    # intensity falls off toward the limits of vision
    if wl < 420:
        factor = 0.3 + 0.7 * (wl - 380) / (420 - 380)
    elif wl > 700:
        factor = 0.3 + 0.7 * (750 - wl) / (750 - 700)
    else:
        factor = 1.0
    factor = max(factor, 0.0)
    return r * factor, g * factor, b * factor


def _save(fig: Figure, save_path: Optional[Union[str, Path]]) -> None:
    if save_path:
        save_path = Path(save_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Figure saved to {save_path}")


def plot_spectrum(wavelengths: np.ndarray,
                  spectrum: np.ndarray,
                  peaks: Optional[List[Peak]] = None,
                  title: str = 'Spectrum',
                  xlabel: str = 'Wavelength (nm)',
                  ylabel: str = 'Intensity',
                  scale_max: Optional[float] = None,
                  save_path: Optional[Union[str, Path]] = None) -> Figure:
    """
    Plot a spectrum as a line coloured by wavelength.

    Args:
        wavelengths: Wavelength of each bin
        spectrum: Intensity of each bin
        peaks: Optional peaks to mark
        title: Plot title
        scale_max: Upper y limit; defaults to ``display_scale_max(spectrum)``
        save_path: If provided, save the figure to this path

    Returns:
        Matplotlib Figure object
    """
    x = np.asarray(wavelengths, dtype=float)
    y = display_smooth(spectrum)
    top = scale_max if scale_max is not None else display_scale_max(spectrum)

    fig, ax = plt.subplots(figsize=(10, 4))
    ax.set_facecolor('#1a1a1a')
    if x.size > 1:
        points = np.column_stack([x, np.clip(y, 0.0, top)]).reshape(-1, 1, 2)
        segments = np.concatenate([points[:-1], points[1:]], axis=1)
        colors = [wavelength_to_rgb(wl) for wl in (x[:-1] + x[1:]) / 2]
        ax.add_collection(LineCollection(segments, colors=colors, linewidths=2))

    for peak in peaks or []:
        ax.plot(peak.wavelength, min(peak.value, top), 'o', color='#ff7878')
        ax.annotate(f"{peak.wavelength}nm", (peak.wavelength, min(peak.value, top)),
                    textcoords='offset points', xytext=(0, 6), ha='center', color='white')

    ax.set_xlim(WAVELENGTH_MIN, WAVELENGTH_MAX)
    ax.set_ylim(0.0, top * 1.05)
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.grid(True, alpha=0.3)

    _save(fig, save_path)
    return fig


def plot_spectra(spectra: Dict[str, Tuple[Sequence[float], Sequence[float]]],
                 title: str = "Spectra",
                 xlabel: str = "Wavelength (nm)",
                 ylabel: str = "Intensity",
                 save_path: Optional[Union[str, Path]] = None) -> Figure:
    """
    Plot several labelled (wavelengths, intensities) pairs on one figure.
    """
    fig, ax = plt.subplots(figsize=(10, 6))

    for label, (x, y) in spectra.items():
        ax.plot(np.asarray(x), np.asarray(y), label=label)

    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.legend()
    ax.grid(True, alpha=0.3)

    _save(fig, save_path)
    return fig


def plot_absorbance(wavelengths: np.ndarray,
                    absorbance: np.ndarray,
                    peaks: Optional[List[Peak]] = None,
                    title: str = 'Absorbance',
                    save_path: Optional[Union[str, Path]] = None) -> Figure:
    """
    Plot absorbance on a fixed 0-1 scale and label peaks with A and wavelength.
    """
    x = np.asarray(wavelengths, dtype=float)
    y = np.clip(np.abs(np.asarray(absorbance, dtype=float)), 0.0, 1.0)

    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(x, y, color=(1.0, 0.31, 0.31, 0.8), linewidth=2)

    for peak in peaks or []:
        ax.plot(peak.wavelength, peak.value, 'o', color=(1.0, 0.47, 0.47, 0.9),
                markeredgecolor='white')
        ax.annotate(f"A={peak.value:.2f}\n{peak.wavelength}nm", (peak.wavelength, peak.value),
                    textcoords='offset points', xytext=(0, 8), ha='center', fontsize=9)

    ax.set_xlim(WAVELENGTH_MIN, WAVELENGTH_MAX)
    ax.set_ylim(0.0, 1.0)
    ax.set_yticks(np.arange(0.0, 1.01, 0.2))
    ax.set_xlabel('Wavelength (nm)')
    ax.set_ylabel('Absorbance (A)')
    ax.set_title(title)
    ax.grid(True, axis='y', linestyle=':', alpha=0.5)

    _save(fig, save_path)
    return fig
