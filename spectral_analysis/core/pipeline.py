import os
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from config.config_loader import load_config
CONFIG = load_config()

from .absorbance import compute_absorbance
from .binning import PixelBlock, bin_pixel_block, combine_channels
from .peak_analysis import Peak, detect_peaks
from .preprocessing import sanitize_profile, smooth_spectrum
from .sensor_config import (
    DARK_PIXEL_THRESHOLD,
    PEAK_PARAMS,
    SMOOTHING_KERNEL_SIZE,
    SMOOTHING_SIGMA,
    SPECTRUM_RESOLUTION,
)
from .wavelength import wavelength_axis

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ['Wavelength (nm)', 'Reference Intensity', 'Sample Intensity', 'Absorbance']


def _timestamp() -> str:
    return datetime.now().strftime('%Y%m%d_%H%M%S')


def _write_json(path: Path, payload: Dict[str, object]):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2)


def _ensure_dir(path: str):
    os.makedirs(path, exist_ok=True)


def _section(name: str, config: Optional[Dict] = None) -> Dict[str, object]:
    cfg = CONFIG if config is None else config
    section = cfg.get(name, {}) if isinstance(cfg, dict) else {}
    return section or {}


def _resolution(config: Optional[Dict] = None) -> int:
    return int(_section('spectrum', config).get('resolution', SPECTRUM_RESOLUTION))


def peak_params(config: Optional[Dict] = None) -> Dict[str, float]:
    """Peak detection parameters with config overrides applied."""
    params = dict(PEAK_PARAMS)
    params.update({k: v for k, v in _section('peak_detection', config).items() if k in PEAK_PARAMS})
    return params


# ----------------------
# Frame processing
# ----------------------

def process_frame(block: PixelBlock,
                  calibration: Optional[PixelBlock] = None,
                  config: Optional[Dict] = None) -> np.ndarray:
    """Turn one captured pixel block into a smoothed intensity profile.

    Bins the block along its horizontal axis (after blackout subtraction when
    ``calibration`` is given), combines the channels with the region weights
    and applies Gaussian smoothing. Settings come from ``config`` when given,
    otherwise from the module-level ``CONFIG``.

    Raises:
        DimensionMismatchError: if ``calibration`` does not match ``block``
    """
    binning_cfg = _section('binning', config)
    smoothing_cfg = _section('smoothing', config)

    bins = bin_pixel_block(
        block,
        calibration,
        resolution=_resolution(config),
        dark_threshold=float(binning_cfg.get('dark_pixel_threshold', DARK_PIXEL_THRESHOLD)),
    )
    combined = sanitize_profile(combine_channels(bins))
    return smooth_spectrum(
        combined,
        kernel_size=int(smoothing_cfg.get('kernel_size', SMOOTHING_KERNEL_SIZE)),
        sigma=float(smoothing_cfg.get('sigma', SMOOTHING_SIGMA)),
    )


@dataclass
class AnalysisResult:
    """Reference, sample and absorbance profiles on a shared bin grid."""
    wavelengths: np.ndarray
    reference: np.ndarray
    sample: np.ndarray
    absorbance: np.ndarray
    peaks: List[Peak] = field(default_factory=list)

    def to_frame(self, config: Optional[Dict] = None) -> pd.DataFrame:
        return build_export_frame(self.wavelengths, self.reference, self.sample,
                                  self.absorbance, config)

    def summary(self) -> Dict[str, object]:
        return {
            'resolution': int(self.wavelengths.size),
            'max_absorbance': float(np.max(self.absorbance)) if self.absorbance.size else 0.0,
            'mean_absorbance': float(np.mean(self.absorbance)) if self.absorbance.size else 0.0,
            'peaks': [asdict(p) for p in self.peaks],
        }


def analyze_profiles(reference: np.ndarray,
                     sample: np.ndarray,
                     config: Optional[Dict] = None) -> AnalysisResult:
    """Absorbance and peaks for two already processed profiles."""
    absorbance = compute_absorbance(reference, sample)
    peaks = detect_peaks(absorbance, peak_params(config))
    return AnalysisResult(
        wavelengths=wavelength_axis(absorbance.size),
        reference=np.asarray(reference, dtype=float).copy(),
        sample=np.asarray(sample, dtype=float).copy(),
        absorbance=absorbance,
        peaks=peaks,
    )


def analyze_pair(reference_block: PixelBlock,
                 sample_block: PixelBlock,
                 calibration: Optional[PixelBlock] = None,
                 config: Optional[Dict] = None) -> AnalysisResult:
    """Process a reference and a sample frame and derive absorbance and peaks."""
    reference = process_frame(reference_block, calibration, config)
    sample = process_frame(sample_block, calibration, config)
    result = analyze_profiles(reference, sample, config)
    logger.info(f"Analyzed frame pair: {len(result.peaks)} peak(s), "
                f"max absorbance {result.summary()['max_absorbance']:.4f}")
    return result


# ----------------------
# Export
# ----------------------

def build_export_frame(wavelengths, reference, sample, absorbance,
                       config: Optional[Dict] = None) -> pd.DataFrame:
    """Four-column export table, rounded to the configured decimals."""
    export_cfg = _section('export', config)
    int_dec = int(export_cfg.get('intensity_decimals', 2))
    abs_dec = int(export_cfg.get('absorbance_decimals', 4))
    df = pd.DataFrame({
        EXPORT_COLUMNS[0]: np.asarray(wavelengths, dtype=int),
        EXPORT_COLUMNS[1]: np.round(np.asarray(reference, dtype=float), int_dec),
        EXPORT_COLUMNS[2]: np.round(np.asarray(sample, dtype=float), int_dec),
        EXPORT_COLUMNS[3]: np.round(np.asarray(absorbance, dtype=float), abs_dec),
    })
    return df


def save_spectral_csv(result: AnalysisResult, path: str, config: Optional[Dict] = None) -> str:
    """Write the export table with fixed decimals per column."""
    export_cfg = _section('export', config)
    int_dec = int(export_cfg.get('intensity_decimals', 2))
    abs_dec = int(export_cfg.get('absorbance_decimals', 4))
    df = result.to_frame(config)
    df[EXPORT_COLUMNS[1]] = df[EXPORT_COLUMNS[1]].map(lambda v: f"{v:.{int_dec}f}")
    df[EXPORT_COLUMNS[2]] = df[EXPORT_COLUMNS[2]].map(lambda v: f"{v:.{int_dec}f}")
    df[EXPORT_COLUMNS[3]] = df[EXPORT_COLUMNS[3]].map(lambda v: f"{v:.{abs_dec}f}")
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logger.info(f"Spectral data exported to {path}")
    return str(path)


def save_analysis_outputs(result: AnalysisResult,
                          out_root: str,
                          config: Optional[Dict] = None) -> Dict[str, str]:
    """Write CSV, peak summary and plots for one analysis under ``out_root``."""
    from ..visualization import plot_absorbance, plot_spectra

    _ensure_dir(out_root)
    filename = str(_section('export', config).get('filename', 'spectral_data.csv'))
    outputs: Dict[str, str] = {}
    outputs['csv'] = save_spectral_csv(result, os.path.join(out_root, filename), config)

    summary_path = Path(out_root) / 'metrics' / 'analysis_summary.json'
    payload = result.summary()
    payload['generated_at'] = _timestamp()
    _write_json(summary_path, payload)
    outputs['summary'] = str(summary_path)

    plots_dir = os.path.join(out_root, 'plots')
    spectra_fig = plot_spectra(
        {'Reference': (result.wavelengths, result.reference),
         'Sample': (result.wavelengths, result.sample)},
        title='Reference and sample spectra',
        save_path=os.path.join(plots_dir, 'spectra.png'),
    )
    outputs['spectra_plot'] = os.path.join(plots_dir, 'spectra.png')
    absorbance_fig = plot_absorbance(
        result.wavelengths, result.absorbance, result.peaks,
        save_path=os.path.join(plots_dir, 'absorbance.png'),
    )
    outputs['absorbance_plot'] = os.path.join(plots_dir, 'absorbance.png')

    plt.close(spectra_fig)
    plt.close(absorbance_fig)
    return outputs
