"""Core signal-processing stages for camera spectra.

Modules:
- wavelength: bin <-> wavelength mapping
- binning: pixel blocks, spatial binning, channel combination
- preprocessing: Gaussian kernels and edge-truncated smoothing
- absorbance: absorbance with the red-region correction
- peak_analysis: region-aware peak detection
- calibration: blackout frame grading
- pipeline: frame processing, pair analysis, CSV export
"""

from .wavelength import (
    bin_to_wavelength,
    wavelength_to_bin,
    wavelength_axis,
    bin_edge_wavelength,
)
from .binning import (
    PixelBlock,
    ChannelBins,
    bin_pixel_block,
    combine_channels,
    column_intensity_profile,
)
from .preprocessing import (
    gaussian_kernel,
    kernel_size_for_sigma,
    smooth_spectrum,
    display_smooth,
    moving_average,
    sanitize_profile,
)
from .absorbance import compute_absorbance, red_region_correction
from .peak_analysis import Peak, detect_peaks
from .calibration import BlackoutQuality, assess_blackout
from .errors import DimensionMismatchError, SpectralAnalysisError
from .pipeline import (
    AnalysisResult,
    process_frame,
    analyze_profiles,
    analyze_pair,
    build_export_frame,
    save_spectral_csv,
    save_analysis_outputs,
)
