"""
Camera Spectrophotometer Analysis
---------------------------------
Turns pixel blocks cropped from a diffraction-grating camera image into
binned intensity spectra, absorbance profiles and annotated peaks.
"""

__version__ = "1.0.0"

# Import key components for easier access
from .core.pipeline import process_frame, analyze_pair
from .core.absorbance import compute_absorbance
from .core.peak_analysis import Peak, detect_peaks
from .core.wavelength import bin_to_wavelength
from .core.binning import PixelBlock
from .core.errors import DimensionMismatchError, SpectralAnalysisError
from .analyzer import SpectralAnalyzer

__all__ = [
    'process_frame',
    'analyze_pair',
    'compute_absorbance',
    'detect_peaks',
    'bin_to_wavelength',
    'Peak',
    'PixelBlock',
    'DimensionMismatchError',
    'SpectralAnalysisError',
    'SpectralAnalyzer',
]
