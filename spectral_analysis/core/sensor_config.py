"""Empirically tuned constants for the RGB camera spectrometer.

None of these values is physically derived. They were tuned against consumer
webcam sensors and every downstream absorbance value depends on them, so a
recalibration should change them here rather than in the algorithms.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

# Visible range covered by the dispersion axis (nm)
WAVELENGTH_MIN = 380.0
WAVELENGTH_MAX = 750.0

# Canonical number of spectrum bins
SPECTRUM_RESOLUTION = 100

# Texels whose r+g+b falls below this are discarded as noise (0-765 scale)
DARK_PIXEL_THRESHOLD = 30


@dataclass(frozen=True)
class NoiseSubtraction:
    """Per-channel multipliers applied to the blackout frame before subtraction."""
    red: float
    green: float    # > 1 compensates for green-channel oversensitivity
    blue: float


NOISE_SUBTRACTION = NoiseSubtraction(red=0.95, green=1.05, blue=0.95)


@dataclass(frozen=True)
class ChannelWeights:
    """Approximate inverse sensor-response weights for one wavelength region."""
    name: str
    lower: float    # inclusive lower bound (nm)
    upper: float    # exclusive upper bound (nm)
    blue: float
    green: float
    red: float


CHANNEL_WEIGHTS: Tuple[ChannelWeights, ...] = (
    ChannelWeights(name='blue', lower=float('-inf'), upper=490.0, blue=1.0, green=0.2, red=0.0),
    ChannelWeights(name='green', lower=490.0, upper=580.0, blue=0.2, green=0.7, red=0.2),
    ChannelWeights(name='red', lower=580.0, upper=float('inf'), blue=0.0, green=0.2, red=0.8),
)


@dataclass(frozen=True)
class RedRegionCorrection:
    """Absorbance attenuation around the over-sensitive red band."""
    center: float          # nm, where attenuation is strongest
    half_width: float      # nm, correction applies while |wl - center| < half_width
    max_reduction: float   # correction factor reaches 1 - max_reduction at center


RED_CORRECTION = RedRegionCorrection(center=650.0, half_width=50.0, max_reduction=0.7)

# Absorbance is clamped to [0, ABSORBANCE_MAX] for display
ABSORBANCE_MAX = 1.0

# Gaussian smoothing used by the primary pipeline
SMOOTHING_KERNEL_SIZE = 5
SMOOTHING_SIGMA = 1.0

# Extra smoothing applied before live display
DISPLAY_SMOOTHING_SIGMA = 1.5

# Peak detection parameters
PEAK_PARAMS: Dict[str, float] = {
    'window': 5,             # moving-average taps
    'threshold_blue': 0.05,  # < 490 nm
    'threshold_green': 0.05, # 490-580 nm
    'threshold_red': 0.05,   # >= 580 nm
    'proximity_px': 25,      # minimum separation in rendered x coordinates
    'plot_width': 800,       # rendered plot width (px)
    'margin_left': 40,
    'margin_right': 20,
}

# Blackout frame grading on the summed mean channel values
BLACKOUT_QUALITY_THRESHOLDS = {
    'good': 30,
    'medium': 75,
}


def get_channel_weights(wavelength: float) -> ChannelWeights:
    """Return the weight set for the region containing ``wavelength``."""
    for weights in CHANNEL_WEIGHTS:
        if weights.lower <= wavelength < weights.upper:
            return weights
    raise ValueError(f"No channel weights cover wavelength {wavelength}")


def peak_threshold_for(wavelength: float, params: Dict[str, float] = PEAK_PARAMS) -> float:
    """Peak threshold for the colour region containing ``wavelength``."""
    if wavelength < 490:
        return float(params['threshold_blue'])
    if wavelength < 580:
        return float(params['threshold_green'])
    return float(params['threshold_red'])
