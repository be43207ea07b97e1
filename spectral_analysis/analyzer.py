"""
Measurement session: blackout calibration, reference and sample capture.
"""
from typing import Dict, Optional
import numpy as np
import logging
from config.config_loader import load_config
from .core import pipeline
from .core.binning import PixelBlock
from .core.calibration import BlackoutQuality, assess_blackout
from .core.errors import DimensionMismatchError
from .core.pipeline import AnalysisResult
from .visualization import DisplayScaleTracker

logger = logging.getLogger(__name__)


class SpectralAnalyzer:
    """Holds the frames of one measurement session.

    The blackout frame is kept for the whole session and replaced wholesale
    by the next calibration. Reference and sample profiles are processed at
    capture time with whatever blackout frame is current.
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize the analyzer.

        Args:
            config: Configuration dictionary
        """
        self.config = config or load_config()
        display_cfg = self.config.get('display', {}) if isinstance(self.config, dict) else {}
        self.display_tracker = DisplayScaleTracker(
            decay=float(display_cfg.get('decay', 0.9)),
            min_frame_max=float(display_cfg.get('min_frame_max', 0.01)),
        )
        self.blackout: Optional[PixelBlock] = None
        self.blackout_quality: Optional[BlackoutQuality] = None
        self.reference: Optional[np.ndarray] = None
        self.sample: Optional[np.ndarray] = None

    def calibrate_blackout(self, frame: PixelBlock) -> BlackoutQuality:
        """
        Store a frame captured with the light blocked as the session's noise floor.

        Args:
            frame: Dark frame, same size as the frames it will calibrate

        Returns:
            Quality grade of the dark frame
        """
        quality = assess_blackout(frame)
        self.blackout = frame
        self.blackout_quality = quality
        self.display_tracker.reset()
        if quality.is_good:
            logger.info(f"Blackout calibration stored (noise R={quality.mean_red} "
                        f"G={quality.mean_green} B={quality.mean_blue})")
        else:
            logger.warning(f"Blackout calibration quality is {quality.grade} "
                           f"(summed noise {quality.total_noise}); cover the camera fully "
                           f"and calibrate again for better results")
        return quality

    def clear_blackout(self) -> None:
        self.blackout = None
        self.blackout_quality = None
        self.display_tracker.reset()

    def _process(self, frame: PixelBlock) -> np.ndarray:
        return pipeline.process_frame(frame, self.blackout, self.config)

    def capture_reference(self, frame: PixelBlock) -> np.ndarray:
        """Process and keep the reference (blank) frame."""
        self.reference = self._process(frame)
        return self.reference.copy()

    def capture_sample(self, frame: PixelBlock) -> np.ndarray:
        """Process and keep the sample frame."""
        self.sample = self._process(frame)
        return self.sample.copy()

    def live_spectrum(self, frame: PixelBlock) -> Optional[np.ndarray]:
        """
        Process a live frame and normalize it by the rolling display scale.

        Returns None when the frame does not match the blackout frame; the
        caller is expected to skip it.
        """
        try:
            profile = self._process(frame)
        except DimensionMismatchError as e:
            logger.warning(f"Skipping live frame: {e}")
            return None
        return self.display_tracker.normalize(profile)

    def analyze(self) -> AnalysisResult:
        """Absorbance and peaks from the captured reference and sample."""
        if self.reference is None or self.sample is None:
            raise RuntimeError("Capture both a reference and a sample before analyzing")
        return pipeline.analyze_profiles(self.reference, self.sample, self.config)

    def export_csv(self, path: str) -> str:
        return pipeline.save_spectral_csv(self.analyze(), path, self.config)
