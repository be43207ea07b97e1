"""Blackout (dark-frame) calibration quality checks."""

from dataclasses import dataclass

import numpy as np

from .binning import PixelBlock
from .sensor_config import BLACKOUT_QUALITY_THRESHOLDS


@dataclass
class BlackoutQuality:
    """Mean channel levels of a blackout frame and the resulting grade."""
    mean_red: int
    mean_green: int
    mean_blue: int
    grade: str          # 'good', 'medium' or 'poor'

    @property
    def total_noise(self) -> int:
        return self.mean_red + self.mean_green + self.mean_blue

    @property
    def is_good(self) -> bool:
        return self.grade == 'good'


def assess_blackout(block: PixelBlock, thresholds=BLACKOUT_QUALITY_THRESHOLDS) -> BlackoutQuality:
    """Grade a blackout frame by its rounded mean R, G and B levels.

    A darker frame leaves less residual light to be mistaken for sensor noise.
    """
    if block.width == 0 or block.height == 0:
        raise ValueError("Blackout frame is empty")
    means = block.rgb().reshape(-1, 3).mean(axis=0)
    r, g, b = (int(np.floor(m + 0.5)) for m in means)
    total = r + g + b
    if total < thresholds['good']:
        grade = 'good'
    elif total < thresholds['medium']:
        grade = 'medium'
    else:
        grade = 'poor'
    return BlackoutQuality(mean_red=r, mean_green=g, mean_blue=b, grade=grade)
