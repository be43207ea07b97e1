"""Pixel blocks, spatial binning and channel combination."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import DimensionMismatchError
from .sensor_config import (
    DARK_PIXEL_THRESHOLD,
    NOISE_SUBTRACTION,
    SPECTRUM_RESOLUTION,
    NoiseSubtraction,
    get_channel_weights,
)
from .wavelength import bin_edge_wavelength

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PixelBlock:
    """Immutable RGBA pixel block; ``pixels`` has shape (height, width, 4), uint8."""
    pixels: np.ndarray

    def __post_init__(self):
        arr = np.asarray(self.pixels)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise ValueError(f"Pixel array must have shape (H, W, 3|4), got {arr.shape}")
        arr = _to_uint8(arr)
        if arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=2)
        else:
            arr = arr.copy()
        arr.setflags(write=False)
        object.__setattr__(self, 'pixels', arr)

    @classmethod
    def from_rgba_buffer(cls, width: int, height: int, data: Sequence[int]) -> 'PixelBlock':
        """Build from a flat row-major RGBA buffer of ``width*height*4`` samples."""
        flat = np.asarray(data)
        if flat.size != width * height * 4:
            raise DimensionMismatchError("RGBA buffer", (width * height * 4,), (flat.size,))
        return cls(flat.reshape(height, width, 4))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width

    def rgb(self) -> np.ndarray:
        """Channel samples as float array of shape (H, W, 3)."""
        return self.pixels[:, :, :3].astype(float)

    def crop(self, x: int, y: int, width: int, height: int) -> 'PixelBlock':
        """Sub-block for a selection rectangle, clipped to the block bounds."""
        x0 = min(max(int(x), 0), self.width)
        y0 = min(max(int(y), 0), self.height)
        x1 = min(x0 + max(int(width), 0), self.width)
        y1 = min(y0 + max(int(height), 0), self.height)
        if x1 <= x0 or y1 <= y0:
            raise ValueError(f"Selection ({x}, {y}, {width}, {height}) does not overlap a "
                             f"{self.width}x{self.height} block")
        return PixelBlock(self.pixels[y0:y1, x0:x1])


def _to_uint8(arr: np.ndarray) -> np.ndarray:
    if arr.dtype == np.uint8:
        return arr
    values = arr.astype(float)
    bad = ~np.isfinite(values)
    if np.any(bad):
        logger.warning(f"Replacing {int(bad.sum())} non-finite pixel samples with 0")
        values[bad] = 0.0
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


@dataclass
class ChannelBins:
    """Per-bin channel sums and the number of texels that contributed."""
    red: np.ndarray
    green: np.ndarray
    blue: np.ndarray
    counts: np.ndarray

    @property
    def resolution(self) -> int:
        return int(self.counts.size)

    def averages(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Per-channel means; bins with no texels are 0."""
        outs = []
        for sums in (self.red, self.green, self.blue):
            avg = np.zeros_like(sums, dtype=float)
            np.divide(sums, self.counts, out=avg, where=self.counts > 0)
            outs.append(avg)
        return outs[0], outs[1], outs[2]


def bin_pixel_block(block: PixelBlock,
                    calibration: Optional[PixelBlock] = None,
                    resolution: int = SPECTRUM_RESOLUTION,
                    dark_threshold: float = DARK_PIXEL_THRESHOLD,
                    noise: NoiseSubtraction = NOISE_SUBTRACTION) -> ChannelBins:
    """Project a pixel block onto ``resolution`` bins along its horizontal axis.

    Texels whose r+g+b is below ``dark_threshold`` are discarded. When a
    blackout frame is given, its texel at the same position is scaled by the
    per-channel noise factors and subtracted, flooring at zero.

    Raises:
        DimensionMismatchError: if ``calibration`` is not the same size as ``block``
    """
    if resolution < 1:
        raise ValueError(f"Resolution must be positive, got {resolution}")
    if calibration is not None and calibration.shape != block.shape:
        raise DimensionMismatchError("Blackout calibration frame", block.shape, calibration.shape)

    rgb = block.rgb()
    keep = rgb.sum(axis=2) >= dark_threshold

    if calibration is not None:
        factors = np.array([noise.red, noise.green, noise.blue], dtype=float)
        rgb = np.maximum(0.0, rgb - calibration.rgb() * factors)

    width = block.width
    column_bins = (np.arange(width) * resolution) // width
    bin_idx = np.broadcast_to(column_bins, keep.shape)[keep]

    sums = [np.bincount(bin_idx, weights=rgb[:, :, c][keep], minlength=resolution)
            for c in range(3)]
    counts = np.bincount(bin_idx, minlength=resolution)
    return ChannelBins(red=sums[0], green=sums[1], blue=sums[2], counts=counts)


def combine_channels(bins: ChannelBins) -> np.ndarray:
    """Weighted sum of the channel averages using the region weight table."""
    n = bins.resolution
    avg_r, avg_g, avg_b = bins.averages()
    edges = bin_edge_wavelength(np.arange(n), n)

    w_r = np.empty(n)
    w_g = np.empty(n)
    w_b = np.empty(n)
    for i, wl in enumerate(edges):
        weights = get_channel_weights(float(wl))
        w_r[i], w_g[i], w_b[i] = weights.red, weights.green, weights.blue

    combined = avg_r * w_r + avg_g * w_g + avg_b * w_b
    combined[~np.isfinite(combined)] = 0.0
    return combined


def region_names(n: int = SPECTRUM_RESOLUTION) -> np.ndarray:
    """Name of the channel-weight region each bin falls in."""
    edges = bin_edge_wavelength(np.arange(n), n)
    return np.array([get_channel_weights(float(wl)).name for wl in edges])


def column_intensity_profile(block: PixelBlock) -> np.ndarray:
    """Quick-look live profile: mean of (r+g+b)/3 down each pixel column."""
    rgb = block.rgb()
    return rgb.sum(axis=2).sum(axis=0) / (block.height * 3)


__all__ = [
    'PixelBlock',
    'ChannelBins',
    'bin_pixel_block',
    'combine_channels',
    'region_names',
    'column_intensity_profile',
]
