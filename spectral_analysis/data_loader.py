import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd
from PIL import Image

from .core.binning import PixelBlock
from .core.pipeline import EXPORT_COLUMNS

logger = logging.getLogger(__name__)


def load_pixel_block(file_path: Union[str, Path],
                     roi: Optional[Sequence[int]] = None) -> PixelBlock:
    """
    Load a captured frame from an image file.

    Args:
        file_path: Path to any image format Pillow can read
        roi: Optional (x, y, width, height) selection rectangle to crop to

    Returns:
        PixelBlock with RGBA texels
    """
    try:
        with Image.open(file_path) as img:
            pixels = np.asarray(img.convert('RGBA'), dtype=np.uint8)
    except (OSError, ValueError) as e:
        logger.error(f"Error loading frame from {file_path}: {str(e)}")
        raise

    block = PixelBlock(pixels)
    logger.info(f"Loaded {block.width}x{block.height} frame from {file_path}")
    if roi is not None:
        x, y, width, height = (int(v) for v in roi)
        block = block.crop(x, y, width, height)
    return block


def save_pixel_block(block: PixelBlock, file_path: Union[str, Path]) -> Path:
    """Write a pixel block as an RGBA image (PNG recommended, it is lossless)."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(np.ascontiguousarray(block.pixels)).save(path)
    return path


def load_spectral_csv(file_path: Union[str, Path]) -> pd.DataFrame:
    """
    Load a previously exported spectral CSV.

    Returns:
        pd.DataFrame with columns wavelength, reference, sample, absorbance
    """
    try:
        data = pd.read_csv(file_path)
    except Exception as e:
        logger.error(f"Error loading spectral data from {file_path}: {str(e)}")
        raise

    missing = [c for c in EXPORT_COLUMNS if c not in data.columns]
    if missing:
        raise ValueError(f"{file_path} is missing columns: {missing}")

    data = data[EXPORT_COLUMNS].rename(columns=dict(zip(
        EXPORT_COLUMNS, ['wavelength', 'reference', 'sample', 'absorbance'])))
    for col in data.columns:
        data[col] = pd.to_numeric(data[col], errors='coerce').fillna(0.0)
    logger.info(f"Successfully loaded spectral data from {file_path}")
    return data
