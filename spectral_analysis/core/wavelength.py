"""Fixed linear map between spectrum bins and wavelengths."""

import numpy as np

from .sensor_config import WAVELENGTH_MIN, WAVELENGTH_MAX

_SPAN = WAVELENGTH_MAX - WAVELENGTH_MIN


def _check_resolution(n: int) -> None:
    if n < 2:
        raise ValueError(f"Spectrum resolution must be at least 2, got {n}")


def bin_to_wavelength(i: int, n: int) -> int:
    """Wavelength (nm) of bin ``i`` out of ``n``; bin 0 is 380 nm, bin n-1 is 750 nm."""
    _check_resolution(n)
    return int(np.floor(WAVELENGTH_MIN + (i / (n - 1)) * _SPAN + 0.5))


def wavelength_to_bin(wavelength: float, n: int) -> int:
    """Nearest bin for ``wavelength``, clamped to ``[0, n-1]``."""
    _check_resolution(n)
    idx = int(np.floor((wavelength - WAVELENGTH_MIN) / _SPAN * (n - 1) + 0.5))
    return min(max(idx, 0), n - 1)


def wavelength_axis(n: int) -> np.ndarray:
    """Integer wavelengths of all ``n`` bins."""
    _check_resolution(n)
    return np.array([bin_to_wavelength(i, n) for i in range(n)], dtype=int)


def bin_edge_wavelength(i, n: int):
    """Unrounded lower-edge wavelength ``380 + (i/n)*370`` of bin ``i``.

    Region lookups (channel weights, red correction) key off this value.
    Accepts a scalar index or an index array.
    """
    _check_resolution(n)
    return WAVELENGTH_MIN + (np.asarray(i, dtype=float) / n) * _SPAN
