"""Exception types raised by the spectral pipeline."""

from typing import Tuple


class SpectralAnalysisError(Exception):
    """Base class for spectral pipeline errors."""


class DimensionMismatchError(SpectralAnalysisError, ValueError):
    """Two inputs that must line up element for element do not.

    Raised for a blackout frame whose size differs from the block it
    calibrates, and for reference/sample profiles of different lengths.
    """

    def __init__(self, what: str, expected: Tuple[int, ...], actual: Tuple[int, ...]) -> None:
        self.what = what
        self.expected = tuple(expected)
        self.actual = tuple(actual)
        super().__init__(
            f"{what}: expected shape {self.expected}, got {self.actual}"
        )
