"""Utility modules for blackout."""

from blackout.utils.image import ImageProcessor
from blackout.utils.text import find_text_in_regions

__all__ = [
    "ImageProcessor",
    "find_text_in_regions",
]
