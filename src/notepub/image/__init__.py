"""Image detection, validation and localization."""

from __future__ import annotations

from .detect import detect_image_source
from .fetch import ImageLocalizer
from .validate import parse_data_uri, sniff_mime, validate_image

__all__ = [
    "ImageLocalizer",
    "detect_image_source",
    "parse_data_uri",
    "sniff_mime",
    "validate_image",
]
