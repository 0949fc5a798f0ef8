"""Image source detection.

Classifies a raw image ``src`` string (a Markdown path, a wiki-link file
name or a block-source URL) so the pipeline knows how to obtain the file.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

from notepub.models import ImageSourceType

_DATA_URI_RE = re.compile(r"^data:", re.IGNORECASE)


def detect_image_source(src: str) -> ImageSourceType:
    """Detect whether an image source is a URL, a data URI or a local file.

    Anything that is neither a URL nor a data URI is a local path,
    including a bare file name such as ``photo.png`` from ``![[photo.png]]``.

    Parameters
    ----------
    src:
        The raw source string.

    Returns
    -------
    ImageSourceType
        ``UNKNOWN`` only for an empty source.
    """
    if not src or not src.strip():
        return ImageSourceType.UNKNOWN

    src = src.strip()
    if _DATA_URI_RE.match(src):
        return ImageSourceType.DATA_URI

    if urlparse(src).scheme in ("http", "https"):
        return ImageSourceType.EXTERNAL_URL

    return ImageSourceType.LOCAL_FILE
