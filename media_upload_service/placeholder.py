"""Blurhash placeholders for image variants."""

from __future__ import annotations

from pathlib import Path

import blurhash
import numpy as np
from PIL import Image

from .errors import HashError

HASH_SIZE = (32, 32)
COMPONENTS_X = 4
COMPONENTS_Y = 4


def blur_hash(image_path: Path) -> str:
    """
    Downsample the image at ``image_path`` into a 32x32 box and encode it as a
    4x4-component blurhash string.

    Raises:
        HashError: when the image cannot be read or encoded.
    """
    try:
        with Image.open(image_path) as image:
            thumb = image.convert("RGBA")
            thumb.thumbnail(HASH_SIZE)
            # blurhash ignores alpha; it is forced only to normalize palette modes
            pixels = np.asarray(thumb)[:, :, :3].tolist()
        return blurhash.encode(pixels, components_x=COMPONENTS_X, components_y=COMPONENTS_Y)
    except Exception as exc:  # noqa: BLE001
        raise HashError(f"Failed to generate blurHash for {image_path}: {exc}") from exc
