"""
Image variant generation.

Every eligible image is turned into three JPEG variants (high, medium, low).
Each variant is resized by width and re-encoded with a decreasing quality
until it fits its byte budget or reaches the preset's quality floor.
"""

from __future__ import annotations

from io import BytesIO
import logging
from pathlib import Path
from typing import Tuple

from PIL import Image

from .errors import UnsupportedImageTypeError
from .models import VARIANT_PRESETS, CompressionSettings, VariantSet
from .sniffing import SUPPORTED_IMAGE_MIMES, detect

logger = logging.getLogger(__name__)

QUALITY_STEP = 5


def _compute_resize_dims(width: int, height: int, max_width: int) -> Tuple[int, int]:
    """Preserve aspect ratio while constraining the width; never upscale."""
    if max_width <= 0 or width <= max_width:
        return width, height
    scale = max_width / width
    return max_width, max(1, round(height * scale))


def _resize_to_width(image: Image.Image, max_width: int) -> Image.Image:
    new_w, new_h = _compute_resize_dims(image.width, image.height, max_width)
    if (new_w, new_h) == image.size:
        return image
    return image.resize((new_w, new_h), Image.LANCZOS)


def _to_jpeg_mode(image: Image.Image) -> Image.Image:
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def _encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def compress_to_size(image: Image.Image, settings: CompressionSettings) -> Tuple[bytes, int]:
    """
    Encode ``image`` for one preset.

    Quality starts at ``initial_quality`` and drops by 5 while the output is
    larger than ``target_byte_size`` and above ``min_quality``. The floor is
    accepted even when still oversized.

    Returns:
        (jpeg bytes, quality used)
    """
    resized = _to_jpeg_mode(_resize_to_width(image, settings.max_width_px))
    quality = settings.initial_quality
    data = _encode_jpeg(resized, quality)
    while len(data) > settings.target_byte_size and quality > settings.min_quality:
        quality = max(quality - QUALITY_STEP, settings.min_quality)
        data = _encode_jpeg(resized, quality)
    return data, quality


def load_image(image_bytes: bytes) -> Image.Image:
    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
    except Exception as exc:  # noqa: BLE001
        raise UnsupportedImageTypeError(f"Invalid image data: {exc}") from exc
    return image


def variant_path(directory: Path, file_name: str, variant: str) -> Path:
    name = Path(file_name)
    return directory / f"{name.stem}-{variant}{name.suffix}"


def compress(image_bytes: bytes, file_name: str, output_dir: Path) -> VariantSet:
    """
    Write high/medium/low variants of ``image_bytes`` into ``output_dir``.

    All three are derived from the same decoded source. The high variant is the
    original bytes, untouched, when the source is already within 2000px wide
    and 3 MiB.

    Raises:
        UnsupportedImageTypeError: when the content is not a supported image or
            any decode/encode step fails.
    """
    try:
        mime = detect(image_bytes).mime
    except Exception as exc:  # noqa: BLE001
        raise UnsupportedImageTypeError("Unsupported file type") from exc
    if mime not in SUPPORTED_IMAGE_MIMES:
        raise UnsupportedImageTypeError(f"Unsupported file type: {mime}")

    source = load_image(image_bytes)
    high = VARIANT_PRESETS["high"]
    variants = VariantSet()
    try:
        for name in ("high", "medium", "low"):
            path = variant_path(output_dir, file_name, name)
            if name == "high" and source.width <= high.max_width_px and len(image_bytes) <= high.target_byte_size:
                path.write_bytes(image_bytes)
                variants.high_is_original = True
                logger.debug("High variant kept original bytes for %s", file_name)
            else:
                data, quality = compress_to_size(source, VARIANT_PRESETS[name])
                path.write_bytes(data)
                logger.debug("%s variant of %s: %d bytes at q=%d", name, file_name, len(data), quality)
            setattr(variants, f"{name}_path", path)
    except Exception as exc:  # noqa: BLE001
        raise UnsupportedImageTypeError(f"Failed to compress image {file_name}: {exc}") from exc
    finally:
        source.close()
    return variants
