"""
Content-based file type detection.

The client's filename and declared content type are never trusted: the MIME
type comes from libmagic looking at the bytes, and the storage filename is
rewritten to match what was detected.
"""

from __future__ import annotations

import mimetypes
from pathlib import PurePath

import magic

from .errors import UnknownTypeError
from .models import DetectedType

# Preferred extensions; mimetypes.guess_extension picks odd ones for some types
_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/tiff": "tif",
    "image/avif": "avif",
    "image/gif": "gif",
    "image/bmp": "bmp",
    "image/x-ms-bmp": "bmp",
    "image/heic": "heic",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/x-matroska": "mkv",
    "video/webm": "webm",
    "video/x-msvideo": "avi",
    "application/pdf": "pdf",
}

_UNDETECTABLE = {"", "application/octet-stream", "inode/x-empty", "application/x-empty"}

SUPPORTED_IMAGE_MIMES = frozenset({"image/jpeg", "image/png", "image/webp", "image/tiff", "image/avif"})


def stored_extensions(prefix: str) -> frozenset:
    """Extensions ``detect`` can assign to MIME types starting with ``prefix``."""
    return frozenset(f".{ext}" for mime, ext in _EXTENSIONS.items() if mime.startswith(prefix))


def detect(buffer: bytes) -> DetectedType:
    """
    Identify ``buffer`` by its content signature.

    Raises:
        UnknownTypeError: when nothing recognizable is found.
    """
    if not buffer:
        raise UnknownTypeError("Unable to determine file type: empty file")

    mime = (magic.from_buffer(buffer, mime=True) or "").lower()
    if mime in _UNDETECTABLE:
        raise UnknownTypeError("Unable to determine file type")

    extension = _EXTENSIONS.get(mime)
    if extension is None:
        guessed = mimetypes.guess_extension(mime, strict=False)
        if not guessed:
            raise UnknownTypeError(f"Unable to determine file type ({mime})")
        extension = guessed.lstrip(".")
    return DetectedType(mime=mime, extension=extension)


def is_supported_image(detected: DetectedType) -> bool:
    return detected.mime in SUPPORTED_IMAGE_MIMES


def effective_file_name(original_name: str, detected: DetectedType) -> str:
    """
    Build the storage filename for an upload.

    Any directory part is dropped, the extension is replaced when it disagrees
    with the detected one, and the result is lower-cased so keys stay
    predictable.
    """
    name = PurePath(original_name.replace("\\", "/")).name
    current = PurePath(name).suffix
    wanted = f".{detected.extension}"
    if not current or current.lower() != wanted.lower():
        stem = name[: -len(current)] if current else name
        name = f"{stem}{wanted}"
    return name.lower()
