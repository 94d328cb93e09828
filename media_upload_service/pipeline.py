"""
Batch upload pipeline.

`process_uploaded_files` is the main entry point used by the HTTP API:
uploaded files in -> type sniffing -> (variants + blurhash) -> S3 -> URLs out.
Files are handled one at a time; a failure is recorded as a warning for that
file and the batch moves on. Working files are always reclaimed.

`delete_stored_files` removes what a previous upload stored for an entity.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
import logging
from pathlib import Path, PurePath
from typing import Iterator, List, Optional, Sequence, Union

from . import compression, placeholder, sniffing
from .errors import DeletionError
from .models import (
    VARIANT_SUBFOLDERS,
    VIDEO_SUBFOLDER,
    EntityType,
    ProcessingResult,
    UploadedFile,
)
from .reaper import Reaper
from .storage import StorageGateway, object_key

logger = logging.getLogger(__name__)

# Everything the sniffer can name a stored file, plus the long spellings clients use
DELETABLE_IMAGE_EXTENSIONS = frozenset({".jpeg", ".tiff"}) | sniffing.stored_extensions("image/")
DELETABLE_VIDEO_EXTENSIONS = sniffing.stored_extensions("video/")


@contextmanager
def _working_files(reaper: Reaper, upload: UploadedFile) -> Iterator[List[Path]]:
    """Collect every local path created for ``upload`` and reclaim them on exit."""
    paths: List[Path] = [Path(upload.local_path)]
    try:
        yield paths
    finally:
        reaper.release(paths)


def _process_image(
    upload: UploadedFile,
    file_bytes: bytes,
    file_name: str,
    folder: str,
    storage: StorageGateway,
    result: ProcessingResult,
    working: List[Path],
) -> None:
    local_path = Path(upload.local_path)
    # Working names follow the unique local name; file_name is only the storage key
    work_name = f"{local_path.stem}{PurePath(file_name).suffix}"
    # Registered up front so partially written variants are reclaimed too
    working.extend(compression.variant_path(local_path.parent, work_name, name) for name in VARIANT_SUBFOLDERS)
    variants = compression.compress(file_bytes, work_name, local_path.parent)

    for name, path in variants.items():
        content_type = None if name == "high" and variants.high_is_original else "image/jpeg"
        try:
            url = storage.put(path, f"{folder}/{VARIANT_SUBFOLDERS[name]}", file_name, content_type=content_type)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to upload %s variant of %s", name, upload.original_name)
            result.warnings.append(f"Failed to upload {name} variant of {upload.original_name}: {exc}")
            continue
        result.add_url(url, kind=name)

    if variants.high_path is not None:
        result.blur_hash = placeholder.blur_hash(variants.high_path)


def process_uploaded_files(
    files: Sequence[UploadedFile],
    entity_type: Union[EntityType, str],
    storage: StorageGateway,
    reaper: Reaper,
) -> ProcessingResult:
    """
    Store a batch of uploaded files for one entity.

    Eligible images (jpeg/png/webp/tiff/avif for category, product and banner)
    become high/medium/low variants under ``{folder}/H|M|L``; videos go to
    ``{folder}/Video``; anything else is stored as-is under ``{folder}``.

    ``blur_hash`` on the result belongs to the last image that produced one;
    batches with several images only report that single value.

    Raises:
        InvalidEntityTypeError: before any file is touched.
    """
    entity_type = EntityType.parse(entity_type)
    folder = entity_type.folder
    result = ProcessingResult()

    reaper.sweep()

    for upload in files:
        with _working_files(reaper, upload) as working:
            try:
                file_bytes = Path(upload.local_path).read_bytes()
                detected = sniffing.detect(file_bytes)
                file_name = sniffing.effective_file_name(upload.original_name, detected)
                logger.info(
                    "Processing %s as %s (%s, %d bytes)",
                    upload.original_name,
                    file_name,
                    detected.mime,
                    upload.byte_size,
                )

                if sniffing.is_supported_image(detected) and entity_type.has_variants:
                    _process_image(upload, file_bytes, file_name, folder, storage, result, working)
                elif detected.is_video:
                    url = storage.put(upload.local_path, f"{folder}/{VIDEO_SUBFOLDER}", file_name, content_type=detected.mime)
                    result.add_url(url, kind="video")
                else:
                    result.add_url(storage.put(upload.local_path, folder, file_name, content_type=detected.mime))
            except Exception as exc:  # noqa: BLE001
                logger.exception("Error processing file %s", upload.original_name)
                result.warnings.append(f"Failed to process {upload.original_name}: {exc}")

    return result


def _delete_variant(storage: StorageGateway, key: str, label: str, name: str) -> None:
    try:
        storage.delete(key)
    except Exception as exc:  # noqa: BLE001
        raise DeletionError(f"Error deleting {label} {name}: {exc}") from exc


def delete_stored_files(
    image_name: Optional[str],
    video_name: Optional[str],
    entity_type: Union[EntityType, str],
    storage: StorageGateway,
) -> None:
    """
    Delete a previously stored image and/or video.

    Variant entities lose all three sizes, deleted concurrently; the first
    failure is raised as a DeletionError naming the variant. Names whose
    extension is not a known image/video extension are skipped silently.
    """
    entity_type = EntityType.parse(entity_type)
    folder = entity_type.folder

    if image_name and PurePath(image_name).suffix.lower() in DELETABLE_IMAGE_EXTENSIONS:
        if entity_type.has_variants:
            labels = {"high": "high-res image", "medium": "medium-res image", "low": "low-res image"}
            with ThreadPoolExecutor(max_workers=len(VARIANT_SUBFOLDERS)) as pool:
                futures = [
                    pool.submit(
                        _delete_variant,
                        storage,
                        object_key(f"{folder}/{subfolder}", image_name),
                        labels[variant],
                        image_name,
                    )
                    for variant, subfolder in VARIANT_SUBFOLDERS.items()
                ]
            # the pool has drained; report in high, medium, low order
            for future in futures:
                future.result()
        else:
            _delete_variant(storage, object_key(folder, image_name), "image", image_name)
    elif image_name:
        logger.debug("Skipping delete of %s: unrecognized image extension", image_name)

    if video_name and PurePath(video_name).suffix.lower() in DELETABLE_VIDEO_EXTENSIONS:
        _delete_variant(storage, object_key(f"{folder}/{VIDEO_SUBFOLDER}", video_name), "video file", video_name)
    elif video_name:
        logger.debug("Skipping delete of %s: unrecognized video extension", video_name)
