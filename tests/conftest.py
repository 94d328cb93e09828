from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import numpy as np
import pytest
from PIL import Image

from media_upload_service.errors import StorageError
from media_upload_service.models import UploadedFile
from media_upload_service.reaper import Reaper, TempDirectory, UnlinkReclaimer
from media_upload_service.storage import object_key

# Minimal ISO-BMFF header; libmagic reports it as video/mp4
MP4_BYTES = b"\x00\x00\x00\x20ftypisom\x00\x00\x02\x00isomiso2avc1mp41" + b"\x00\x00\x00\x08free" + b"\x00" * 64


def make_image_bytes(width: int, height: int, fmt: str = "JPEG", mode: str = "RGB", noise: bool = False) -> bytes:
    if noise:
        rng = np.random.default_rng(1234)
        arr = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
    else:
        r = np.tile(np.linspace(0, 255, width).astype(np.uint8), (height, 1))
        g = np.tile(np.linspace(0, 255, height).astype(np.uint8)[:, None], (1, width))
        b = ((r.astype(np.uint16) + g) // 2).astype(np.uint8)
        arr = np.dstack([r, g, b])
    image = Image.fromarray(arr, "RGB")
    if mode != "RGB":
        image = image.convert(mode)
    buffer = BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


class FakeStorage:
    """In-memory stand-in for the S3 gateway."""

    def __init__(self, fail_folders: Optional[Set[str]] = None, fail_deletes: Optional[Set[str]] = None):
        self.objects: Dict[str, bytes] = {}
        self.puts: List[Tuple[str, str, Optional[str]]] = []
        self.deletes: List[str] = []
        self.fail_folders = fail_folders or set()
        self.fail_deletes = fail_deletes or set()

    def put(self, local_path, folder, file_name, content_type=None):
        if folder in self.fail_folders:
            raise StorageError(f"Failed to upload {object_key(folder, file_name)}: boom")
        key = object_key(folder, file_name)
        self.objects[key] = Path(local_path).read_bytes()
        self.puts.append((folder, file_name, content_type))
        return f"https://bucket.test/{key}"

    def delete(self, key):
        self.deletes.append(key)
        if key in self.fail_deletes:
            raise StorageError(f"Failed to delete {key} from S3")
        self.objects.pop(key, None)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def reaper(tmp_path: Path) -> Reaper:
    return Reaper(UnlinkReclaimer(), TempDirectory(tmp_path / "reaped"))


@pytest.fixture
def make_upload(upload_dir: Path):
    def _make(name: str, data: bytes) -> UploadedFile:
        path = upload_dir / f"incoming-{len(list(upload_dir.iterdir()))}-{name}"
        path.write_bytes(data)
        return UploadedFile(original_name=name, local_path=path, byte_size=len(data))

    return _make
