"""Shared data types for the upload pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import InvalidEntityTypeError

KIB = 1024
MIB = 1024 * KIB


class EntityType(str, Enum):
    RESTAURANT = "restaurant"
    BRANCH = "branch"
    MENU = "menu"
    CATEGORY = "category"
    PRODUCT = "product"
    BANNER = "banner"
    BRANDING = "branding"
    ADDON = "addon"

    @classmethod
    def parse(cls, value: Union[str, "EntityType", None]) -> "EntityType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidEntityTypeError(value) from exc

    @property
    def folder(self) -> str:
        return FOLDER_PREFIXES[self]

    @property
    def has_variants(self) -> bool:
        return self in VARIANT_ENTITY_TYPES


FOLDER_PREFIXES = {
    EntityType.RESTAURANT: "RPfs",
    EntityType.BRANCH: "BPfs",
    EntityType.MENU: "Mns",
    EntityType.CATEGORY: "Cts",
    EntityType.PRODUCT: "Pts",
    EntityType.BANNER: "Bns",
    EntityType.BRANDING: "Bds",
    EntityType.ADDON: "Ads",
}

VARIANT_ENTITY_TYPES = frozenset({EntityType.CATEGORY, EntityType.PRODUCT, EntityType.BANNER})


@dataclass(frozen=True)
class UploadedFile:
    original_name: str
    local_path: Path
    byte_size: int


@dataclass(frozen=True)
class DetectedType:
    mime: str
    extension: str  # without the leading dot

    @property
    def is_video(self) -> bool:
        return self.mime.startswith("video/")


@dataclass(frozen=True)
class CompressionSettings:
    max_width_px: int
    target_byte_size: int
    initial_quality: int
    min_quality: int


# Storage subfolder doubles as the variant name in keys: {folder}/H/{file}
VARIANT_PRESETS = {
    "high": CompressionSettings(max_width_px=2000, target_byte_size=3 * MIB, initial_quality=100, min_quality=90),
    "medium": CompressionSettings(max_width_px=1200, target_byte_size=130 * KIB, initial_quality=85, min_quality=70),
    "low": CompressionSettings(max_width_px=800, target_byte_size=20 * KIB, initial_quality=70, min_quality=10),
}

VARIANT_SUBFOLDERS = {"high": "H", "medium": "M", "low": "L"}
VIDEO_SUBFOLDER = "Video"


@dataclass
class VariantSet:
    high_path: Optional[Path] = None
    medium_path: Optional[Path] = None
    low_path: Optional[Path] = None
    # True when the high variant is the untouched source rather than a JPEG
    high_is_original: bool = False

    def items(self) -> List[tuple[str, Path]]:
        """(variant name, path) pairs in upload order, skipping missing ones."""
        pairs = [("high", self.high_path), ("medium", self.medium_path), ("low", self.low_path)]
        return [(name, path) for name, path in pairs if path is not None]

    def paths(self) -> List[Path]:
        return [path for _, path in self.items()]


@dataclass
class ProcessingResult:
    urls: List[str] = field(default_factory=list)
    # Last image in the batch wins
    blur_hash: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    # "high", "medium", "low" or "video" -> last successful upload of that kind
    urls_by_kind: Dict[str, str] = field(default_factory=dict)

    def add_url(self, url: str, kind: Optional[str] = None) -> None:
        self.urls.append(url)
        if kind is not None:
            self.urls_by_kind[kind] = url
