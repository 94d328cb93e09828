"""Exception types raised by the upload pipeline and its collaborators."""

from __future__ import annotations


class UploadServiceError(Exception):
    """Base class for all service errors."""


class InvalidEntityTypeError(UploadServiceError, ValueError):
    """Entity type outside the known set; rejected before any storage call."""

    def __init__(self, entity_type: object) -> None:
        super().__init__(f"Invalid entity type: {entity_type!r}")
        self.entity_type = entity_type


class UnknownTypeError(UploadServiceError):
    """File content did not match any known signature."""


class UnsupportedImageTypeError(UploadServiceError):
    """Image could not be decoded or re-encoded into variants."""


class HashError(UploadServiceError):
    """Blurhash placeholder could not be derived."""


class StorageError(UploadServiceError):
    """Object storage rejected an upload."""


class DeletionError(UploadServiceError):
    """Object storage rejected a delete; the message names the variant."""


class UpstreamNotifyError(UploadServiceError):
    """The main server could not be updated with the new URLs."""
