"""
Main-server notification.

After a batch is stored, the owning entity record on the main server is
PATCHed with the new URLs. Payload shape and endpoint depend on entity type.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

import requests

from . import config
from .errors import UpstreamNotifyError
from .models import EntityType, ProcessingResult

logger = logging.getLogger(__name__)

_PATCH_PATHS = {
    EntityType.RESTAURANT: "restaurant/{id}/logo",
    EntityType.BRANCH: "branch/{id}/image",
    EntityType.MENU: "menu/{id}/image",
    EntityType.CATEGORY: "category/{id}/images",
    EntityType.PRODUCT: "product/{id}/images",
    EntityType.BANNER: "banner/{id}/images",
}


def _first(urls: Sequence[str]) -> str:
    return urls[0] if urls else ""


def has_upstream_record(entity_type: EntityType) -> bool:
    return entity_type in _PATCH_PATHS


def build_patch_payload(entity_type: EntityType, result: ProcessingResult) -> Dict[str, str]:
    """
    Shape the PATCH body for ``entity_type``.

    Variant fields are filled by kind, so a size whose upload failed is sent
    empty. Single-image records take the first stored URL.
    """
    if entity_type.has_variants:
        by_kind = result.urls_by_kind
        payload = {
            "imageHigh": by_kind.get("high", ""),
            "imageMedium": by_kind.get("medium", ""),
            "imageLow": by_kind.get("low", ""),
        }
        if entity_type is EntityType.PRODUCT:
            payload["video"] = by_kind.get("video", "")
        payload["blurHash"] = result.blur_hash or ""
        return payload
    if entity_type in (EntityType.BRANCH, EntityType.MENU):
        return {"image": _first(result.urls)}
    if entity_type is EntityType.RESTAURANT:
        return {"logo": _first(result.urls)}
    raise UpstreamNotifyError(f"No upstream record for entity type {entity_type.value}")


def patch_url(base_url: str, entity_type: EntityType, entity_id: str) -> str:
    try:
        path = _PATCH_PATHS[entity_type]
    except KeyError as exc:
        raise UpstreamNotifyError(f"No upstream record for entity type {entity_type.value}") from exc
    return f"{base_url.rstrip('/')}/{path.format(id=entity_id)}"


class UpstreamNotifier:
    def __init__(self, base_url: Optional[str], token: Optional[str], timeout_seconds: float = 30):
        self.base_url = base_url
        self.token = token
        self.timeout_seconds = timeout_seconds

    def patch(
        self,
        entity_type: EntityType,
        entity_id: str,
        result: ProcessingResult,
    ) -> None:
        if not has_upstream_record(entity_type):
            logger.info("No upstream record for %s; skipping update of %s", entity_type.value, entity_id)
            return
        if not self.base_url:
            raise UpstreamNotifyError("MAIN_SERVER_URL is not configured")

        url = patch_url(self.base_url, entity_type, entity_id)
        payload = build_patch_payload(entity_type, result)
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            resp = requests.patch(url, json=payload, headers=headers, timeout=(5, self.timeout_seconds))
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Failed to update %s with ID %s: %s", entity_type.value, entity_id, exc)
            raise UpstreamNotifyError(f"Failed to update {entity_type.value}") from exc
        logger.info("Successfully updated %s with ID %s", entity_type.value, entity_id)


def build_notifier(settings: Optional[config.Settings] = None) -> UpstreamNotifier:
    settings = settings or config.get_settings()
    return UpstreamNotifier(
        settings.main_server_url,
        settings.main_server_jwt,
        timeout_seconds=settings.upstream_timeout_seconds,
    )
