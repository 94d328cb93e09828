"""
FastAPI layer exposing the upload pipeline.

Endpoints:
 - GET /health
 - POST /upload
 - POST /delete
"""

from __future__ import annotations

from functools import lru_cache
import logging
from pathlib import Path, PurePath
import shutil
import uuid
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from . import config
from .errors import DeletionError, InvalidEntityTypeError, UploadServiceError
from .models import EntityType, UploadedFile
from .notifier import UpstreamNotifier, build_notifier
from .pipeline import delete_stored_files, process_uploaded_files
from .reaper import Reaper, build_reaper
from .storage import StorageGateway, build_s3_storage

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Media Upload Service", version="0.1.0")


class UploadResponse(BaseModel):
    urls: List[str]
    blurHash: Optional[str] = None
    warnings: List[str]


class DeleteRequest(BaseModel):
    entityType: Optional[str] = None
    imageName: Optional[str] = None
    videoName: Optional[str] = None


class DeleteResponse(BaseModel):
    message: str


@lru_cache()
def get_storage() -> StorageGateway:
    return build_s3_storage(settings)


@lru_cache()
def get_reaper() -> Reaper:
    return build_reaper(settings)


def get_upload_dir() -> Path:
    return settings.upload_dir


@lru_cache()
def get_notifier() -> UpstreamNotifier:
    return build_notifier(settings)


def _parse_entity_type(value: Optional[str]) -> EntityType:
    try:
        return EntityType.parse(value)
    except InvalidEntityTypeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _save_upload(upload: UploadFile, upload_dir: Path) -> UploadedFile:
    original_name = upload.filename or "upload"
    base_name = PurePath(original_name.replace("\\", "/")).name
    upload_dir.mkdir(parents=True, exist_ok=True)
    local_path = upload_dir / f"{uuid.uuid4().hex}-{base_name}"
    with local_path.open("wb") as out:
        shutil.copyfileobj(upload.file, out)
    return UploadedFile(original_name=original_name, local_path=local_path, byte_size=local_path.stat().st_size)


def _delete_previous(
    image_name: Optional[str],
    video_name: Optional[str],
    entity_type: EntityType,
    storage: StorageGateway,
) -> None:
    try:
        delete_stored_files(image_name, video_name, entity_type, storage)
    except DeletionError as exc:
        logger.error("Failed to delete previous files: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/upload", response_model=UploadResponse)
def upload_files(
    files: Optional[List[UploadFile]] = File(None),
    entityType: Optional[str] = Form(None),
    entityId: Optional[str] = Form(None),
    imagePrevName: Optional[str] = Form(None),
    videoPrevName: Optional[str] = Form(None),
    storage: StorageGateway = Depends(get_storage),
    reaper: Reaper = Depends(get_reaper),
    notifier: UpstreamNotifier = Depends(get_notifier),
    upload_dir: Path = Depends(get_upload_dir),
):
    if not files or not entityType or not entityId:
        raise HTTPException(status_code=400, detail="Files, entity type, or entity ID missing")
    entity_type = _parse_entity_type(entityType)
    if len(files) > settings.max_files_per_request:
        raise HTTPException(
            status_code=400,
            detail=f"At most {settings.max_files_per_request} files can be uploaded at once",
        )

    if imagePrevName or videoPrevName:
        _delete_previous(imagePrevName, videoPrevName, entity_type, storage)
    else:
        logger.warning("No previous files to delete")

    uploaded: List[UploadedFile] = []
    try:
        for item in files:
            uploaded.append(_save_upload(item, upload_dir))
    except OSError as exc:
        reaper.release(u.local_path for u in uploaded)
        logger.exception("Failed to store incoming upload: %s", exc)
        raise HTTPException(status_code=500, detail="Could not store uploaded files") from exc

    result = process_uploaded_files(uploaded, entity_type, storage, reaper)
    if result.warnings:
        logger.warning("Warnings during file processing: %s", ", ".join(result.warnings))

    try:
        notifier.patch(entity_type, entityId, result)
    except UploadServiceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return UploadResponse(urls=result.urls, blurHash=result.blur_hash, warnings=result.warnings)


@app.post("/delete", response_model=DeleteResponse)
def delete_files(body: DeleteRequest, storage: StorageGateway = Depends(get_storage)):
    if not body.entityType or not body.imageName:
        raise HTTPException(status_code=400, detail="Entity type or image name missing")
    entity_type = _parse_entity_type(body.entityType)
    try:
        delete_stored_files(body.imageName, body.videoName, entity_type, storage)
    except DeletionError as exc:
        logger.exception("Delete failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return DeleteResponse(message="Files deleted successfully")
