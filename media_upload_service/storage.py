"""
S3 storage gateway.

Keys are ``{entity folder}/{size subfolder?}/{file name}`` and URLs are derived
from bucket, region and key (or the configured public base), never presigned.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Union
from urllib.parse import urljoin

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from . import config
from .errors import StorageError

logger = logging.getLogger(__name__)


class StorageGateway(Protocol):
    def put(
        self,
        local_path: Union[str, Path],
        folder: str,
        file_name: str,
        content_type: Optional[str] = None,
    ) -> str: ...

    def delete(self, key: str) -> None: ...


def object_key(folder: str, file_name: str) -> str:
    return f"{folder.strip('/')}/{file_name}"


class S3Storage:
    def __init__(self, client, bucket: str, region: Optional[str] = None, public_base_url: Optional[str] = None):
        self.client = client
        self.bucket = bucket
        self.region = region
        self.public_base_url = public_base_url

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return urljoin(self.public_base_url.rstrip("/") + "/", key)
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def put(
        self,
        local_path: Union[str, Path],
        folder: str,
        file_name: str,
        content_type: Optional[str] = None,
    ) -> str:
        key = object_key(folder, file_name)
        params = {"Bucket": self.bucket, "Key": key, "Body": Path(local_path).read_bytes()}
        if content_type:
            params["ContentType"] = content_type
        try:
            self.client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to upload %s to s3://%s/%s: %s", local_path, self.bucket, key, exc)
            raise StorageError(f"Failed to upload {key}: {exc}") from exc
        logger.info("Uploaded s3://%s/%s", self.bucket, key)
        return self.url_for(key)

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Error deleting file from S3: %s: %s", key, exc)
            raise StorageError(f"Failed to delete {key} from S3") from exc
        logger.info("Deleted s3://%s/%s", self.bucket, key)


def _get_s3_client(settings: config.Settings):
    required = [
        settings.aws_access_key_id,
        settings.aws_secret_access_key,
        settings.aws_region,
        settings.s3_bucket_name,
    ]
    if any(v is None for v in required):
        raise RuntimeError("S3 configuration is incomplete; check env vars.")
    session = boto3.session.Session()
    return session.client(
        service_name="s3",
        region_name=settings.aws_region,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        endpoint_url=settings.s3_endpoint_url,
        config=BotoConfig(signature_version="s3v4"),
    )


def build_s3_storage(settings: Optional[config.Settings] = None) -> S3Storage:
    settings = settings or config.get_settings()
    return S3Storage(
        _get_s3_client(settings),
        bucket=settings.s3_bucket_name,
        region=settings.aws_region,
        public_base_url=settings.public_base_url,
    )
