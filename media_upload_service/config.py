"""
Configuration loader for the media upload service.

Environment variables are centralized here to keep the rest of the code
focused on business logic and to make operational tuning clear.
"""

from functools import lru_cache
import os
from pathlib import Path
import tempfile
from typing import Optional

from pydantic import AliasChoices, Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # AWS S3 storage
    aws_access_key_id: Optional[str] = Field(None, env="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: Optional[str] = Field(None, env="AWS_SECRET_ACCESS_KEY")
    aws_region: Optional[str] = Field(None, env="AWS_REGION")
    s3_bucket_name: Optional[str] = Field(None, env="S3_BUCKET_NAME")
    s3_endpoint_url: Optional[str] = Field(None, env="S3_ENDPOINT_URL")
    # CloudFront or any other public base; bucket URLs are used when unset
    public_base_url: Optional[str] = Field(None, env="PUBLIC_BASE_URL")

    # Main server that owns the entity records
    main_server_url: Optional[str] = Field(None, env="MAIN_SERVER_URL")
    main_server_jwt: Optional[str] = Field(
        None, validation_alias=AliasChoices("MAIN_SERVER_JWT_SECRET", "main_server_jwt")
    )
    upstream_timeout_seconds: int = Field(30, env="UPSTREAM_TIMEOUT_SECONDS")

    # Working files
    upload_dir: Path = Field(Path("uploads"), env="UPLOAD_DIR")
    temp_dir_name: str = Field("menu-upload-service-temp", env="TEMP_DIR_NAME")
    temp_max_age_seconds: int = Field(24 * 60 * 60, env="TEMP_MAX_AGE_SECONDS")
    relocate_working_files: Optional[bool] = Field(None, env="RELOCATE_WORKING_FILES")

    # API
    max_files_per_request: int = Field(4, env="MAX_FILES_PER_REQUEST")
    log_level: str = Field("INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False

    @validator("temp_max_age_seconds")
    def validate_max_age(cls, v: int) -> int:  # noqa: B902
        if v <= 0:
            raise ValueError("TEMP_MAX_AGE_SECONDS must be positive")
        return v

    @validator("max_files_per_request")
    def validate_max_files(cls, v: int) -> int:  # noqa: B902
        if v < 1:
            raise ValueError("MAX_FILES_PER_REQUEST must be at least 1")
        return v

    @property
    def temp_dir(self) -> Path:
        return Path(tempfile.gettempdir()) / self.temp_dir_name


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()


def should_relocate_working_files(settings: Optional[Settings] = None) -> bool:
    """
    Decide whether working files are moved aside instead of unlinked.

    Windows refuses to delete files that another handle still has open, so
    there the files are parked in the temp directory and swept later.
    """
    settings = settings or get_settings()
    if settings.relocate_working_files is not None:
        return settings.relocate_working_files
    return os.name == "nt"
