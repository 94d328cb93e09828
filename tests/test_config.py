from types import SimpleNamespace

import pydantic
import pytest

from media_upload_service.config import Settings, should_relocate_working_files


def test_defaults():
    settings = Settings()
    assert settings.max_files_per_request == 4
    assert settings.temp_max_age_seconds == 24 * 60 * 60
    assert settings.temp_dir.name == "menu-upload-service-temp"


def test_relocation_flag_overrides_platform():
    assert should_relocate_working_files(Settings(relocate_working_files=True)) is True
    assert should_relocate_working_files(Settings(relocate_working_files=False)) is False


def test_relocation_defaults_to_platform(monkeypatch):
    settings = Settings(relocate_working_files=None)
    monkeypatch.setattr("media_upload_service.config.os", SimpleNamespace(name="nt"))
    assert should_relocate_working_files(settings) is True
    monkeypatch.setattr("media_upload_service.config.os", SimpleNamespace(name="posix"))
    assert should_relocate_working_files(settings) is False


@pytest.mark.parametrize("field,value", [("temp_max_age_seconds", 0), ("max_files_per_request", 0)])
def test_invalid_limits_are_rejected(field, value):
    with pytest.raises(pydantic.ValidationError):
        Settings(**{field: value})


def test_main_server_token_reads_documented_env_var(monkeypatch):
    monkeypatch.setenv("MAIN_SERVER_JWT_SECRET", "s3cret")
    assert Settings().main_server_jwt == "s3cret"


def test_main_server_token_defaults_to_none(monkeypatch):
    monkeypatch.delenv("MAIN_SERVER_JWT_SECRET", raising=False)
    monkeypatch.delenv("MAIN_SERVER_JWT", raising=False)
    assert Settings(_env_file=None).main_server_jwt is None
