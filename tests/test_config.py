import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
from pydantic import ValidationError

from config import Settings
from logger_config import LOGGER_NAME, setup_logger


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("PORT", "BASE_URL", "UPLOAD_DIR", "TEMP_DIR", "ADMIN_USER", "ADMIN_PASS",
                 "MAX_UPLOAD_SIZE", "LOG_DIR", "LOG_LEVEL", "CORS_ORIGINS", "HOST"):
        monkeypatch.delenv(name, raising=False)


def test_defaults(clean_env):
    settings = Settings(_env_file=None)
    assert settings.port == 3000
    assert settings.base_url == "http://localhost:3000"
    assert settings.upload_dir == Path("./uploads")
    assert settings.temp_dir == Path("./uploads") / ".tmp"
    assert settings.admin_user == "admin"
    assert settings.admin_pass == "password"
    assert settings.max_upload_size == 10 * 1024 * 1024
    assert settings.cors_origin_list == ["*"]


def test_environment_overrides(clean_env, monkeypatch, tmp_path):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "store"))
    monkeypatch.setenv("ADMIN_PASS", "hunter2")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)
    assert settings.base_url == "http://localhost:8080"
    assert settings.temp_dir == tmp_path / "store" / ".tmp"
    assert settings.admin_pass == "hunter2"
    assert settings.cors_origin_list == ["https://a.example", "https://b.example"]
    assert settings.log_level == "DEBUG"


def test_env_file_is_loaded(clean_env, monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("BASE_URL=https://img.example/\nADMIN_USER=root\nMAX_UPLOAD_SIZE=2048\n")

    settings = Settings(_env_file=env_file)
    assert settings.base_url == "https://img.example"
    assert settings.admin_user == "root"
    assert settings.max_upload_size == 2048

    # Real environment variables take precedence over the file
    monkeypatch.setenv("ADMIN_USER", "from-env")
    assert Settings(_env_file=env_file).admin_user == "from-env"


def test_max_upload_size_must_be_positive(clean_env):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, max_upload_size=0)


def test_setup_logger_follows_new_directory(tmp_path):
    first = setup_logger(tmp_path / "one", "INFO")
    second = setup_logger(tmp_path / "two", "WARNING")
    assert first is second is logging.getLogger(LOGGER_NAME)

    file_handlers = [h for h in second.handlers if isinstance(h, RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert Path(file_handlers[0].baseFilename).resolve() == (tmp_path / "two" / "image_host.log").resolve()
    assert len(second.handlers) == 2

    # Same arguments leave the handlers in place
    handlers = list(second.handlers)
    setup_logger(tmp_path / "two", "WARNING")
    assert second.handlers == handlers


def test_app_logs_to_configured_directory(client, settings):
    assert (settings.log_dir / "image_host.log").exists()
