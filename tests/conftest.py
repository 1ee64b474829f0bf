import base64
import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add the parent directory to sys.path so we can import main
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from config import Settings
from main import create_app

ADMIN_USER = "tester"
ADMIN_PASS = "s3cret:pass"

# Smallest payloads that carry the right magic bytes
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00" + os.urandom(256) + b"\xff\xd9"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + os.urandom(128)


def basic_auth(user=ADMIN_USER, password=ADMIN_PASS):
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        upload_dir=tmp_path / "uploads",
        base_url="http://images.test/",
        admin_user=ADMIN_USER,
        admin_pass=ADMIN_PASS,
        max_upload_size=64 * 1024,
        log_dir=tmp_path / "logs",
        _env_file=None,
    )


@pytest.fixture
def upload_dir(settings):
    return settings.upload_dir


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return basic_auth()


@pytest.fixture
def upload(client, auth_headers):
    """Upload helper returning the raw response."""
    def _upload(content=JPEG_BYTES, filename="photo.JPG", content_type="image/jpeg", image_id=None, query_id=None,
                headers=None):
        data = {"id": image_id} if image_id is not None else None
        params = {"id": query_id} if query_id is not None else None
        return client.post(
            "/upload",
            files={"file": (filename, content, content_type)},
            data=data,
            params=params,
            headers=auth_headers if headers is None else headers,
        )
    return _upload


def stored_files(upload_dir):
    """Files in the upload directory, ignoring the temp directory."""
    return sorted(p.name for p in upload_dir.iterdir() if p.is_file())


@pytest.fixture
def jpeg_bytes():
    return JPEG_BYTES


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture(name="stored_files")
def stored_files_fixture(upload_dir):
    return lambda: stored_files(upload_dir)


@pytest.fixture
def make_auth():
    return basic_auth
