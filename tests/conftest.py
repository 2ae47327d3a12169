"""Shared pytest fixtures for all tests."""

import os
import tempfile

# Settings are read at import time; keep logs and default storage out of the working tree
_SANDBOX = tempfile.mkdtemp(prefix="chunked-upload-tests-")
os.environ.setdefault("CHUNKED_UPLOAD_LOG_DIR", os.path.join(_SANDBOX, "logs"))
os.environ.setdefault("CHUNKED_UPLOAD_UPLOAD_DIR", os.path.join(_SANDBOX, "uploads"))
os.environ.setdefault("CHUNKED_UPLOAD_CHUNK_DIR", os.path.join(_SANDBOX, "chunks"))

import pytest
from fastapi.testclient import TestClient

from chunked_upload.main import create_application
from chunked_upload.services.upload_service import UploadService, get_upload_service

MAX_UPLOAD_SIZE = 10 * 1024 * 1024
MAX_CHUNK_SIZE = 1024 * 1024


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def chunk_dir(tmp_path):
    return tmp_path / "chunks"


@pytest.fixture
def service(upload_dir, chunk_dir):
    """
    Isolated UploadService writing under tmp_path.

    A tiny merge buffer makes every chunk span several read blocks.
    """
    return UploadService(
        upload_dir=upload_dir,
        chunk_dir=chunk_dir,
        max_upload_size=MAX_UPLOAD_SIZE,
        max_chunk_size=MAX_CHUNK_SIZE,
        merge_buffer_size=4,
    )


@pytest.fixture
def registry(service):
    return service.registry


@pytest.fixture
def chunk_store(service):
    return service.chunk_store


@pytest.fixture
def client(service):
    """TestClient bound to a fresh application using the isolated service."""
    app = create_application()
    app.dependency_overrides[get_upload_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def chunks():
    """Three distinct payloads of different lengths."""
    return [b"alpha-", b"bravo-bravo-", b"charlie"]
