import pytest
from fastapi.testclient import TestClient

from dicom_service.config import Settings
from dicom_service.main import create_app
from dicom_service.storage import BlobStore


@pytest.fixture
def settings(tmp_path):
    return Settings(upload_dir=tmp_path / "uploads")


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def store(tmp_path):
    blob_store = BlobStore(tmp_path / "blobs")
    blob_store.ensure_root()
    return blob_store
