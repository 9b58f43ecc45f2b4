"""Shared fixtures for PixelVault tests."""

import pytest
from fastapi.testclient import TestClient

from pixelvault.app.core.config import Settings
from pixelvault.app.main import create_app
from tests.helpers import PASSWORD, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        upload_password=PASSWORD,
        storage_dir=str(tmp_path / "storage"),
        redis_enabled=False,
    )


@pytest.fixture
def client(app_settings):
    app = create_app(app_settings)
    with TestClient(app) as test_client:
        yield test_client
