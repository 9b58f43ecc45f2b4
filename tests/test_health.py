import os
import shutil

import pytest
from fastapi.testclient import TestClient

from pixelvault.app.db.store import InMemoryRecordStore
from pixelvault.app.main import create_app


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["components"]["storage"] == {"status": "ok"}
    assert data["components"]["rate_limiter"]["backend"] == "memory"


def test_health_reports_missing_storage(client, app_settings):
    shutil.rmtree(app_settings.storage_dir)

    data = client.get("/health").json()

    assert data["status"] == "degraded"
    assert data["components"]["storage"] == {"status": "error"}


def test_storage_directory_created_on_startup(app_settings):
    with TestClient(create_app(app_settings)):
        pass

    assert os.path.isdir(app_settings.storage_dir)


def test_custom_store(app_settings):
    store = InMemoryRecordStore()
    with TestClient(create_app(app_settings, store=store)) as client:
        assert client.app.state.store is store
        assert client.get("/health").json()["status"] == "ok"


def test_refuses_to_start_without_password(app_settings):
    app_settings.upload_password = ""

    with pytest.raises(RuntimeError, match="UPLOAD_PASSWORD"):
        with TestClient(create_app(app_settings)):
            pass
