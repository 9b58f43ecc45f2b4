import pytest
from pydantic import ValidationError

from pixelvault.app.core.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.port == 3000
    assert settings.storage_dir == "./storage"
    assert settings.password_max_failures == 5
    assert settings.lock_duration_seconds == 3600
    assert settings.upload_rate_limit_max_requests == 10
    assert settings.upload_rate_limit_window_ms == 60000


def test_values_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("UPLOAD_PASSWORD", "  hunter2\n")
    monkeypatch.setenv("PASSWORD_MAX_FAILURES", "3")
    monkeypatch.setenv("STORAGE_DIR", "/var/lib/pixelvault")

    settings = Settings(_env_file=None)

    assert settings.upload_password == "hunter2"
    assert settings.password_max_failures == 3
    assert settings.storage_dir == "/var/lib/pixelvault"


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("password_max_failures", 0),
        ("lock_duration_seconds", -1),
        ("upload_rate_limit_max_requests", 0),
        ("read_rate_limit_window_ms", 999),
        ("max_upload_bytes", 0),
    ],
)
def test_invalid_limits_rejected(field: str, value: int) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_cors_origins_accepts_host_without_json(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "43.163.94.63")

    settings = Settings(_env_file=None)
    assert "http://43.163.94.63" in settings.cors_origins


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["http://localhost:5173"]', ["http://localhost:5173"]),
        ("*", ["*"]),
        ("[]", []),
        ("", []),
    ],
)
def test_cors_origins_parsing_variants(monkeypatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("CORS_ORIGINS", raw)

    settings = Settings(_env_file=None)
    assert settings.cors_origins == expected
