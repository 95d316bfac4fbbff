import pytest

from config import Settings, ConfigError
from db.db import minio_endpoint


def test_missing_required_values(monkeypatch):
    monkeypatch.delenv("JWT_SECRET_KEY")
    monkeypatch.delenv("MINIO_BUCKET")

    with pytest.raises(ConfigError) as exc:
        Settings()

    assert "JWT_SECRET_KEY" in str(exc.value)
    assert "MINIO_BUCKET" in str(exc.value)


def test_defaults_and_conversion(monkeypatch):
    monkeypatch.setenv("TYPING_TIMEOUT_SECONDS", "1.5")
    monkeypatch.delenv("MESSAGES_PAGE_SIZE", raising=False)

    settings = Settings()

    assert settings.TYPING_TIMEOUT_SECONDS == 1.5
    assert settings.MESSAGES_PAGE_SIZE == 50
    assert settings.JWT_ALGORITHM == "HS256"


def test_invalid_number(monkeypatch):
    monkeypatch.setenv("DB_MAX_POOL_SIZE", "lots")

    with pytest.raises(ConfigError):
        Settings()


def test_public_url_falls_back_to_server(monkeypatch):
    monkeypatch.setenv("MINIO_SERVER", "storage.local:9000")
    monkeypatch.delenv("MINIO_PUBLIC_URL", raising=False)
    assert Settings().MINIO_PUBLIC_URL == "http://storage.local:9000"

    monkeypatch.setenv("MINIO_PUBLIC_URL", "https://cdn.example.com/")
    assert Settings().MINIO_PUBLIC_URL == "https://cdn.example.com"


def test_minio_endpoint():
    assert minio_endpoint("https://s3.example.com") == ("s3.example.com", True)
    assert minio_endpoint("http://localhost:9000") == ("localhost:9000", False)
    assert minio_endpoint("localhost:9000") == ("localhost:9000", False)
