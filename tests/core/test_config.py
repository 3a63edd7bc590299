# (c) Copyright Datacraft, 2026
from docintegrity.core.config import Settings
from docintegrity.core.types import LockBackend, PrimaryBackend


def test_defaults():
	settings = Settings()

	assert settings.primary_backend is PrimaryBackend.S3
	assert settings.lock_backend is LockBackend.MEMORY
	assert settings.retry_max_attempts == 5
	assert settings.checksum_audit_on_read is True


def test_env_prefix(monkeypatch):
	monkeypatch.setenv("DI_RETRY_MAX_ATTEMPTS", "9")
	monkeypatch.setenv("DI_PRIMARY_BACKEND", "local")

	settings = Settings()

	assert settings.retry_max_attempts == 9
	assert settings.primary_backend is PrimaryBackend.LOCAL


def test_async_db_url_rewrites_drivers():
	assert Settings(db_url="postgresql://u:p@db/di").async_db_url == "postgresql+asyncpg://u:p@db/di"
	assert Settings(db_url="sqlite:///./x.db").async_db_url == "sqlite+aiosqlite:///./x.db"
