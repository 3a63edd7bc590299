# (c) Copyright Datacraft, 2026
"""Application settings configuration."""
from pathlib import Path

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from docintegrity.core.types import LockBackend, PrimaryBackend


class Settings(BaseSettings):
	db_url: str = "sqlite+aiosqlite:///./docintegrity.db"
	db_ssl: bool = False
	log_config: Path | None = Path("log_config.yaml")
	api_prefix: str = ''

	# Primary (remote object store) tier
	primary_backend: PrimaryBackend = PrimaryBackend.S3
	primary_local_path: Path = Path("storage/primary")
	s3_bucket: str | None = None
	s3_prefix: str = ''
	s3_region: str = 'us-east-1'
	s3_endpoint_url: str | None = None
	s3_access_key_id: str | None = None
	s3_secret_access_key: str | None = None

	# Secondary (local cache) tier
	cache_path: Path = Path("storage/cache")

	storage_timeout_seconds: float = Field(gt=0, default=30.0)
	checksum_audit_on_read: bool = True

	# Scanning
	scan_concurrency: int = Field(gt=0, default=8)
	scan_verify_checksums: bool = True

	# Retry queue
	retry_concurrency: int = Field(gt=0, default=4)
	retry_base_delay_seconds: float = Field(ge=0, default=30.0)
	retry_max_delay_seconds: float = Field(ge=0, default=3600.0)
	retry_max_attempts: int = Field(gt=0, default=5)
	retry_attempt_timeout_seconds: float = Field(gt=0, default=120.0)
	retry_sweep_interval_seconds: float = Field(gt=0, default=60.0)
	retry_sweep_enabled: bool = True

	# Per-document locks
	lock_backend: LockBackend = LockBackend.MEMORY
	redis_url: str | None = None
	lock_lease_seconds: float = Field(gt=0, default=900.0)

	# Remote user config
	remote_user_header: str = "X-Forwarded-User"

	@computed_field
	@property
	def async_db_url(self) -> str:
		url = str(self.db_url)
		if "postgresql+psycopg://" in url:
			return url.replace("postgresql+psycopg://", "postgresql+asyncpg://", 1)
		elif url.startswith("postgresql://"):
			return url.replace("postgresql://", "postgresql+asyncpg://", 1)
		elif url.startswith("sqlite:///"):
			return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
		return url

	model_config = SettingsConfigDict(env_prefix='di_')


settings = Settings()


def get_settings() -> Settings:
	return settings
