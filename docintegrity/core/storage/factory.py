# (c) Copyright Datacraft, 2026
"""Storage backend factory for the two tiers."""

from docintegrity.core.config import Settings
from docintegrity.core.types import PrimaryBackend

from .base import StorageBackend


def create_primary_backend(settings: Settings) -> StorageBackend:
	"""Create the primary (remote object store) tier from settings."""
	if settings.primary_backend == PrimaryBackend.S3:
		from .s3 import S3StorageBackend
		return S3StorageBackend(
			bucket=settings.s3_bucket or "",
			access_key_id=settings.s3_access_key_id,
			secret_access_key=settings.s3_secret_access_key,
			region=settings.s3_region,
			endpoint_url=settings.s3_endpoint_url,
			prefix=settings.s3_prefix,
		)

	elif settings.primary_backend == PrimaryBackend.LOCAL:
		from .local import LocalStorageBackend
		return LocalStorageBackend(base_path=settings.primary_local_path)

	else:
		raise ValueError(f"Unknown storage backend: {settings.primary_backend}")


def create_cache_backend(settings: Settings) -> StorageBackend:
	"""Create the secondary (local cache) tier from settings."""
	from .local import LocalStorageBackend
	return LocalStorageBackend(base_path=settings.cache_path)
