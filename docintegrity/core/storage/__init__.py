# (c) Copyright Datacraft, 2026
"""Storage backend abstraction layer."""
from .base import ObjectNotFoundError, StorageBackend, StorageError, UploadResult
from .factory import create_cache_backend, create_primary_backend

__all__ = [
	"ObjectNotFoundError",
	"StorageBackend",
	"StorageError",
	"UploadResult",
	"create_cache_backend",
	"create_primary_backend",
]
