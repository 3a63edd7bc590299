# (c) Copyright Datacraft, 2026
"""Tests for the storage backends and factory."""
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

from docintegrity.core.storage import create_cache_backend, create_primary_backend
from docintegrity.core.storage.base import ObjectNotFoundError, StorageError
from docintegrity.core.storage.local import LocalStorageBackend
from docintegrity.core.storage.s3 import S3StorageBackend, _is_not_found
from docintegrity.core.utils.hash import calculate_file_checksum, compute_checksum


async def test_local_roundtrip(tmp_path):
	backend = LocalStorageBackend(tmp_path)

	result = await backend.put("documents/a/v1", b"content", content_type="application/pdf")

	assert result.size == 7
	assert await backend.exists("documents/a/v1")
	assert await backend.get("documents/a/v1") == b"content"
	assert calculate_file_checksum(tmp_path / "documents/a/v1") == compute_checksum(b"content")

	await backend.delete("documents/a/v1")
	assert not await backend.exists("documents/a/v1")
	with pytest.raises(ObjectNotFoundError):
		await backend.get("documents/a/v1")


async def test_local_delete_absent_is_noop(tmp_path):
	await LocalStorageBackend(tmp_path).delete("never/written")


async def test_local_rejects_parent_traversal(tmp_path):
	with pytest.raises(StorageError):
		await LocalStorageBackend(tmp_path / "cache").put("../escape", b"x")


async def test_local_failed_write_leaves_no_partial_file(tmp_path):
	backend = LocalStorageBackend(tmp_path)
	await backend.put("doc", b"original")

	with patch("aiofiles.os.replace", side_effect=OSError("disk full")):
		with pytest.raises(StorageError):
			await backend.put("doc", b"replacement")

	assert await backend.get("doc") == b"original"
	assert [p.name for p in tmp_path.iterdir() if p.name.endswith(".part")] == []


async def test_local_ping(tmp_path):
	assert await LocalStorageBackend(tmp_path).ping()


def test_s3_not_found_codes():
	missing = ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
	denied = ClientError({"Error": {"Code": "AccessDenied"}}, "GetObject")

	assert _is_not_found(missing)
	assert not _is_not_found(denied)
	assert not _is_not_found(ValueError())


def test_factory_builds_tiers(settings):
	primary = create_primary_backend(settings)
	cache = create_cache_backend(settings)

	assert isinstance(primary, LocalStorageBackend)
	assert isinstance(cache, LocalStorageBackend)
	assert cache.base_path == settings.cache_path


def test_factory_builds_s3(settings):
	s3_settings = settings.model_copy(update={"primary_backend": "s3", "s3_bucket": "docs"})

	backend = create_primary_backend(s3_settings)

	assert isinstance(backend, S3StorageBackend)
	assert backend.bucket == "docs"
