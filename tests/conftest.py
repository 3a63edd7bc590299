# (c) Copyright Datacraft, 2026
import asyncio
import hashlib

import pytest
from httpx import ASGITransport, AsyncClient

from docintegrity.core.config import Settings
from docintegrity.core.container import Container
from docintegrity.core.db.engine import create_all
from docintegrity.core.storage.base import (
	ObjectNotFoundError,
	StorageBackend,
	StorageError,
	UploadResult,
)


class MemoryStorageBackend(StorageBackend):
	"""Dict backed tier with switchable faults."""

	def __init__(self, name: str = "memory"):
		self.name = name
		self.objects: dict[str, bytes] = {}
		self.failing: set[str] = set()
		self.delay = 0.0
		self.calls: list[tuple[str, str]] = []

	def fail(self, *operations: str) -> None:
		"""Make the given operations raise StorageError (``*`` for all)."""
		self.failing.update(operations or ("*",))

	def heal(self) -> None:
		self.failing.clear()
		self.delay = 0.0

	def corrupt(self, key: str, data: bytes = b"tampered out of band") -> None:
		self.objects[key] = data

	async def _enter(self, operation: str, key: str) -> None:
		self.calls.append((operation, key))
		if self.delay:
			await asyncio.sleep(self.delay)
		if operation in self.failing or "*" in self.failing:
			raise StorageError(f"{self.name}: injected {operation} failure for {key}")

	async def put(self, key, data, content_type=None, metadata=None):
		await self._enter("put", key)
		self.objects[key] = bytes(data)
		return UploadResult(key=key, etag=hashlib.md5(data).hexdigest(), size=len(data))

	async def get(self, key):
		await self._enter("get", key)
		if key not in self.objects:
			raise ObjectNotFoundError(key)
		return self.objects[key]

	async def exists(self, key):
		await self._enter("exists", key)
		return key in self.objects

	async def delete(self, key):
		await self._enter("delete", key)
		self.objects.pop(key, None)


@pytest.fixture
def settings(tmp_path) -> Settings:
	return Settings(
		db_url=f"sqlite+aiosqlite:///{tmp_path / 'docintegrity.db'}",
		log_config=None,
		primary_backend="local",
		primary_local_path=tmp_path / "primary",
		cache_path=tmp_path / "cache",
		storage_timeout_seconds=2.0,
		retry_base_delay_seconds=0,
		retry_max_delay_seconds=0,
		retry_max_attempts=3,
		retry_attempt_timeout_seconds=5.0,
		retry_sweep_enabled=False,
		scan_concurrency=4,
		retry_concurrency=4,
	)


@pytest.fixture
def primary() -> MemoryStorageBackend:
	return MemoryStorageBackend("primary")


@pytest.fixture
def cache() -> MemoryStorageBackend:
	return MemoryStorageBackend("cache")


@pytest.fixture
async def container(settings, primary, cache):
	container = Container.build(settings, primary=primary, cache=cache)
	await create_all(container.engine)
	yield container
	await container.close()


@pytest.fixture
async def client(container):
	from docintegrity.app import create_app

	app = create_app(container=container)
	async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
		yield ac


@pytest.fixture
async def invoice(container):
	"""A committed single-version document."""
	return await container.versions.create_document(
		"invoice.pdf",
		b"%PDF-1.7 invoice 2026-0042",
		actor_id="alice",
		mime_type="application/pdf",
	)
