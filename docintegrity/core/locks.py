# (c) Copyright Datacraft, 2026
"""Per-document lock table.

Two ways to take a document's lock:

* ``single_flight`` never waits. If the lock is taken it raises
  ``AlreadyInFlightError``. Used by recovery.
* ``hold`` waits for the lock. Used by every other writer (version commits,
  restores, prunes, rehydration) so they serialise behind a recovery
  instead of racing it on the same storage key.

The in-memory table is enough for a single process. Multi-instance
deployments use the Redis backend.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis.asyncio import Redis
from redis.exceptions import LockNotOwnedError

from docintegrity.core.exceptions import AlreadyInFlightError, StorageTimeoutError

logger = logging.getLogger(__name__)


class DocumentLocks(ABC):

	@abstractmethod
	def single_flight(self, document_id: str) -> "AsyncIterator[None]":
		...

	@abstractmethod
	def hold(self, document_id: str, timeout: float | None = None) -> "AsyncIterator[None]":
		...

	@abstractmethod
	async def is_locked(self, document_id: str) -> bool:
		...

	async def close(self) -> None:
		return None


class _Entry:
	__slots__ = ("lock", "users")

	def __init__(self):
		self.lock = asyncio.Lock()
		self.users = 0


class InMemoryDocumentLocks(DocumentLocks):
	"""asyncio.Lock per document id, dropped when nobody references it."""

	def __init__(self):
		self._entries: dict[str, _Entry] = {}

	def _checkout(self, document_id: str) -> _Entry:
		entry = self._entries.get(document_id)
		if entry is None:
			entry = self._entries[document_id] = _Entry()
		entry.users += 1
		return entry

	def _checkin(self, document_id: str, entry: _Entry) -> None:
		entry.users -= 1
		if entry.users == 0 and not entry.lock.locked():
			self._entries.pop(document_id, None)

	@asynccontextmanager
	async def single_flight(self, document_id: str) -> AsyncIterator[None]:
		# Held or waited on by another writer
		if document_id in self._entries:
			raise AlreadyInFlightError(document_id)

		entry = self._checkout(document_id)
		try:
			# Nothing yields between the check above and this acquire
			await entry.lock.acquire()
			try:
				yield
			finally:
				entry.lock.release()
		finally:
			self._checkin(document_id, entry)

	@asynccontextmanager
	async def hold(self, document_id: str, timeout: float | None = None) -> AsyncIterator[None]:
		entry = self._checkout(document_id)
		try:
			try:
				await asyncio.wait_for(entry.lock.acquire(), timeout)
			except asyncio.TimeoutError as e:
				raise StorageTimeoutError(
					f"Timed out waiting for lock on {document_id}", document_id
				) from e
			try:
				yield
			finally:
				entry.lock.release()
		finally:
			self._checkin(document_id, entry)

	async def is_locked(self, document_id: str) -> bool:
		entry = self._entries.get(document_id)
		return entry is not None and entry.lock.locked()


class RedisDocumentLocks(DocumentLocks):
	"""Distributed lock table backed by redis-py's asyncio Lock."""

	def __init__(
		self,
		redis_url: str | None = None,
		lease_seconds: float = 900.0,
		namespace: str = "docintegrity:lock",
		client: Redis | None = None,
	):
		if client is None:
			if not redis_url:
				raise ValueError("RedisDocumentLocks requires redis_url or client")
			client = Redis.from_url(redis_url)
		self.client = client
		self.lease_seconds = lease_seconds
		self.namespace = namespace

	def _lock(self, document_id: str, blocking: bool, timeout: float | None):
		return self.client.lock(
			f"{self.namespace}:{document_id}",
			timeout=self.lease_seconds,
			blocking=blocking,
			blocking_timeout=timeout,
		)

	async def _release(self, lock, document_id: str) -> None:
		try:
			await lock.release()
		except LockNotOwnedError:
			# Lease ran out before the holder finished
			logger.warning(
				f"Lock on {document_id} expired before release (lease {self.lease_seconds}s)"
			)

	@asynccontextmanager
	async def single_flight(self, document_id: str) -> AsyncIterator[None]:
		lock = self._lock(document_id, blocking=False, timeout=None)
		if not await lock.acquire():
			raise AlreadyInFlightError(document_id)
		try:
			yield
		finally:
			await self._release(lock, document_id)

	@asynccontextmanager
	async def hold(self, document_id: str, timeout: float | None = None) -> AsyncIterator[None]:
		lock = self._lock(document_id, blocking=True, timeout=timeout)
		if not await lock.acquire():
			raise StorageTimeoutError(
				f"Timed out waiting for lock on {document_id}", document_id
			)
		try:
			yield
		finally:
			await self._release(lock, document_id)

	async def is_locked(self, document_id: str) -> bool:
		return bool(await self.client.exists(f"{self.namespace}:{document_id}"))

	async def close(self) -> None:
		await self.client.aclose()
