# (c) Copyright Datacraft, 2026
"""Tests for the per-document lock table."""
import asyncio

import pytest
from redis.exceptions import LockNotOwnedError

from docintegrity.core.exceptions import AlreadyInFlightError, StorageTimeoutError
from docintegrity.core.locks import InMemoryDocumentLocks, RedisDocumentLocks


async def test_single_flight_rejects_second_holder():
	locks = InMemoryDocumentLocks()

	async with locks.single_flight("doc"):
		assert await locks.is_locked("doc")
		with pytest.raises(AlreadyInFlightError):
			async with locks.single_flight("doc"):
				pass

	assert not await locks.is_locked("doc")


async def test_locks_are_per_document():
	locks = InMemoryDocumentLocks()

	async with locks.single_flight("a"):
		async with locks.single_flight("b"):
			assert await locks.is_locked("a")
			assert await locks.is_locked("b")


async def test_hold_waits_for_the_lock():
	locks = InMemoryDocumentLocks()
	order = []

	async def writer(name):
		async with locks.hold("doc"):
			order.append(f"{name} start")
			await asyncio.sleep(0.01)
			order.append(f"{name} end")

	await asyncio.gather(writer("one"), writer("two"))

	assert order == ["one start", "one end", "two start", "two end"]


async def test_hold_times_out():
	locks = InMemoryDocumentLocks()

	async with locks.single_flight("doc"):
		with pytest.raises(StorageTimeoutError):
			async with locks.hold("doc", timeout=0.01):
				pass


async def test_single_flight_rejected_while_held():
	locks = InMemoryDocumentLocks()

	async with locks.hold("doc"):
		with pytest.raises(AlreadyInFlightError):
			async with locks.single_flight("doc"):
				pass


async def test_entries_are_released():
	locks = InMemoryDocumentLocks()

	async with locks.hold("doc"):
		pass
	with pytest.raises(RuntimeError):
		async with locks.single_flight("doc"):
			raise RuntimeError("boom")

	assert locks._entries == {}


class FakeRedisLock:
	def __init__(self, client: "FakeRedis", name: str, blocking: bool):
		self.client = client
		self.name = name
		self.blocking = blocking

	async def acquire(self) -> bool:
		if self.name in self.client.held:
			return False
		self.client.held.add(self.name)
		return True

	async def release(self) -> None:
		if self.name not in self.client.held:
			raise LockNotOwnedError("Cannot release a lock that's no longer owned")
		self.client.held.discard(self.name)


class FakeRedis:
	"""Just enough of redis.asyncio.Redis for the lock table."""

	def __init__(self):
		self.held: set[str] = set()
		self.closed = False

	def lock(self, name, timeout=None, blocking=True, blocking_timeout=None):
		return FakeRedisLock(self, name, blocking)

	async def exists(self, name) -> int:
		return int(name in self.held)

	async def aclose(self) -> None:
		self.closed = True


async def test_redis_single_flight_rejects_second_holder():
	locks = RedisDocumentLocks(client=FakeRedis())

	async with locks.single_flight("doc"):
		assert await locks.is_locked("doc")
		with pytest.raises(AlreadyInFlightError):
			async with locks.single_flight("doc"):
				pass

	assert not await locks.is_locked("doc")


async def test_redis_hold_times_out_while_held():
	locks = RedisDocumentLocks(client=FakeRedis())

	async with locks.single_flight("doc"):
		with pytest.raises(StorageTimeoutError):
			async with locks.hold("doc", timeout=0.01):
				pass


async def test_redis_expired_lease_does_not_mask_result():
	client = FakeRedis()
	locks = RedisDocumentLocks(client=client, lease_seconds=1)

	async with locks.single_flight("doc"):
		client.held.clear()

	with pytest.raises(ValueError, match="recovery failed"):
		async with locks.hold("doc"):
			client.held.clear()
			raise ValueError("recovery failed")


async def test_redis_locks_need_a_connection():
	with pytest.raises(ValueError):
		RedisDocumentLocks()

	client = FakeRedis()
	await RedisDocumentLocks(client=client).close()
	assert client.closed
