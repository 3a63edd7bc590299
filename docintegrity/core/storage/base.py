# (c) Copyright Datacraft, 2026
"""Abstract storage backend interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class UploadResult:
	"""What a backend reports back after a successful write."""
	key: str
	etag: str
	size: int = 0
	version_id: str | None = None


class StorageBackend(ABC):
	"""Abstract base class for the object stores behind each tier.

	Implementations raise ``ObjectNotFoundError`` for absent keys and
	``StorageError`` for everything else. Timeouts are applied by the caller.
	"""

	name: str = "storage"

	@abstractmethod
	async def put(
		self,
		key: str,
		data: bytes,
		content_type: str | None = None,
		metadata: dict[str, str] | None = None,
	) -> UploadResult:
		"""Store `data` under `key`, replacing any previous object."""
		...

	@abstractmethod
	async def get(self, key: str) -> bytes:
		"""Return the bytes stored under `key` or raise ``ObjectNotFoundError``."""
		...

	@abstractmethod
	async def exists(self, key: str) -> bool:
		"""True when `key` is present in this store."""
		...

	@abstractmethod
	async def delete(self, key: str) -> None:
		"""Delete an object. Deleting an absent key is not an error."""
		...

	async def ping(self) -> bool:
		"""Cheap reachability probe used by the monitoring endpoint."""
		try:
			await self.exists("__healthcheck__")
			return True
		except StorageError:
			return False


class ObjectNotFoundError(Exception):
	"""The key is absent from the store."""

	def __init__(self, key: str):
		self.key = key
		super().__init__(f"Object not found: {key}")


class StorageError(Exception):
	"""The store could not complete an operation."""

	def __init__(self, message: str, cause: Exception | None = None):
		self.cause = cause
		super().__init__(message)
