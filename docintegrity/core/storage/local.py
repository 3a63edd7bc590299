# (c) Copyright Datacraft, 2026
"""Local filesystem storage backend, used for the cache tier."""
import os
from pathlib import Path

import aiofiles
import aiofiles.os
from uuid_extensions import uuid7str

from docintegrity.core.utils.hash import compute_checksum

from .base import (
	ObjectNotFoundError,
	StorageBackend,
	StorageError,
	UploadResult,
)

PARTIAL_SUFFIX = ".part"


class LocalStorageBackend(StorageBackend):
	"""Objects stored as plain files under ``base_path``.

	A write lands in a hidden ``.part`` sibling first and is renamed over
	the target, so readers see either the old or the new bytes. The partial
	file is removed on every exit path.
	"""

	name = "local"

	def __init__(self, base_path: str | Path):
		self.base_path = Path(base_path)
		self.base_path.mkdir(parents=True, exist_ok=True)

	def _path(self, key: str) -> Path:
		relative = Path(key.lstrip("/"))
		if ".." in relative.parts or not relative.parts:
			raise StorageError(f"Invalid key: {key!r}")
		return self.base_path / relative

	async def put(
		self,
		key: str,
		data: bytes,
		content_type: str | None = None,
		metadata: dict[str, str] | None = None,
	) -> UploadResult:
		target = self._path(key)
		partial = target.with_name(f".{target.name}.{uuid7str()}{PARTIAL_SUFFIX}")
		try:
			target.parent.mkdir(parents=True, exist_ok=True)
			async with aiofiles.open(partial, "wb") as f:
				await f.write(data)
				await f.flush()
			await aiofiles.os.replace(partial, target)
		except OSError as e:
			raise StorageError(f"Writing {key} to {self.base_path} failed", e) from e
		finally:
			if partial.exists():
				await aiofiles.os.remove(partial)

		return UploadResult(key=key, etag=compute_checksum(data), size=len(data))

	async def get(self, key: str) -> bytes:
		target = self._path(key)
		try:
			async with aiofiles.open(target, "rb") as f:
				return await f.read()
		except (FileNotFoundError, IsADirectoryError):
			raise ObjectNotFoundError(key)
		except OSError as e:
			raise StorageError(f"Reading {key} from {self.base_path} failed", e) from e

	async def exists(self, key: str) -> bool:
		return self._path(key).is_file()

	async def delete(self, key: str) -> None:
		try:
			await aiofiles.os.remove(self._path(key))
		except FileNotFoundError:
			return
		except OSError as e:
			raise StorageError(f"Deleting {key} from {self.base_path} failed", e) from e

	async def ping(self) -> bool:
		return self.base_path.is_dir() and os.access(self.base_path, os.W_OK)
