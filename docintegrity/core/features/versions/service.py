# (c) Copyright Datacraft, 2026
"""
Version history manager.

The version ledger is append-only: restoring an old version copies its
content forward as a new version. Every mutation runs under the
document's lock so concurrent writers get contiguous version numbers.
"""
import logging
from dataclasses import dataclass, field
from typing import Sequence

from uuid_extensions import uuid7str

from docintegrity.core.exceptions import (
	ChecksumMismatchError,
	NotFoundError,
	StorageUnavailableError,
)
from docintegrity.core.features.document.db.api import DocumentDB
from docintegrity.core.features.document.db.orm import Document, DocumentVersion, StorageLocation
from docintegrity.core.features.gateway.service import READ_ORDER, StorageGateway
from docintegrity.core.locks import DocumentLocks
from docintegrity.core.types import TierName
from docintegrity.core.utils.hash import compute_checksum

logger = logging.getLogger(__name__)


@dataclass
class PruneResult:
	deleted: list[int] = field(default_factory=list)
	kept: list[int] = field(default_factory=list)


class VersionHistoryManager:

	def __init__(
		self,
		gateway: StorageGateway,
		documents: DocumentDB,
		locks: DocumentLocks,
		lock_timeout: float | None = None,
	):
		self.gateway = gateway
		self.documents = documents
		self.locks = locks
		self.lock_timeout = lock_timeout

	async def history(self, document_id: str) -> Sequence[DocumentVersion]:
		"""Versions newest first."""
		await self.documents.require_document(document_id)
		return await self.documents.list_versions(document_id)

	async def create_document(
		self,
		display_name: str,
		data: bytes,
		actor_id: str | None = None,
		notes: str | None = None,
		mime_type: str | None = None,
	) -> Document:
		"""Commit version 1 of a new document."""
		document_id = uuid7str()
		async with self.locks.hold(document_id, timeout=self.lock_timeout):
			await self.gateway.commit_version(
				document_id,
				data,
				version_number=1,
				created_by=actor_id,
				notes=notes,
				display_name=display_name,
				mime_type=mime_type,
			)
		logger.info(f"Created document {document_id} ({display_name})")
		return await self.documents.require_document(document_id)

	async def create_version(
		self,
		document_id: str,
		data: bytes,
		actor_id: str | None = None,
		notes: str | None = None,
	) -> int:
		"""Append a version and return its number."""
		await self.documents.require_document(document_id)
		async with self.locks.hold(document_id, timeout=self.lock_timeout):
			return await self.create_version_locked(document_id, data, actor_id, notes)

	async def create_version_locked(
		self,
		document_id: str,
		data: bytes,
		actor_id: str | None,
		notes: str | None,
		restored_from: int | None = None,
	) -> int:
		"""Commit the next contiguous version. The caller holds the lock."""
		version_number = await self.documents.next_version_number(document_id)
		version = await self.gateway.commit_version(
			document_id,
			data,
			version_number=version_number,
			created_by=actor_id,
			notes=notes,
			restored_from=restored_from,
		)
		return version.version_number

	async def read_version(self, version: DocumentVersion) -> bytes:
		"""
		Bytes of ``version`` that match its recorded checksum.

		Each tier is tried in read order; a corrupt copy in one tier does not
		hide a good copy in the other.

		Raises:
			ChecksumMismatchError: every readable copy is corrupt
			NotFoundError: no tier has the version's object
			StorageUnavailableError: no tier answered
		"""
		mismatch: ChecksumMismatchError | None = None
		unavailable: StorageUnavailableError | None = None

		for tier in READ_ORDER:
			try:
				read = await self.gateway.read_first(
					[StorageLocation(tier, version.storage_key)],
					document_id=version.document_id,
				)
			except NotFoundError:
				continue
			except StorageUnavailableError as e:
				unavailable = e
				continue

			digest = compute_checksum(read.data)
			if digest == version.checksum:
				return read.data
			mismatch = ChecksumMismatchError(version.document_id, version.checksum, digest)

		if mismatch is not None:
			raise mismatch
		if unavailable is not None:
			raise unavailable
		raise NotFoundError(version.document_id, version.storage_key)

	async def restore(
		self,
		document_id: str,
		target_version: int,
		actor_id: str | None = None,
		notes: str | None = None,
	) -> int:
		"""
		Copy ``target_version`` forward as a new version.

		Raises:
			VersionNotFoundError: no such version
			NotFoundError: the version's object is gone from every tier
			ChecksumMismatchError: the stored bytes no longer match the
				version's checksum; corrupt history is never restored
		"""
		await self.documents.require_document(document_id)
		async with self.locks.hold(document_id, timeout=self.lock_timeout):
			return await self._restore_locked(document_id, target_version, actor_id, notes)

	async def _restore_locked(
		self,
		document_id: str,
		target_version: int,
		actor_id: str | None,
		notes: str | None,
	) -> int:
		version = await self.documents.get_version(document_id, target_version)
		data = await self.read_version(version)
		new_number = await self.create_version_locked(
			document_id,
			data,
			actor_id,
			notes or f"Restored from version {target_version}",
			restored_from=target_version,
		)
		logger.info(f"Restored {document_id} v{target_version} as v{new_number}")
		return new_number

	async def prune(self, document_id: str, keep_latest_n: int) -> PruneResult:
		"""
		Delete versions older than the ``keep_latest_n`` most recent.

		The document's current version is always kept. Storage objects are
		removed from both tiers before the rows.
		"""
		if keep_latest_n < 1:
			raise ValueError("keep_latest_n must be at least 1")

		await self.documents.require_document(document_id)
		async with self.locks.hold(document_id, timeout=self.lock_timeout):
			document = await self.documents.require_document(document_id)
			versions = await self.documents.list_versions(document_id)
			result = PruneResult()
			protected = {document.current_version}

			for index, version in enumerate(versions):
				if index < keep_latest_n or version.version_number in protected:
					result.kept.append(version.version_number)
					continue
				for tier in (TierName.PRIMARY, TierName.CACHE):
					try:
						await self.gateway.delete_from(tier, version.storage_key)
					except StorageUnavailableError as e:
						# The row is kept so the object can be pruned later
						logger.warning(f"Prune of {version.storage_key} failed: {e}")
						break
				else:
					result.deleted.append(version.version_number)
					continue
				result.kept.append(version.version_number)

			await self.documents.delete_versions(document_id, result.deleted)

		logger.info(f"Pruned {len(result.deleted)} versions of {document_id}, kept {len(result.kept)}")
		return result
