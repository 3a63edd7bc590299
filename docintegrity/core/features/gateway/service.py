# (c) Copyright Datacraft, 2026
"""
Tiered storage gateway.

Reads try the primary tier first and fall back to the cache tier. A
successful fallback read schedules a background rehydration of the tier
that missed. The write path records the checksum in the metadata store
before a version counts as committed.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, TypeVar

from docintegrity.core.exceptions import (
	AbandonedError,
	ChecksumMismatchError,
	NotFoundError,
	StorageTimeoutError,
	StorageUnavailableError,
)
from docintegrity.core.features.document.db.api import DocumentDB
from docintegrity.core.features.document.db.orm import Document, DocumentVersion, StorageLocation
from docintegrity.core.features.monitoring import metrics
from docintegrity.core.features.recovery.queue import RetryQueue
from docintegrity.core.locks import DocumentLocks
from docintegrity.core.storage.base import (
	ObjectNotFoundError,
	StorageBackend,
	StorageError,
	UploadResult,
)
from docintegrity.core.types import TierName
from docintegrity.core.utils.hash import compute_checksum

logger = logging.getLogger(__name__)

T = TypeVar("T")

READ_ORDER = (TierName.PRIMARY, TierName.CACHE)


def version_storage_key(document_id: str, version_number: int) -> str:
	return f"documents/{document_id}/v{version_number}"


@dataclass
class TierRead:
	"""Bytes returned by a read plus where they came from."""
	data: bytes
	tier: TierName
	key: str
	# Tiers that were tried before ``tier`` and did not produce the bytes
	missed: list[TierName] = field(default_factory=list)


class StorageGateway:
	"""Uniform get/put/exists over the primary and cache tiers."""

	def __init__(
		self,
		primary: StorageBackend,
		cache: StorageBackend,
		documents: DocumentDB,
		retry_queue: RetryQueue,
		locks: DocumentLocks,
		timeout: float = 30.0,
		checksum_audit: bool = True,
	):
		self.tiers: dict[TierName, StorageBackend] = {
			TierName.PRIMARY: primary,
			TierName.CACHE: cache,
		}
		self.documents = documents
		self.retry_queue = retry_queue
		self.locks = locks
		self.timeout = timeout
		self.checksum_audit = checksum_audit
		self._background: set[asyncio.Task] = set()

	# --- Single tier primitives ---

	async def _call(
		self,
		tier: TierName,
		operation: str,
		key: str,
		awaitable: Awaitable[T],
		timeout: float | None,
	) -> T:
		timeout = self.timeout if timeout is None else timeout
		try:
			return await asyncio.wait_for(awaitable, timeout)
		except asyncio.TimeoutError as e:
			raise StorageTimeoutError(
				f"{operation} {key} on {tier.value} tier timed out after {timeout}s"
			) from e
		except ObjectNotFoundError:
			raise
		except StorageError as e:
			raise StorageUnavailableError(
				f"{operation} {key} on {tier.value} tier failed: {e}"
			) from e

	async def get_from(self, tier: TierName, key: str, timeout: float | None = None) -> bytes:
		"""Read one tier. Raises ObjectNotFoundError or StorageUnavailableError."""
		return await self._call(tier, "get", key, self.tiers[tier].get(key), timeout)

	async def put_to(
		self,
		tier: TierName,
		key: str,
		data: bytes,
		timeout: float | None = None,
		content_type: str | None = None,
	) -> UploadResult:
		return await self._call(
			tier, "put", key,
			self.tiers[tier].put(key, data, content_type=content_type),
			timeout,
		)

	async def exists_in(self, tier: TierName, key: str, timeout: float | None = None) -> bool:
		return await self._call(tier, "exists", key, self.tiers[tier].exists(key), timeout)

	async def delete_from(self, tier: TierName, key: str, timeout: float | None = None) -> None:
		await self._call(tier, "delete", key, self.tiers[tier].delete(key), timeout)

	# --- Tiered operations ---

	async def read_first(
		self,
		locations: list[StorageLocation],
		document_id: str | None = None,
		timeout: float | None = None,
	) -> TierRead:
		"""
		Return the bytes of the first location that produces them.

		Raises:
			NotFoundError: every tier reported the object absent
			StorageUnavailableError: no tier produced bytes and at least one
				failed transiently, so absence cannot be concluded
		"""
		missed: list[TierName] = []
		transient: list[Exception] = []

		for location in locations:
			try:
				data = await self.get_from(location.tier, location.key, timeout)
			except ObjectNotFoundError:
				missed.append(location.tier)
				continue
			except StorageUnavailableError as e:
				logger.warning(f"Read from {location.tier.value} tier failed, falling back: {e}")
				missed.append(location.tier)
				transient.append(e)
				continue
			return TierRead(data=data, tier=location.tier, key=location.key, missed=missed)

		key = locations[0].key if locations else None
		if transient:
			raise StorageUnavailableError(
				f"No tier could serve {document_id or key}: {transient[-1]}",
				document_id,
			)
		raise NotFoundError(document_id, key)

	async def get(
		self,
		key: str,
		document_id: str | None = None,
		timeout: float | None = None,
		rehydrate: bool = True,
	) -> TierRead:
		"""Primary first, then cache; rehydrate the primary after a fallback hit."""
		read = await self.read_first(
			[StorageLocation(tier, key) for tier in READ_ORDER],
			document_id=document_id,
			timeout=timeout,
		)
		if rehydrate and read.missed:
			self.schedule_rehydration(
				document_id,
				[StorageLocation(tier, key) for tier in read.missed],
				read.data,
			)
		return read

	async def put(
		self,
		key: str,
		data: bytes,
		tier: TierName = TierName.PRIMARY,
		timeout: float | None = None,
	) -> UploadResult:
		"""Write one tier. Raises StorageUnavailableError on failure."""
		try:
			return await self.put_to(tier, key, data, timeout)
		except ObjectNotFoundError as e:
			raise StorageUnavailableError(f"put {key} on {tier.value} tier failed: {e}") from e

	async def exists(self, key: str, timeout: float | None = None) -> bool:
		"""True when any tier confirms the key."""
		presence = await self.locate(key, timeout)
		return any(presence.values())

	async def locate(self, key: str, timeout: float | None = None) -> dict[TierName, bool | None]:
		"""Presence per tier; ``None`` when the tier could not answer."""
		presence: dict[TierName, bool | None] = {}
		for tier in READ_ORDER:
			try:
				presence[tier] = await self.exists_in(tier, key, timeout)
			except StorageUnavailableError as e:
				logger.warning(f"exists check failed on {tier.value} tier: {e}")
				presence[tier] = None
		return presence

	# --- Document reads ---

	def document_locations(self, document: Document) -> list[StorageLocation]:
		"""Read order for a document; a tier without a recorded key is still tried."""
		fallback_key = document.primary_key or document.cache_key
		if fallback_key is None:
			return []
		return [
			StorageLocation(tier, document.location_key(tier) or fallback_key)
			for tier in READ_ORDER
		]

	async def read_document(
		self,
		document_id: str,
		timeout: float | None = None,
		checksum_audit: bool | None = None,
		actor_id: str | None = None,
	) -> tuple[Document, TierRead]:
		"""
		Read a document's current content, failing closed.

		Raises:
			DocumentNotFoundError: unknown document
			NotFoundError: absent from both tiers (recovery is queued)
			AbandonedError: absent from both tiers and recovery was abandoned
			ChecksumMismatchError: bytes disagree with the recorded checksum
				(recovery is queued, the bytes are not returned)
		"""
		document = await self.documents.require_document(document_id)
		audit = self.checksum_audit if checksum_audit is None else checksum_audit

		locations = self.document_locations(document)
		if not locations:
			raise await self._missing(document, "No storage location recorded in any tier", actor_id)

		try:
			read = await self.read_first(locations, document_id=document_id, timeout=timeout)
		except NotFoundError:
			raise await self._missing(
				document,
				f"Read found {locations[0].key} absent from every tier",
				actor_id,
			)

		if audit and document.checksum:
			digest = compute_checksum(read.data)
			if digest != document.checksum:
				await self.retry_queue.flag_mismatch(
					document,
					f"Read from {read.tier.value} tier key {read.key}: "
					f"expected {document.checksum}, got {digest}",
					source="read",
					actor_id=actor_id,
				)
				raise ChecksumMismatchError(document_id, document.checksum, digest)

		if read.missed:
			self.schedule_rehydration(
				document_id,
				[StorageLocation(tier, read.key) for tier in read.missed],
				read.data,
				expected_checksum=document.checksum,
			)
		return document, read

	async def _missing(
		self,
		document: Document,
		detail: str,
		actor_id: str | None,
	) -> NotFoundError:
		"""Flag a read that found nothing and build the error to raise."""
		abandoned = await self.retry_queue.abandoned(document.id)
		if abandoned is not None:
			return AbandonedError(document.id, abandoned.attempt_count)
		await self.retry_queue.flag_missing(document, detail, actor_id)
		return NotFoundError(document.id)

	# --- Write path ---

	async def commit_version(
		self,
		document_id: str,
		data: bytes,
		version_number: int,
		created_by: str | None = None,
		notes: str | None = None,
		restored_from: int | None = None,
		display_name: str | None = None,
		mime_type: str | None = None,
		timeout: float | None = None,
	) -> DocumentVersion:
		"""
		Store a version's bytes and record it. The caller holds the lock.

		The primary tier is written first, then the cache. If the primary
		write fails the version is still committed from the cache copy and
		a retry item is queued to upload it. If neither tier accepts the
		bytes nothing is recorded.
		"""
		checksum = compute_checksum(data)
		key = version_storage_key(document_id, version_number)
		stored: dict[TierName, str | None] = {}
		errors: list[str] = []

		for tier in READ_ORDER:
			try:
				await self.put_to(tier, key, data, timeout, content_type=mime_type)
				stored[tier] = key
			except (StorageUnavailableError, ObjectNotFoundError) as e:
				logger.warning(f"Writing {key} to {tier.value} tier failed: {e}")
				stored[tier] = None
				errors.append(str(e))

		if not any(stored.values()):
			raise StorageUnavailableError(
				f"No tier accepted version {version_number} of {document_id}: {'; '.join(errors)}",
				document_id,
			)

		version = await self.documents.record_version(
			document_id=document_id,
			version_number=version_number,
			checksum=checksum,
			storage_key=key,
			size_bytes=len(data),
			primary_key=stored[TierName.PRIMARY],
			cache_key=stored[TierName.CACHE],
			created_by=created_by,
			notes=notes,
			restored_from=restored_from,
			display_name=display_name,
			mime_type=mime_type,
		)
		logger.info(
			f"Committed version {version_number} of {document_id} "
			f"checksum={checksum[:16]}... tiers={[t.value for t, k in stored.items() if k]}"
		)

		if stored[TierName.PRIMARY] is None:
			await self.retry_queue.enqueue(document_id, reason="primary_upload")

		return version

	# --- Rehydration ---

	def schedule_rehydration(
		self,
		document_id: str | None,
		targets: list[StorageLocation],
		data: bytes,
		expected_checksum: str | None = None,
	) -> None:
		"""Fire-and-forget copy of ``data`` into each target location."""
		for target in targets:
			task = asyncio.create_task(
				self._rehydrate(document_id, target, data, expected_checksum)
			)
			self._background.add(task)
			task.add_done_callback(self._background.discard)

	async def _rehydrate(
		self,
		document_id: str | None,
		target: StorageLocation,
		data: bytes,
		expected_checksum: str | None,
	) -> None:
		try:
			if document_id is None:
				await self.put_to(target.tier, target.key, data)
			else:
				async with self.locks.hold(document_id, timeout=self.timeout):
					document = await self.documents.get_document(document_id)
					if document is None:
						return
					checksum = expected_checksum or document.checksum
					# A newer version may have been committed meanwhile
					if checksum and (
						document.checksum != checksum or compute_checksum(data) != checksum
					):
						logger.info(f"Skipping stale rehydration of {target.key} for {document_id}")
						return
					await self.put_to(target.tier, target.key, data)
					if document.location_key(target.tier) != target.key:
						await self.documents.set_location(document_id, target.tier, target.key)
			metrics.REHYDRATIONS.labels(tier=target.tier.value, outcome="ok").inc()
			logger.info(f"Rehydrated {target.key} into {target.tier.value} tier")
		except Exception as e:
			metrics.REHYDRATIONS.labels(tier=target.tier.value, outcome="error").inc()
			logger.warning(f"Rehydration of {target.key} into {target.tier.value} tier failed: {e}")

	async def drain(self) -> None:
		"""Wait for outstanding rehydrations."""
		while self._background:
			await asyncio.gather(*list(self._background), return_exceptions=True)
