# (c) Copyright Datacraft, 2026
"""
Recovery orchestrator.

Per-document state machine::

	healthy -> missing_detected -> recovery_in_flight -> healthy | recovery_failed

Recovery strategies run in a fixed order and stop at the first success:

1. ``tier_copy``: copy a verified copy of the current content from one tier
   into the tier where it is missing or corrupt.
2. ``version_restore``: restore the newest version whose stored bytes still
   verify against that version's checksum.
3. Give up: the document is marked ``recovery_failed``.

Only one recovery per document runs at a time. A second caller gets
``AlreadyInFlightError`` immediately.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable

from docintegrity.core.db.base import utcnow
from docintegrity.core.exceptions import (
	AlreadyInFlightError,
	ChecksumMismatchError,
	DocumentNotFoundError,
	IntegrityEngineError,
	NotFoundError,
	StorageUnavailableError,
)
from docintegrity.core.features.audit.db.orm import RecoveryEvent
from docintegrity.core.features.audit.recorder import AuditRecorder
from docintegrity.core.features.document.db.api import DocumentDB
from docintegrity.core.features.document.db.orm import Document, StorageLocation
from docintegrity.core.features.gateway.service import (
	READ_ORDER,
	StorageGateway,
	version_storage_key,
)
from docintegrity.core.features.integrity.service import IntegrityVerifier
from docintegrity.core.features.monitoring import metrics
from docintegrity.core.features.versions.service import VersionHistoryManager
from docintegrity.core.locks import DocumentLocks
from docintegrity.core.storage.base import ObjectNotFoundError
from docintegrity.core.types import (
	EventType,
	RecoveryMethod,
	RecoveryState,
	RetryStatus,
	TierName,
	VerifyStatus,
)
from docintegrity.core.utils.hash import compute_checksum

from .db.api import RetryQueueDB
from .db.orm import RetryQueueItem
from .queue import RetryQueue

logger = logging.getLogger(__name__)


@dataclass
class RecoveryResult:
	document_id: str
	success: bool
	method: RecoveryMethod | None = None
	new_location: StorageLocation | None = None
	error: str | None = None
	already_in_flight: bool = False


@dataclass
class ScanResult:
	scanned: int = 0
	missing_count: int = 0
	mismatch_count: int = 0
	enqueued: int = 0
	skipped: int = 0
	events: list[RecoveryEvent] = field(default_factory=list)


@dataclass
class ProcessResult:
	processed: int = 0
	succeeded: int = 0
	failed: int = 0
	abandoned: int = 0
	deferred: int = 0


class _StrategyFailed(Exception):
	pass


class RecoveryOrchestrator:

	def __init__(
		self,
		gateway: StorageGateway,
		verifier: IntegrityVerifier,
		versions: VersionHistoryManager,
		documents: DocumentDB,
		retry_queue: RetryQueue,
		audit: AuditRecorder,
		locks: DocumentLocks,
		scan_concurrency: int = 8,
		scan_verify_checksums: bool = True,
		retry_concurrency: int = 4,
		attempt_timeout: float | None = 120.0,
	):
		self.gateway = gateway
		self.verifier = verifier
		self.versions = versions
		self.documents = documents
		self.retry_queue = retry_queue
		self.audit = audit
		self.locks = locks
		self.scan_concurrency = scan_concurrency
		self.scan_verify_checksums = scan_verify_checksums
		self.retry_concurrency = retry_concurrency
		self.attempt_timeout = attempt_timeout
		self._attempts: set[asyncio.Task] = set()

	@property
	def retry_db(self) -> RetryQueueDB:
		return self.retry_queue.db

	# --- Detection ---

	async def scan(self, verify_checksums: bool | None = None) -> ScanResult:
		"""
		Check every document's presence in both tiers.

		Documents that no tier confirms are flagged ``missing_detected`` and
		queued for recovery. With ``verify_checksums`` present documents are
		also verified and mismatches are flagged. Documents under an active
		recovery, or whose last recovery was abandoned, are not re-queued.
		"""
		verify = self.scan_verify_checksums if verify_checksums is None else verify_checksums
		document_ids = await self.documents.list_document_ids()
		abandoned = await self.retry_db.abandoned_document_ids()
		semaphore = asyncio.Semaphore(self.scan_concurrency)
		result = ScanResult()

		async def scan_document(document_id: str):
			async with semaphore:
				await self._scan_document(document_id, verify, document_id in abandoned, result)

		await asyncio.gather(*(scan_document(document_id) for document_id in document_ids))
		logger.info(
			f"Scan finished: scanned={result.scanned} missing={result.missing_count} "
			f"mismatch={result.mismatch_count} enqueued={result.enqueued}"
		)
		return result

	async def _scan_document(
		self,
		document_id: str,
		verify: bool,
		abandoned: bool,
		result: ScanResult,
	) -> None:
		document = await self.documents.get_document(document_id)
		if document is None:
			return
		result.scanned += 1

		if await self.locks.is_locked(document_id):
			result.skipped += 1
			return

		presence = await self._presence(document)
		present = [tier for tier, found in presence.items() if found]

		if not present:
			if all(found is None for found in presence.values()) and not document.is_terminal_missing:
				logger.warning(f"Scan could not reach any tier for {document_id}, skipping")
				result.skipped += 1
				return
			result.missing_count += 1
			event = await self.retry_queue.flag_missing(
				document, "Scan found no tier holding the current content"
			)
			if event is not None:
				result.events.append(event)
				result.enqueued += 1
			return

		if verify and document.checksum:
			verification = await self.verifier.verify(document_id)
			if verification.status is VerifyStatus.MISMATCH:
				result.mismatch_count += 1
				if abandoned or await self.retry_queue.already_flagged(document):
					return
				event = await self.retry_queue.flag_mismatch(
					document,
					f"Scan read {verification.tier.value} tier: expected "
					f"{verification.expected}, got {verification.digest}",
					source="scan",
				)
				result.events.append(event)
				result.enqueued += 1
				return

		if len(present) < len(presence) and not abandoned:
			# Readable but not in every tier; repair without flagging
			_, created = await self.retry_db.enqueue(document_id, reason="tier_missing")
			if created:
				result.enqueued += 1

	async def _presence(self, document: Document) -> dict[TierName, bool | None]:
		presence: dict[TierName, bool | None] = {}
		for location in self.gateway.document_locations(document):
			try:
				presence[location.tier] = await self.gateway.exists_in(location.tier, location.key)
			except StorageUnavailableError as e:
				logger.warning(f"exists check for {document.id} on {location.tier.value} failed: {e}")
				presence[location.tier] = None
		return presence or {tier: False for tier in READ_ORDER}

	# --- Recovery ---

	async def recover_one(self, document_id: str, actor_id: str | None = None) -> RecoveryResult:
		"""
		Run the recovery strategies for one document.

		Raises:
			AlreadyInFlightError: a recovery for this document is running
			DocumentNotFoundError: unknown document
		"""
		await self.documents.require_document(document_id)
		async with self.locks.single_flight(document_id):
			result = await self._recover_locked(document_id, actor_id)

		if result.success:
			# A manual recovery also settles a queued one
			item = await self.retry_db.get_active(document_id)
			if item is not None and item.status == RetryStatus.PENDING.value:
				await self.retry_db.update(item.id, status=RetryStatus.SUCCEEDED.value)
		return result

	async def _recover_locked(self, document_id: str, actor_id: str | None) -> RecoveryResult:
		await self.audit.record(
			document_id,
			EventType.RECOVERY_INITIATED,
			detail="Recovery started",
			actor_id=actor_id,
		)
		await self.documents.set_recovery_state(document_id, RecoveryState.RECOVERY_IN_FLIGHT)

		errors: list[str] = []
		result: RecoveryResult | None = None
		strategies = (
			(RecoveryMethod.TIER_COPY, self._tier_copy),
			(RecoveryMethod.VERSION_RESTORE, self._version_restore),
		)
		try:
			for method, strategy in strategies:
				document = await self.documents.require_document(document_id)
				try:
					result = await strategy(document)
				except (_StrategyFailed, IntegrityEngineError) as e:
					errors.append(f"{method.value}: {e}")
					logger.info(f"Recovery strategy {method.value} failed for {document_id}: {e}")
					continue
				break
		except Exception as e:
			logger.exception(f"Recovery of {document_id} crashed: {e}")
			errors.append(f"unexpected: {e}")
			result = None

		if result is not None:
			await self.documents.set_recovery_state(
				document_id, RecoveryState.HEALTHY, file_exists=True
			)
			location = f" at {result.new_location.tier.value}:{result.new_location.key}" if result.new_location else ""
			await self.audit.record(
				document_id,
				EventType.RECOVERY_SUCCEEDED,
				detail=f"Recovered by {result.method.value}{location}",
				actor_id=actor_id,
			)
			metrics.RECOVERIES.labels(outcome="succeeded", method=result.method.value).inc()
			logger.info(f"Recovered {document_id} by {result.method.value}")
			return result

		error = "; ".join(errors) or "No recovery strategy applied"
		await self.documents.set_recovery_state(document_id, RecoveryState.RECOVERY_FAILED)
		await self.audit.record(
			document_id,
			EventType.RECOVERY_FAILED,
			detail=error,
			actor_id=actor_id,
		)
		metrics.RECOVERIES.labels(outcome="failed", method="none").inc()
		logger.warning(f"Recovery of {document_id} failed: {error}")
		return RecoveryResult(document_id=document_id, success=False, error=error)

	async def _write_tiers(
		self,
		document_id: str,
		key: str,
		data: bytes,
		tiers: Iterable[TierName],
	) -> list[TierName]:
		"""
		Write ``data`` under ``key`` to each tier and record the locations.

		The primary tier must accept the write; a cache failure is tolerated.
		"""
		written: list[TierName] = []
		for tier in tiers:
			try:
				await self.gateway.put_to(tier, key, data)
			except StorageUnavailableError as e:
				if tier is TierName.PRIMARY:
					raise _StrategyFailed(f"writing primary tier failed: {e}") from e
				logger.warning(f"Repair write of {key} to {tier.value} tier failed: {e}")
				continue
			await self.documents.set_location(document_id, tier, key)
			written.append(tier)
		return written

	async def _tier_copy(self, document: Document) -> RecoveryResult:
		if not document.checksum:
			raise _StrategyFailed("no checksum recorded")

		fallback_key = (
			document.primary_key
			or document.cache_key
			or version_storage_key(document.id, document.current_version)
		)
		valid: dict[TierName, str] = {}
		good: bytes | None = None
		repair: list[TierName] = []
		problems: list[str] = []

		for tier in READ_ORDER:
			key = document.location_key(tier) or fallback_key
			try:
				data = await self.gateway.get_from(tier, key)
			except ObjectNotFoundError:
				problems.append(f"{tier.value} missing")
				repair.append(tier)
				continue
			except StorageUnavailableError as e:
				problems.append(f"{tier.value} unavailable ({e})")
				repair.append(tier)
				continue

			if compute_checksum(data) != document.checksum:
				problems.append(f"{tier.value} corrupt")
				repair.append(tier)
				continue
			valid[tier] = key
			if good is None:
				good = data

		if good is None:
			raise _StrategyFailed(", ".join(problems))

		source, key = next(iter(valid.items()))
		# Valid copies the metadata does not point at yet
		adopted = [tier for tier in valid if document.location_key(tier) != valid[tier]]
		for tier in adopted:
			await self.documents.set_location(document.id, tier, valid[tier])

		if not repair and not adopted:
			return RecoveryResult(
				document_id=document.id,
				success=True,
				method=RecoveryMethod.ALREADY_HEALTHY,
				new_location=StorageLocation(source, key),
			)

		written = await self._write_tiers(document.id, key, good, repair)
		target = written[0] if written else source
		return RecoveryResult(
			document_id=document.id,
			success=True,
			method=RecoveryMethod.TIER_COPY,
			new_location=StorageLocation(target, key),
		)

	async def _version_restore(self, document: Document) -> RecoveryResult:
		versions = await self.documents.list_versions(document.id)
		if not versions:
			raise _StrategyFailed("no versions recorded")

		problems: list[str] = []
		for version in versions:
			try:
				data = await self.versions.read_version(version)
			except (NotFoundError, ChecksumMismatchError, StorageUnavailableError) as e:
				problems.append(f"v{version.version_number}: {e}")
				continue

			if version.version_number == document.current_version:
				written = await self._write_tiers(document.id, version.storage_key, data, READ_ORDER)
				return RecoveryResult(
					document_id=document.id,
					success=True,
					method=RecoveryMethod.VERSION_RESTORE,
					new_location=StorageLocation(written[0], version.storage_key),
				)

			await self.versions.create_version_locked(
				document.id,
				data,
				actor_id=None,
				notes=f"Recovered from version {version.version_number}",
				restored_from=version.version_number,
			)
			refreshed = await self.documents.require_document(document.id)
			return RecoveryResult(
				document_id=document.id,
				success=True,
				method=RecoveryMethod.VERSION_RESTORE,
				new_location=refreshed.primary_location or refreshed.cache_location,
			)

		raise _StrategyFailed("no version verifies: " + "; ".join(problems))

	async def recover_batch(
		self,
		document_ids: Iterable[str],
		actor_id: str | None = None,
	) -> list[RecoveryResult]:
		"""``recover_one`` over distinct ids, bounded by the retry concurrency."""
		unique = list(dict.fromkeys(document_ids))
		semaphore = asyncio.Semaphore(self.retry_concurrency)

		async def recover(document_id: str) -> RecoveryResult:
			async with semaphore:
				try:
					return await self.recover_one(document_id, actor_id=actor_id)
				except AlreadyInFlightError as e:
					return RecoveryResult(
						document_id=document_id,
						success=False,
						error=str(e),
						already_in_flight=True,
					)
				except DocumentNotFoundError as e:
					return RecoveryResult(document_id=document_id, success=False, error=str(e))

		return list(await asyncio.gather(*(recover(document_id) for document_id in unique)))

	# --- Retry queue ---

	async def process_retry_queue(
		self,
		max_concurrency: int | None = None,
		limit: int = 100,
	) -> ProcessResult:
		"""Run due retry items through ``recover_one``."""
		items = await self.retry_db.claim_due(utcnow(), limit)
		semaphore = asyncio.Semaphore(max_concurrency or self.retry_concurrency)
		result = ProcessResult()

		async def process(item: RetryQueueItem):
			async with semaphore:
				await self._process_item(item, result)

		await asyncio.gather(*(process(item) for item in items))
		if items:
			logger.info(
				f"Retry sweep: processed={result.processed} succeeded={result.succeeded} "
				f"failed={result.failed} abandoned={result.abandoned} deferred={result.deferred}"
			)
		return result

	async def _process_item(self, item: RetryQueueItem, result: ProcessResult) -> None:
		task = asyncio.create_task(self.recover_one(item.document_id))
		self._attempts.add(task)
		task.add_done_callback(self._attempt_done)

		try:
			# The recovery keeps running past the timeout
			outcome = await asyncio.wait_for(asyncio.shield(task), self.attempt_timeout)
		except AlreadyInFlightError:
			await self.retry_queue.release(item)
			result.deferred += 1
			return
		except DocumentNotFoundError as e:
			await self.retry_db.update(
				item.id, status=RetryStatus.FAILED.value, last_error=str(e)
			)
			result.processed += 1
			result.failed += 1
			return
		except asyncio.TimeoutError:
			outcome = RecoveryResult(
				document_id=item.document_id,
				success=False,
				error=f"Attempt timed out after {self.attempt_timeout}s",
			)
		except Exception as e:
			logger.exception(f"Retry of {item.document_id} raised: {e}")
			outcome = RecoveryResult(document_id=item.document_id, success=False, error=str(e))

		result.processed += 1
		if outcome.success:
			await self.retry_queue.mark_succeeded(item)
			result.succeeded += 1
			return

		updated = await self.retry_queue.mark_failed(item, outcome.error or "recovery failed")
		result.failed += 1
		if updated.status == RetryStatus.ABANDONED.value:
			result.abandoned += 1

	def _attempt_done(self, task: asyncio.Task) -> None:
		self._attempts.discard(task)
		if not task.cancelled() and task.exception() is not None:
			logger.debug(f"Recovery attempt ended with {task.exception()!r}")

	async def retry_document(self, document_id: str, actor_id: str | None = None) -> RetryQueueItem:
		"""
		Put a document back into ``missing_detected`` and queue a fresh attempt.

		Used by operators for ``recovery_failed`` and abandoned documents.
		"""
		document = await self.documents.require_document(document_id)
		active = await self.retry_db.get_active(document_id)
		if active is not None:
			return active

		if document.recovery_state != RecoveryState.HEALTHY.value:
			await self.audit.record(
				document_id,
				EventType.MISSING_DETECTED,
				detail="Manual retry requested",
				actor_id=actor_id,
			)
			await self.documents.set_recovery_state(document_id, RecoveryState.MISSING_DETECTED)
		return await self.retry_queue.enqueue(document_id, reason="manual_retry")

	async def drain(self) -> None:
		"""Wait for recovery attempts that outlived their timeout."""
		while self._attempts:
			await asyncio.gather(*list(self._attempts), return_exceptions=True)

