# (c) Copyright Datacraft, 2026
"""
Retry queue service.

The one place recoverable problems are routed to. Readers, the scanner and
the write path all call ``flag_missing`` / ``flag_mismatch`` / ``enqueue``
instead of running their own retry loops.
"""
import logging
from datetime import timedelta

from docintegrity.core.db.base import utcnow
from docintegrity.core.features.audit.db.orm import RecoveryEvent
from docintegrity.core.features.audit.recorder import AuditRecorder
from docintegrity.core.features.document.db.api import DocumentDB
from docintegrity.core.features.document.db.orm import Document
from docintegrity.core.features.monitoring import metrics
from docintegrity.core.types import EventType, RecoveryState, RetryStatus

from .db.api import RetryQueueDB
from .db.orm import RetryQueueItem

logger = logging.getLogger(__name__)


class RetryQueue:
	"""Enqueue, reschedule and abandon recovery work."""

	def __init__(
		self,
		db: RetryQueueDB,
		documents: DocumentDB,
		audit: AuditRecorder,
		base_delay_seconds: float = 30.0,
		max_delay_seconds: float = 3600.0,
		max_attempts: int = 5,
	):
		self.db = db
		self.documents = documents
		self.audit = audit
		self.base_delay_seconds = base_delay_seconds
		self.max_delay_seconds = max_delay_seconds
		self.max_attempts = max_attempts

	def backoff_delay(self, attempt_count: int) -> timedelta:
		"""``base * 2^attempt_count``, capped."""
		delay = self.base_delay_seconds * (2 ** attempt_count)
		return timedelta(seconds=min(delay, self.max_delay_seconds))

	async def enqueue(self, document_id: str, reason: str | None = None) -> RetryQueueItem:
		item, created = await self.db.enqueue(document_id, reason=reason)
		if created:
			logger.info(f"Enqueued recovery for {document_id} ({reason})")
		else:
			logger.debug(f"Recovery for {document_id} already queued as {item.id}")
		return item

	async def abandoned(self, document_id: str) -> RetryQueueItem | None:
		"""The latest queue row when it is abandoned, otherwise None."""
		item = await self.db.get_latest(document_id)
		if item is not None and item.status == RetryStatus.ABANDONED.value:
			return item
		return None

	async def already_flagged(self, document: Document) -> bool:
		if document.recovery_state != RecoveryState.MISSING_DETECTED.value:
			return False
		return await self.db.get_active(document.id) is not None

	async def flag_missing(
		self,
		document: Document,
		detail: str,
		actor_id: str | None = None,
	) -> RecoveryEvent | None:
		"""
		Record ``missing_detected``, mark the document and queue recovery.

		Returns None and records nothing when the document is already flagged
		with recovery queued, or when its recovery was abandoned. Abandoned
		documents come back only through a manual retry.
		"""
		if await self.abandoned(document.id) is not None:
			logger.debug(f"{document.id} is abandoned, not re-queueing")
			return None
		if await self.already_flagged(document):
			return None

		event = await self.audit.record(
			document.id,
			EventType.MISSING_DETECTED,
			detail=detail,
			actor_id=actor_id,
		)
		metrics.MISSING_DETECTED.inc()
		await self.documents.set_recovery_state(
			document.id,
			RecoveryState.MISSING_DETECTED,
			file_exists=False,
		)
		await self.enqueue(document.id, reason=EventType.MISSING_DETECTED.value)
		return event

	async def flag_mismatch(
		self,
		document: Document,
		detail: str,
		source: str,
		actor_id: str | None = None,
	) -> RecoveryEvent:
		"""
		Record ``checksum_mismatch`` and queue recovery. Bytes stay unserved.

		The event is recorded on every call. Abandoned documents are not
		re-queued.
		"""
		event = await self.audit.record(
			document.id,
			EventType.CHECKSUM_MISMATCH,
			detail=detail,
			actor_id=actor_id,
		)
		metrics.CHECKSUM_MISMATCHES.labels(source=source).inc()
		if await self.abandoned(document.id) is not None:
			return event
		await self.documents.set_recovery_state(document.id, RecoveryState.MISSING_DETECTED)
		await self.enqueue(document.id, reason=EventType.CHECKSUM_MISMATCH.value)
		return event

	async def mark_succeeded(self, item: RetryQueueItem) -> RetryQueueItem:
		return await self.db.update(
			item.id,
			status=RetryStatus.SUCCEEDED.value,
			attempt_count=item.attempt_count + 1,
			last_error=None,
		)

	async def release(self, item: RetryQueueItem) -> RetryQueueItem:
		"""Put a claimed row back without spending an attempt."""
		return await self.db.update(item.id, status=RetryStatus.PENDING.value)

	async def mark_failed(self, item: RetryQueueItem, error: str) -> RetryQueueItem:
		"""Reschedule with backoff, or abandon once attempts are exhausted."""
		attempts = item.attempt_count + 1

		if attempts >= self.max_attempts:
			await self.audit.record(
				item.document_id,
				EventType.RECOVERY_FAILED,
				detail=f"Abandoned after {attempts} attempts, needs manual review: {error}",
			)
			metrics.RETRIES_ABANDONED.inc()
			logger.error(f"Recovery for {item.document_id} abandoned after {attempts} attempts: {error}")
			return await self.db.update(
				item.id,
				status=RetryStatus.ABANDONED.value,
				attempt_count=attempts,
				last_error=error,
			)

		next_attempt_at = utcnow() + self.backoff_delay(attempts)
		logger.warning(
			f"Recovery attempt {attempts} for {item.document_id} failed, "
			f"next attempt at {next_attempt_at.isoformat()}: {error}"
		)
		return await self.db.update(
			item.id,
			status=RetryStatus.PENDING.value,
			attempt_count=attempts,
			next_attempt_at=next_attempt_at,
			last_error=error,
		)
