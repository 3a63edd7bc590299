# (c) Copyright Datacraft, 2026
"""
Health reporting.

Reports are derived by joining the current document rows with the most
recent status-bearing recovery event of each document. They are read-only.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from docintegrity.core.db.base import utcnow
from docintegrity.core.features.document.db.api import DocumentDB
from docintegrity.core.features.document.db.orm import Document
from docintegrity.core.features.recovery.db.api import RetryQueueDB
from docintegrity.core.features.recovery.db.orm import RetryQueueItem
from docintegrity.core.types import (
	EventType,
	HealthStatus,
	RecoveryState,
	RetryStatus,
	RiskLevel,
)

from .db.api import RecoveryEventDB
from .db.orm import RecoveryEvent
from .recorder import AuditRecorder

logger = logging.getLogger(__name__)

STATUS_EVENTS = [
	EventType.MISSING_DETECTED.value,
	EventType.CHECKSUM_MISMATCH.value,
	EventType.RECOVERY_SUCCEEDED.value,
	EventType.RECOVERY_FAILED.value,
]


@dataclass
class DocumentHealth:
	document_id: str
	display_name: str
	status: HealthStatus
	risk_level: RiskLevel
	recovery_state: str
	file_exists: bool
	current_version: int
	checksum: str | None
	abandoned: bool = False
	retry_status: str | None = None
	last_event_type: str | None = None
	last_event_at: datetime | None = None
	last_event_detail: str | None = None


@dataclass
class HealthReport:
	total: int = 0
	healthy: int = 0
	missing: int = 0
	corrupted: int = 0
	abandoned: int = 0
	health_score_percent: float = 100.0
	degraded: bool = False
	pending_events: int = 0
	generated_at: datetime = field(default_factory=utcnow)
	documents: list[DocumentHealth] = field(default_factory=list)


def derive_status(document: Document, last_event: RecoveryEvent | None, abandoned: bool) -> HealthStatus:
	if abandoned:
		return HealthStatus.MISSING
	if last_event is None:
		return HealthStatus.HEALTHY if document.file_exists else HealthStatus.MISSING

	match last_event.event_type:
		case EventType.RECOVERY_SUCCEEDED.value:
			return HealthStatus.HEALTHY if document.file_exists else HealthStatus.MISSING
		case EventType.CHECKSUM_MISMATCH.value:
			return HealthStatus.CORRUPTED
		case _:
			return HealthStatus.MISSING


def derive_risk(document: Document, status: HealthStatus, abandoned: bool) -> RiskLevel:
	if abandoned or status is HealthStatus.MISSING:
		return RiskLevel.HIGH
	if status is HealthStatus.CORRUPTED:
		return RiskLevel.MEDIUM
	if not document.primary_key or not document.cache_key:
		return RiskLevel.MEDIUM
	if document.recovery_state != RecoveryState.HEALTHY.value:
		return RiskLevel.MEDIUM
	return RiskLevel.LOW


def health_score(healthy: int, total: int) -> float:
	if total == 0:
		return 100.0
	return round(healthy / total * 100, 1)


class HealthReporter:

	def __init__(
		self,
		documents: DocumentDB,
		events: RecoveryEventDB,
		retry_db: RetryQueueDB,
		audit: AuditRecorder,
	):
		self.documents = documents
		self.events = events
		self.retry_db = retry_db
		self.audit = audit

	def _document_health(
		self,
		document: Document,
		last_event: RecoveryEvent | None,
		retry_item: RetryQueueItem | None,
	) -> DocumentHealth:
		abandoned = retry_item is not None and retry_item.status == RetryStatus.ABANDONED.value
		status = derive_status(document, last_event, abandoned)
		return DocumentHealth(
			document_id=document.id,
			display_name=document.display_name,
			status=status,
			risk_level=derive_risk(document, status, abandoned),
			recovery_state=document.recovery_state,
			file_exists=document.file_exists,
			current_version=document.current_version,
			checksum=document.checksum,
			abandoned=abandoned,
			retry_status=retry_item.status if retry_item else None,
			last_event_type=last_event.event_type if last_event else None,
			last_event_at=last_event.created_at if last_event else None,
			last_event_detail=last_event.detail if last_event else None,
		)

	async def health_report(self) -> HealthReport:
		documents = await self.documents.list_documents()
		latest = await self.events.latest_by_document(STATUS_EVENTS)
		abandoned_ids = await self.retry_db.abandoned_document_ids()

		report = HealthReport(
			degraded=self.audit.degraded,
			pending_events=self.audit.pending_events,
		)
		for document in documents:
			retry_item = None
			if document.id in abandoned_ids:
				retry_item = await self.retry_db.get_latest(document.id)
			entry = self._document_health(document, latest.get(document.id), retry_item)
			report.documents.append(entry)
			_count(report, entry)

		report.total = len(report.documents)
		report.health_score_percent = health_score(report.healthy, report.total)
		return report

	async def document_report(self, document_id: str) -> DocumentHealth:
		"""
		Raises:
			DocumentNotFoundError: unknown document
		"""
		document = await self.documents.require_document(document_id)
		events = await self.events.list_events(document_id, STATUS_EVENTS, limit=1)
		retry_item = await self.retry_db.get_latest(document_id)
		return self._document_health(document, events[0] if events else None, retry_item)

	async def events_for(self, document_id: str, limit: int = 100) -> Sequence[RecoveryEvent]:
		"""All recovery events of a document, newest first."""
		await self.documents.require_document(document_id)
		return await self.events.list_events(document_id, limit=limit)


def _count(report: HealthReport, entry: DocumentHealth) -> None:
	if entry.status is HealthStatus.HEALTHY:
		report.healthy += 1
	elif entry.status is HealthStatus.CORRUPTED:
		report.corrupted += 1
	else:
		report.missing += 1
	if entry.abandoned:
		report.abandoned += 1
