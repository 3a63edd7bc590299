# (c) Copyright Datacraft, 2026
"""Append-only audit recorder with degraded-mode backlog."""
import asyncio
import logging
from collections import deque

from docintegrity.core.db.base import utcnow
from docintegrity.core.types import EventType

from .db.api import RecoveryEventDB
from .db.orm import RecoveryEvent

logger = logging.getLogger(__name__)

BACKLOG_LIMIT = 10_000


class AuditRecorder:
	"""
	Writes recovery events in their own transaction.

	If the audit store rejects a write the event is kept in an in-memory
	backlog and the recorder switches to degraded mode; the backlog is
	written out ahead of the next event once the store is reachable again.
	Events are only ever dropped when the backlog overflows, and that is
	logged as an error.
	"""

	def __init__(self, events: RecoveryEventDB, backlog_limit: int = BACKLOG_LIMIT):
		self.events = events
		self._backlog: deque[dict] = deque()
		self._backlog_limit = backlog_limit
		self._lock = asyncio.Lock()
		self.degraded = False

	@property
	def pending_events(self) -> int:
		return len(self._backlog)

	async def record(
		self,
		document_id: str,
		event_type: EventType,
		detail: str | None = None,
		actor_id: str | None = None,
	) -> RecoveryEvent:
		row = {
			"document_id": document_id,
			"event_type": event_type.value,
			"detail": detail,
			"actor_id": actor_id,
			"created_at": utcnow(),
		}

		async with self._lock:
			try:
				written = await self.events.insert_many([*self._backlog, row])
			except Exception as e:
				self._enqueue_backlog(row)
				if not self.degraded:
					logger.warning(f"Audit store unavailable, entering degraded mode: {e}")
				else:
					logger.warning(
						f"Audit store still unavailable, {len(self._backlog)} events pending: {e}"
					)
				self.degraded = True
				return RecoveryEvent(**row)

			if self.degraded:
				logger.warning(f"Audit store recovered, flushed {len(self._backlog)} pending events")
			self._backlog.clear()
			self.degraded = False

		logger.info(f"Recorded {event_type.value} for document {document_id}")
		return written[-1]

	def _enqueue_backlog(self, row: dict) -> None:
		if len(self._backlog) >= self._backlog_limit:
			dropped = self._backlog.popleft()
			logger.error(
				f"Audit backlog full, dropping oldest event {dropped['event_type']} "
				f"for document {dropped['document_id']}"
			)
		self._backlog.append(row)

	async def flush(self) -> bool:
		"""Try to write the backlog. Returns True when nothing is pending."""
		async with self._lock:
			if not self._backlog:
				return True
			try:
				await self.events.insert_many(list(self._backlog))
			except Exception as e:
				logger.warning(f"Audit backlog flush failed: {e}")
				return False
			logger.warning(f"Audit store recovered, flushed {len(self._backlog)} pending events")
			self._backlog.clear()
			self.degraded = False
			return True
