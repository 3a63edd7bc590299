# (c) Copyright Datacraft, 2026
"""
ORM model for the recovery retry queue.
"""
from datetime import datetime

from sqlalchemy import Integer, String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column
from uuid_extensions import uuid7str

from docintegrity.core.db.base import Base, utcnow
from docintegrity.core.types import RetryStatus


class RetryQueueItem(Base):
	"""
	Mutable work-queue row.

	At most one row per document may be pending or in progress; the
	orchestrator enforces this, the table does not.
	"""
	__tablename__ = "retry_queue_items"
	__table_args__ = (
		Index("ix_retry_queue_due", "status", "next_attempt_at"),
		Index("ix_retry_queue_document", "document_id"),
	)

	id: Mapped[str] = mapped_column(
		String(32),
		primary_key=True,
		default=uuid7str,
	)
	document_id: Mapped[str] = mapped_column(String(32))
	attempt_count: Mapped[int] = mapped_column(Integer, default=0)
	next_attempt_at: Mapped[datetime] = mapped_column(default=utcnow)
	last_error: Mapped[str | None] = mapped_column(Text)
	reason: Mapped[str | None] = mapped_column(String(100))
	status: Mapped[str] = mapped_column(String(20), default=RetryStatus.PENDING.value)
	created_at: Mapped[datetime] = mapped_column(default=utcnow)
	updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

	def __repr__(self):
		return f"RetryQueueItem(document_id={self.document_id}, status={self.status}, attempts={self.attempt_count})"
