# (c) Copyright Datacraft, 2026
"""
ORM model for the append-only recovery event log.
"""
from datetime import datetime

from sqlalchemy import Integer, String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from docintegrity.core.db.base import Base, utcnow


class RecoveryEvent(Base):
	"""Append-only audit row. Rows are never updated or deleted."""
	__tablename__ = "recovery_events"
	__table_args__ = (
		Index("ix_recovery_events_document_created", "document_id", "created_at"),
	)

	# Monotonic sequence; defines event order even within one clock tick
	id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
	# No foreign key: the log must outlive whatever happens to the document row
	document_id: Mapped[str] = mapped_column(String(32))
	event_type: Mapped[str] = mapped_column(String(40))
	detail: Mapped[str | None] = mapped_column(Text)
	actor_id: Mapped[str | None] = mapped_column(String(255))
	created_at: Mapped[datetime] = mapped_column(default=utcnow)

	def __repr__(self):
		return f"RecoveryEvent(document_id={self.document_id}, type={self.event_type})"
