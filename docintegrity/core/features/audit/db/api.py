# (c) Copyright Datacraft, 2026
"""Database operations for the recovery event log (insert and query only)."""
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .orm import RecoveryEvent


class RecoveryEventDB:
	"""Append-only access to recovery events."""

	def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
		self.session_factory = session_factory

	async def insert_many(self, rows: list[dict]) -> list[RecoveryEvent]:
		events = [RecoveryEvent(**row) for row in rows]
		async with self.session_factory() as session:
			session.add_all(events)
			await session.commit()
		return events

	async def list_events(
		self,
		document_id: str | None = None,
		event_types: list[str] | None = None,
		limit: int = 100,
	) -> Sequence[RecoveryEvent]:
		"""Events newest first."""
		query = select(RecoveryEvent)
		if document_id is not None:
			query = query.where(RecoveryEvent.document_id == document_id)
		if event_types:
			query = query.where(RecoveryEvent.event_type.in_(event_types))
		query = query.order_by(RecoveryEvent.id.desc()).limit(limit)

		async with self.session_factory() as session:
			result = await session.execute(query)
			return result.scalars().all()

	async def latest_by_document(self, event_types: list[str]) -> dict[str, RecoveryEvent]:
		"""Most recent event of the given types for every document."""
		async with self.session_factory() as session:
			latest_ids = (
				select(func.max(RecoveryEvent.id))
				.where(RecoveryEvent.event_type.in_(event_types))
				.group_by(RecoveryEvent.document_id)
			)
			result = await session.execute(
				select(RecoveryEvent).where(RecoveryEvent.id.in_(latest_ids))
			)
			return {event.document_id: event for event in result.scalars().all()}

	async def count(self, document_id: str | None = None, event_type: str | None = None) -> int:
		query = select(func.count(RecoveryEvent.id))
		if document_id is not None:
			query = query.where(RecoveryEvent.document_id == document_id)
		if event_type is not None:
			query = query.where(RecoveryEvent.event_type == event_type)
		async with self.session_factory() as session:
			return await session.scalar(query) or 0
