# (c) Copyright Datacraft, 2026
"""Database operations for the retry queue."""
from datetime import datetime
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docintegrity.core.db.base import utcnow
from docintegrity.core.types import ACTIVE_RETRY_STATUSES, RetryStatus

from .orm import RetryQueueItem

ACTIVE = [s.value for s in ACTIVE_RETRY_STATUSES]


class RetryQueueDB:
	"""Database operations for retry queue rows."""

	def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
		self.session_factory = session_factory

	async def enqueue(
		self,
		document_id: str,
		reason: str | None = None,
		next_attempt_at: datetime | None = None,
	) -> tuple[RetryQueueItem, bool]:
		"""
		Add a pending row for the document unless an active one exists.

		Returns:
			Tuple of (row, created)
		"""
		async with self.session_factory() as session:
			existing = await session.scalar(
				select(RetryQueueItem)
				.where(
					RetryQueueItem.document_id == document_id,
					RetryQueueItem.status.in_(ACTIVE),
				)
				.limit(1)
			)
			if existing is not None:
				return existing, False

			item = RetryQueueItem(
				document_id=document_id,
				attempt_count=0,
				next_attempt_at=next_attempt_at or utcnow(),
				reason=reason,
				status=RetryStatus.PENDING.value,
			)
			session.add(item)
			await session.commit()
			await session.refresh(item)
			return item, True

	async def claim_due(self, now: datetime, limit: int) -> list[RetryQueueItem]:
		"""Move up to ``limit`` due pending rows to in_progress, one per document."""
		async with self.session_factory() as session:
			result = await session.execute(
				select(RetryQueueItem)
				.where(
					RetryQueueItem.status == RetryStatus.PENDING.value,
					RetryQueueItem.next_attempt_at <= now,
				)
				.order_by(RetryQueueItem.next_attempt_at, RetryQueueItem.id)
			)
			claimed: list[RetryQueueItem] = []
			seen: set[str] = set()
			for item in result.scalars().all():
				if item.document_id in seen:
					continue
				seen.add(item.document_id)
				item.status = RetryStatus.IN_PROGRESS.value
				claimed.append(item)
				if len(claimed) >= limit:
					break
			await session.commit()
			return claimed

	async def update(self, item_id: str, **values) -> RetryQueueItem:
		async with self.session_factory() as session:
			item = await session.get(RetryQueueItem, item_id)
			if item is None:
				raise LookupError(f"Retry item not found: {item_id}")
			for name, value in values.items():
				setattr(item, name, value)
			await session.commit()
			await session.refresh(item)
			return item

	async def get_active(self, document_id: str) -> RetryQueueItem | None:
		async with self.session_factory() as session:
			return await session.scalar(
				select(RetryQueueItem)
				.where(
					RetryQueueItem.document_id == document_id,
					RetryQueueItem.status.in_(ACTIVE),
				)
				.limit(1)
			)

	async def get_latest(self, document_id: str) -> RetryQueueItem | None:
		async with self.session_factory() as session:
			return await session.scalar(
				select(RetryQueueItem)
				.where(RetryQueueItem.document_id == document_id)
				.order_by(RetryQueueItem.created_at.desc(), RetryQueueItem.id.desc())
				.limit(1)
			)

	async def list_items(
		self,
		status: RetryStatus | None = None,
		document_id: str | None = None,
		limit: int = 100,
	) -> Sequence[RetryQueueItem]:
		query = select(RetryQueueItem)
		if status is not None:
			query = query.where(RetryQueueItem.status == status.value)
		if document_id is not None:
			query = query.where(RetryQueueItem.document_id == document_id)
		query = query.order_by(RetryQueueItem.created_at.desc(), RetryQueueItem.id.desc()).limit(limit)
		async with self.session_factory() as session:
			result = await session.execute(query)
			return result.scalars().all()

	async def abandoned_document_ids(self) -> set[str]:
		"""Documents whose most recent queue row is abandoned."""
		async with self.session_factory() as session:
			result = await session.execute(
				select(RetryQueueItem.document_id, RetryQueueItem.status)
				.order_by(RetryQueueItem.document_id, RetryQueueItem.created_at, RetryQueueItem.id)
			)
			latest: dict[str, str] = {}
			for document_id, status in result.all():
				latest[document_id] = status
			return {
				document_id for document_id, status in latest.items()
				if status == RetryStatus.ABANDONED.value
			}
