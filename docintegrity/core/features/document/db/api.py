# (c) Copyright Datacraft, 2026
"""Database operations for documents and versions.

Every method runs in its own short transaction so that no transaction is
held open across storage I/O or while waiting on a per-document lock.
"""
from typing import Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docintegrity.core.db.base import utcnow
from docintegrity.core.exceptions import DocumentNotFoundError, VersionNotFoundError
from docintegrity.core.types import RecoveryState, TierName

from .orm import Document, DocumentVersion


class DocumentDB:
	"""Database operations for documents."""

	def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
		self.session_factory = session_factory

	# --- Documents ---

	async def get_document(self, document_id: str) -> Document | None:
		async with self.session_factory() as session:
			return await session.get(Document, document_id)

	async def require_document(self, document_id: str) -> Document:
		document = await self.get_document(document_id)
		if document is None:
			raise DocumentNotFoundError(document_id)
		return document

	async def list_documents(self) -> Sequence[Document]:
		async with self.session_factory() as session:
			result = await session.execute(select(Document).order_by(Document.created_at))
			return result.scalars().all()

	async def list_document_ids(self) -> list[str]:
		async with self.session_factory() as session:
			result = await session.execute(select(Document.id).order_by(Document.created_at))
			return list(result.scalars().all())

	async def update_document(self, document_id: str, **values) -> Document:
		"""Apply column updates and return the refreshed row."""
		async with self.session_factory() as session:
			document = await session.get(Document, document_id)
			if document is None:
				raise DocumentNotFoundError(document_id)
			for name, value in values.items():
				setattr(document, name, value)
			await session.commit()
			await session.refresh(document)
			return document

	async def set_location(self, document_id: str, tier: TierName, key: str | None) -> Document:
		column = "primary_key" if tier is TierName.PRIMARY else "cache_key"
		return await self.update_document(document_id, **{column: key})

	async def set_recovery_state(
		self,
		document_id: str,
		state: RecoveryState,
		file_exists: bool | None = None,
	) -> Document:
		values: dict = {"recovery_state": state.value}
		if file_exists is not None:
			values["file_exists"] = file_exists
		return await self.update_document(document_id, **values)

	async def mark_verified(self, document_id: str) -> None:
		async with self.session_factory() as session:
			await session.execute(
				update(Document)
				.where(Document.id == document_id)
				.values(last_verified_at=utcnow())
			)
			await session.commit()

	# --- Versions ---

	async def record_version(
		self,
		document_id: str,
		version_number: int,
		checksum: str,
		storage_key: str,
		size_bytes: int,
		primary_key: str | None,
		cache_key: str | None,
		created_by: str | None = None,
		notes: str | None = None,
		restored_from: int | None = None,
		display_name: str | None = None,
		mime_type: str | None = None,
	) -> DocumentVersion:
		"""
		Append a version row and point the document at it, atomically.

		Creates the document row when ``display_name`` is given and the
		document does not exist yet. The caller must hold the document's lock
		and pass the next contiguous version number.
		"""
		async with self.session_factory() as session:
			document = await session.get(Document, document_id)
			if document is None:
				if display_name is None:
					raise DocumentNotFoundError(document_id)
				document = Document(
					id=document_id,
					display_name=display_name,
					mime_type=mime_type,
				)
				session.add(document)

			latest = await session.scalar(
				select(func.max(DocumentVersion.version_number))
				.where(DocumentVersion.document_id == document_id)
			)
			expected = max(latest or 0, document.current_version or 0) + 1
			if version_number != expected:
				raise ValueError(
					f"Version {version_number} for {document_id} is not contiguous, expected {expected}"
				)

			version = DocumentVersion(
				document_id=document_id,
				version_number=version_number,
				checksum=checksum,
				storage_key=storage_key,
				size_bytes=size_bytes,
				created_by=created_by,
				notes=notes,
				restored_from=restored_from,
			)
			session.add(version)

			document.current_version = version_number
			document.checksum = checksum
			document.size_bytes = size_bytes
			document.primary_key = primary_key
			document.cache_key = cache_key
			document.file_exists = bool(primary_key or cache_key)
			document.recovery_state = RecoveryState.HEALTHY.value
			if mime_type and not document.mime_type:
				document.mime_type = mime_type

			await session.commit()
			await session.refresh(version)
			return version

	async def next_version_number(self, document_id: str) -> int:
		async with self.session_factory() as session:
			latest = await session.scalar(
				select(func.max(DocumentVersion.version_number))
				.where(DocumentVersion.document_id == document_id)
			)
			current = await session.scalar(
				select(Document.current_version).where(Document.id == document_id)
			)
			return max(latest or 0, current or 0) + 1

	async def list_versions(self, document_id: str) -> Sequence[DocumentVersion]:
		"""Versions newest first."""
		async with self.session_factory() as session:
			result = await session.execute(
				select(DocumentVersion)
				.where(DocumentVersion.document_id == document_id)
				.order_by(DocumentVersion.version_number.desc())
			)
			return result.scalars().all()

	async def get_version(self, document_id: str, version_number: int) -> DocumentVersion:
		async with self.session_factory() as session:
			result = await session.execute(
				select(DocumentVersion).where(
					DocumentVersion.document_id == document_id,
					DocumentVersion.version_number == version_number,
				)
			)
			version = result.scalar_one_or_none()
			if version is None:
				raise VersionNotFoundError(document_id, version_number)
			return version

	async def delete_versions(self, document_id: str, version_numbers: list[int]) -> int:
		if not version_numbers:
			return 0
		async with self.session_factory() as session:
			result = await session.execute(
				delete(DocumentVersion).where(
					DocumentVersion.document_id == document_id,
					DocumentVersion.version_number.in_(version_numbers),
				)
			)
			await session.commit()
			return result.rowcount or 0
