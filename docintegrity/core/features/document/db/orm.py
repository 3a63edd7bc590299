# (c) Copyright Datacraft, 2026
"""
ORM models for documents and their immutable version ledger.
"""
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import (
	Boolean,
	ForeignKey,
	Integer,
	String,
	Text,
	UniqueConstraint,
	Index,
)
from sqlalchemy.orm import Mapped, mapped_column
from uuid_extensions import uuid7str

from docintegrity.core.db.base import Base, utcnow
from docintegrity.core.types import PreviewStatus, RecoveryState, TierName


@dataclass(frozen=True)
class StorageLocation:
	"""Where a copy of the content lives: a tier plus an object key."""
	tier: TierName
	key: str


class Document(Base):
	"""
	Canonical document record.

	``checksum`` is the SHA-256 of the current version's content and is only
	changed by committing a new version. A document with neither location set
	is terminal-missing.
	"""
	__tablename__ = "documents"

	id: Mapped[str] = mapped_column(
		String(32),
		primary_key=True,
		default=uuid7str,
	)
	display_name: Mapped[str] = mapped_column(String(500))
	mime_type: Mapped[str | None] = mapped_column(String(100))
	size_bytes: Mapped[int | None] = mapped_column(Integer)
	current_version: Mapped[int] = mapped_column(Integer, default=0)
	checksum: Mapped[str | None] = mapped_column(String(64))

	primary_key: Mapped[str | None] = mapped_column(String(500))
	cache_key: Mapped[str | None] = mapped_column(String(500))

	preview_status: Mapped[str] = mapped_column(
		String(20),
		default=PreviewStatus.ORIGINAL.value,
	)
	file_exists: Mapped[bool] = mapped_column(Boolean, default=True)
	recovery_state: Mapped[str] = mapped_column(
		String(30),
		default=RecoveryState.HEALTHY.value,
	)
	last_verified_at: Mapped[datetime | None] = mapped_column()

	created_at: Mapped[datetime] = mapped_column(default=utcnow)
	updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

	@property
	def primary_location(self) -> StorageLocation | None:
		if self.primary_key:
			return StorageLocation(TierName.PRIMARY, self.primary_key)
		return None

	@property
	def cache_location(self) -> StorageLocation | None:
		if self.cache_key:
			return StorageLocation(TierName.CACHE, self.cache_key)
		return None

	@property
	def locations(self) -> list[StorageLocation]:
		return [loc for loc in (self.primary_location, self.cache_location) if loc]

	def location_key(self, tier: TierName) -> str | None:
		return self.primary_key if tier is TierName.PRIMARY else self.cache_key

	@property
	def is_terminal_missing(self) -> bool:
		return not self.primary_key and not self.cache_key

	def __repr__(self):
		return f"Document(id={self.id}, version={self.current_version})"


class DocumentVersion(Base):
	"""Immutable version ledger row. Never updated; pruned only by ``prune``."""
	__tablename__ = "document_versions"
	__table_args__ = (
		UniqueConstraint("document_id", "version_number", name="uq_document_version_number"),
		Index("ix_document_versions_document", "document_id"),
	)

	id: Mapped[str] = mapped_column(
		String(32),
		primary_key=True,
		default=uuid7str,
	)
	document_id: Mapped[str] = mapped_column(
		ForeignKey("documents.id", ondelete="CASCADE"),
	)
	version_number: Mapped[int] = mapped_column(Integer)
	checksum: Mapped[str] = mapped_column(String(64))
	storage_key: Mapped[str] = mapped_column(String(500))
	size_bytes: Mapped[int | None] = mapped_column(Integer)
	created_by: Mapped[str | None] = mapped_column(String(255))
	notes: Mapped[str | None] = mapped_column(Text)
	restored_from: Mapped[int | None] = mapped_column(Integer)
	created_at: Mapped[datetime] = mapped_column(default=utcnow)

	def __repr__(self):
		return f"DocumentVersion(document_id={self.document_id}, version={self.version_number})"
