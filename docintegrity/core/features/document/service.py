# (c) Copyright Datacraft, 2026
"""Document level operations used by the request layer."""
import logging

from docintegrity.core.features.audit.recorder import AuditRecorder
from docintegrity.core.features.gateway.service import StorageGateway, TierRead
from docintegrity.core.features.versions.service import VersionHistoryManager
from docintegrity.core.types import EventType, PreviewStatus

from .db.api import DocumentDB
from .db.orm import Document

logger = logging.getLogger(__name__)


class DocumentService:

	def __init__(
		self,
		documents: DocumentDB,
		gateway: StorageGateway,
		versions: VersionHistoryManager,
		audit: AuditRecorder,
	):
		self.documents = documents
		self.gateway = gateway
		self.versions = versions
		self.audit = audit

	async def create_document(
		self,
		display_name: str,
		data: bytes,
		actor_id: str | None = None,
		notes: str | None = None,
		mime_type: str | None = None,
	) -> Document:
		return await self.versions.create_document(
			display_name,
			data,
			actor_id=actor_id,
			notes=notes,
			mime_type=mime_type,
		)

	async def get_document(self, document_id: str) -> Document:
		return await self.documents.require_document(document_id)

	async def read(self, document_id: str, actor_id: str | None = None) -> tuple[Document, TierRead]:
		"""Verified bytes of the current version. Fails closed."""
		return await self.gateway.read_document(document_id, actor_id=actor_id)

	async def set_preview_status(
		self,
		document_id: str,
		status: PreviewStatus,
		actor_id: str | None = None,
	) -> Document:
		document = await self.documents.require_document(document_id)
		if document.preview_status == status.value:
			return document

		await self.audit.record(
			document_id,
			EventType.PREVIEW_STATUS_CHANGED,
			detail=f"{document.preview_status} -> {status.value}",
			actor_id=actor_id,
		)
		return await self.documents.update_document(document_id, preview_status=status.value)
