# (c) Copyright Datacraft, 2026
"""
API router for document upload, download and preview status.
"""
import unicodedata
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, File, Form, Response, UploadFile, status

from docintegrity.core.container import ActorDep, ContainerDep

from . import schema

router = APIRouter(prefix="/documents", tags=["documents"])


def content_disposition(filename: str) -> str:
	"""
	Attachment header safe for any display name.

	Carries an ASCII ``filename`` for old clients and the exact name as
	UTF-8 in ``filename*`` (RFC 6266).
	"""
	ascii_name = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
	ascii_name = "".join(
		"_" if ch in '"\\' or not ch.isprintable() else ch for ch in ascii_name
	).strip() or "download"
	return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename, safe='')}"


@router.post("", response_model=schema.Document, status_code=status.HTTP_201_CREATED)
async def upload_document(
	container: ContainerDep,
	actor_id: ActorDep,
	file: Annotated[UploadFile, File()],
	display_name: Annotated[str | None, Form()] = None,
	notes: Annotated[str | None, Form()] = None,
):
	"""Store a new document as version 1."""
	data = await file.read()
	return await container.document_service.create_document(
		display_name or file.filename or "untitled",
		data,
		actor_id=actor_id,
		notes=notes,
		mime_type=file.content_type,
	)


@router.get("/{document_id}")
async def download_document(
	document_id: str,
	container: ContainerDep,
	actor_id: ActorDep,
):
	"""
	Current content of the document.

	Bytes that fail checksum verification are never returned; the response
	is 409 and recovery is queued.
	"""
	document, read = await container.document_service.read(document_id, actor_id=actor_id)
	return Response(
		content=read.data,
		media_type=document.mime_type or "application/octet-stream",
		headers={
			"Content-Disposition": content_disposition(document.display_name),
			"ETag": f'"{document.checksum}"',
			"X-Storage-Tier": read.tier.value,
		},
	)


@router.get("/{document_id}/meta", response_model=schema.Document)
async def get_document_meta(document_id: str, container: ContainerDep):
	return await container.document_service.get_document(document_id)


@router.put("/{document_id}/preview-status", response_model=schema.Document)
async def set_preview_status(
	document_id: str,
	body: schema.PreviewStatusUpdate,
	container: ContainerDep,
	actor_id: ActorDep,
):
	return await container.document_service.set_preview_status(
		document_id, body.preview_status, actor_id=actor_id
	)
