# (c) Copyright Datacraft, 2026
"""
API router for document version history.
"""
from typing import Annotated

from fastapi import APIRouter, File, Form, UploadFile, status

from docintegrity.core.container import ActorDep, ContainerDep

from . import schema

router = APIRouter(prefix="/documents", tags=["versions"])


@router.get("/{document_id}/versions", response_model=list[schema.DocumentVersion])
async def list_versions(document_id: str, container: ContainerDep):
	"""Versions newest first."""
	return await container.versions.history(document_id)


@router.post(
	"/{document_id}/versions",
	response_model=schema.VersionCreated,
	status_code=status.HTTP_201_CREATED,
)
async def create_version(
	document_id: str,
	container: ContainerDep,
	actor_id: ActorDep,
	file: Annotated[UploadFile, File()],
	notes: Annotated[str | None, Form()] = None,
):
	data = await file.read()
	version_number = await container.versions.create_version(
		document_id, data, actor_id=actor_id, notes=notes
	)
	return schema.VersionCreated(document_id=document_id, version_number=version_number)


@router.post(
	"/{document_id}/versions/{version_number}/restore",
	response_model=schema.VersionCreated,
	status_code=status.HTTP_201_CREATED,
)
async def restore_version(
	document_id: str,
	version_number: int,
	container: ContainerDep,
	actor_id: ActorDep,
	body: schema.RestoreRequest | None = None,
):
	"""Copy an old version forward as a new version."""
	new_number = await container.versions.restore(
		document_id,
		version_number,
		actor_id=actor_id,
		notes=body.notes if body else None,
	)
	return schema.VersionCreated(document_id=document_id, version_number=new_number)


@router.post("/{document_id}/versions/prune", response_model=schema.PruneResult)
async def prune_versions(
	document_id: str,
	body: schema.PruneRequest,
	container: ContainerDep,
):
	return await container.versions.prune(document_id, body.keep_latest_n)
