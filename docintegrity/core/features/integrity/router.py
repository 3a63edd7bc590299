# (c) Copyright Datacraft, 2026
"""API router for on-demand checksum verification."""
from fastapi import APIRouter

from docintegrity.core.container import ContainerDep

from . import schema

router = APIRouter(prefix="/documents", tags=["integrity"])


@router.get("/{document_id}/verify", response_model=schema.VerificationResult)
async def verify_document(document_id: str, container: ContainerDep):
	"""Recompute the checksum of the stored content. Changes nothing."""
	return await container.verifier.verify(document_id)
