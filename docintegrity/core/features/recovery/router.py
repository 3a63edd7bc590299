# (c) Copyright Datacraft, 2026
"""
API router for scanning, recovery and the retry queue.
"""
from fastapi import APIRouter, Query

from docintegrity.core.container import ActorDep, ContainerDep
from docintegrity.core.types import RetryStatus

from . import schema

router = APIRouter(prefix="/recovery", tags=["recovery"])


@router.post("/scan", response_model=schema.ScanResult)
async def scan(container: ContainerDep, body: schema.ScanRequest | None = None):
	"""Flag documents that are missing or corrupt and queue their recovery."""
	result = await container.orchestrator.scan(
		verify_checksums=body.verify_checksums if body else None
	)
	return schema.ScanResult.model_validate(result)


@router.post("/batch", response_model=list[schema.RecoveryResult])
async def recover_batch(
	body: schema.BatchRecoveryRequest,
	container: ContainerDep,
	actor_id: ActorDep,
):
	return await container.orchestrator.recover_batch(body.document_ids, actor_id=actor_id)


@router.post("/retry-queue/process", response_model=schema.ProcessResult)
async def process_retry_queue(
	container: ContainerDep,
	body: schema.ProcessRequest | None = None,
):
	return await container.orchestrator.process_retry_queue(
		max_concurrency=body.max_concurrency if body else None
	)


@router.get("/retry-queue", response_model=list[schema.RetryQueueItem])
async def list_retry_queue(
	container: ContainerDep,
	status: RetryStatus | None = None,
	document_id: str | None = None,
	limit: int = Query(100, ge=1, le=1000),
):
	return await container.retry_queue.db.list_items(
		status=status, document_id=document_id, limit=limit
	)


@router.post("/{document_id}", response_model=schema.RecoveryResult)
async def recover_document(document_id: str, container: ContainerDep, actor_id: ActorDep):
	"""
	Recover one document now.

	Returns 409 ``already_in_flight`` when a recovery for the document is
	already running; try again later.
	"""
	return await container.orchestrator.recover_one(document_id, actor_id=actor_id)


@router.post("/{document_id}/retry", response_model=schema.RetryQueueItem)
async def retry_document(document_id: str, container: ContainerDep, actor_id: ActorDep):
	"""Queue a fresh attempt for a failed or abandoned recovery."""
	return await container.orchestrator.retry_document(document_id, actor_id=actor_id)
