# (c) Copyright Datacraft, 2026
"""
API router for health reports and the recovery event log.
"""
from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from docintegrity.core.container import ContainerDep

from . import schema
from .export import export_csv

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/report", response_model=schema.HealthReport)
async def health_report(container: ContainerDep):
	return await container.health.health_report()


@router.get("/report/export")
async def export_health_report(container: ContainerDep):
	"""Health report as a CSV download."""
	report = await container.health.health_report()
	content = export_csv(report)
	filename = f"health-report-{report.generated_at:%Y%m%d-%H%M%S}.csv"
	return StreamingResponse(
		iter([content]),
		media_type="text/csv",
		headers={"Content-Disposition": f'attachment; filename="{filename}"'},
	)


@router.get("/report/{document_id}", response_model=schema.DocumentHealth)
async def document_health(document_id: str, container: ContainerDep):
	return await container.health.document_report(document_id)


@router.get("/events/{document_id}", response_model=list[schema.RecoveryEvent])
async def document_events(
	document_id: str,
	container: ContainerDep,
	limit: int = Query(100, ge=1, le=1000),
):
	"""Recovery events of a document, newest first."""
	return await container.health.events_for(document_id, limit=limit)
