# (c) Copyright Datacraft, 2026
from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from docintegrity.core.container import ContainerDep

from .service import check_db_status, check_storage_status

router = APIRouter(prefix="/monitoring", tags=["monitoring"])


@router.get("/health")
async def health_check(container: ContainerDep):
	db_status = await check_db_status(container.session_factory)
	primary_status = await check_storage_status(container.primary)
	cache_status = await check_storage_status(container.cache)

	status = "ok" if db_status and primary_status and cache_status else "error"

	return {
		"status": status,
		"details": {
			"database": "up" if db_status else "down",
			"primary": "up" if primary_status else "down",
			"cache": "up" if cache_status else "down",
			"audit": "degraded" if container.audit.degraded else "up",
		},
	}


@router.get("/metrics")
async def metrics():
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
