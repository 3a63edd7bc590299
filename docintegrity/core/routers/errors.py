# (c) Copyright Datacraft, 2026
"""Translation of engine errors into HTTP responses."""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from docintegrity.core.exceptions import (
	AbandonedError,
	AlreadyInFlightError,
	ChecksumMismatchError,
	DocumentNotFoundError,
	IntegrityEngineError,
	NotFoundError,
	StorageUnavailableError,
	VersionNotFoundError,
)

logger = logging.getLogger(__name__)

# Checked in order; subclasses before their bases
ERROR_MAP: list[tuple[type[IntegrityEngineError], int, str]] = [
	(DocumentNotFoundError, status.HTTP_404_NOT_FOUND, "document_not_found"),
	(VersionNotFoundError, status.HTTP_404_NOT_FOUND, "version_not_found"),
	(AbandonedError, status.HTTP_409_CONFLICT, "abandoned"),
	(NotFoundError, status.HTTP_404_NOT_FOUND, "not_found"),
	(ChecksumMismatchError, status.HTTP_409_CONFLICT, "checksum_mismatch"),
	(AlreadyInFlightError, status.HTTP_409_CONFLICT, "already_in_flight"),
	(StorageUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE, "storage_unavailable"),
]


def error_status(error: IntegrityEngineError) -> tuple[int, str]:
	for error_class, status_code, code in ERROR_MAP:
		if isinstance(error, error_class):
			return status_code, code
	return status.HTTP_500_INTERNAL_SERVER_ERROR, "integrity_engine_error"


async def integrity_error_handler(request: Request, exc: IntegrityEngineError) -> JSONResponse:
	status_code, code = error_status(exc)
	if status_code >= 500:
		logger.warning(f"{request.method} {request.url.path} failed: {exc}")
	headers = {"Retry-After": "5"} if isinstance(exc, AlreadyInFlightError) else None
	return JSONResponse(
		status_code=status_code,
		content={
			"error": code,
			"detail": str(exc),
			"document_id": exc.document_id,
		},
		headers=headers,
	)


def register_exception_handlers(app: FastAPI) -> None:
	app.add_exception_handler(IntegrityEngineError, integrity_error_handler)
