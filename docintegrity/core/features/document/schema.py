# (c) Copyright Datacraft, 2026
"""
Pydantic schemas for documents and versions.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from docintegrity.core.types import PreviewStatus, RecoveryState


class Document(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	display_name: str
	mime_type: str | None = None
	size_bytes: int | None = None
	current_version: int
	checksum: str | None = None
	primary_key: str | None = None
	cache_key: str | None = None
	preview_status: PreviewStatus
	file_exists: bool
	recovery_state: RecoveryState
	last_verified_at: datetime | None = None
	created_at: datetime
	updated_at: datetime


class PreviewStatusUpdate(BaseModel):
	preview_status: PreviewStatus
