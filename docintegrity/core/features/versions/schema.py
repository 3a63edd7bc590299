# (c) Copyright Datacraft, 2026
"""
Pydantic schemas for the version ledger.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DocumentVersion(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	document_id: str
	version_number: int
	checksum: str
	storage_key: str
	size_bytes: int | None = None
	created_by: str | None = None
	notes: str | None = None
	restored_from: int | None = None
	created_at: datetime


class VersionCreated(BaseModel):
	document_id: str
	version_number: int


class RestoreRequest(BaseModel):
	notes: str | None = None


class PruneRequest(BaseModel):
	keep_latest_n: int = Field(ge=1)


class PruneResult(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	deleted: list[int]
	kept: list[int]
