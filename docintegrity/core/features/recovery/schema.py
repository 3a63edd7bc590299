# (c) Copyright Datacraft, 2026
"""
Pydantic schemas for recovery and the retry queue.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from docintegrity.core.types import RecoveryMethod, RetryStatus, TierName


class StorageLocation(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	tier: TierName
	key: str


class RecoveryResult(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	document_id: str
	success: bool
	method: RecoveryMethod | None = None
	new_location: StorageLocation | None = None
	error: str | None = None
	already_in_flight: bool = False


class RecoveryEvent(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: int | None = None
	document_id: str
	event_type: str
	detail: str | None = None
	actor_id: str | None = None
	created_at: datetime


class ScanRequest(BaseModel):
	verify_checksums: bool | None = None


class ScanResult(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	scanned: int
	missing_count: int
	mismatch_count: int
	enqueued: int
	skipped: int
	events: list[RecoveryEvent]


class BatchRecoveryRequest(BaseModel):
	document_ids: list[str] = Field(min_length=1)


class ProcessRequest(BaseModel):
	max_concurrency: int | None = Field(None, gt=0)


class ProcessResult(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	processed: int
	succeeded: int
	failed: int
	abandoned: int
	deferred: int


class RetryQueueItem(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	document_id: str
	attempt_count: int
	next_attempt_at: datetime
	last_error: str | None = None
	reason: str | None = None
	status: RetryStatus
	created_at: datetime
	updated_at: datetime
