# (c) Copyright Datacraft, 2026
"""
Pydantic schemas for health reports and the event log.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from docintegrity.core.types import HealthStatus, RiskLevel


class DocumentHealth(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	document_id: str
	display_name: str
	status: HealthStatus
	risk_level: RiskLevel
	recovery_state: str
	file_exists: bool
	current_version: int
	checksum: str | None = None
	abandoned: bool = False
	retry_status: str | None = None
	last_event_type: str | None = None
	last_event_at: datetime | None = None
	last_event_detail: str | None = None


class HealthReport(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	total: int
	healthy: int
	missing: int
	corrupted: int
	abandoned: int
	health_score_percent: float
	degraded: bool
	pending_events: int
	generated_at: datetime
	documents: list[DocumentHealth]


class RecoveryEvent(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: int | None = None
	document_id: str
	event_type: str
	detail: str | None = None
	actor_id: str | None = None
	created_at: datetime
