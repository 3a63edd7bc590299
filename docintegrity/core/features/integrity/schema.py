# (c) Copyright Datacraft, 2026
from pydantic import BaseModel, ConfigDict

from docintegrity.core.types import TierName, VerifyStatus


class VerificationResult(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	document_id: str
	status: VerifyStatus
	digest: str | None = None
	expected: str | None = None
	tier: TierName | None = None
	error: str | None = None
