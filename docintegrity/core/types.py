# (c) Copyright Datacraft, 2026
"""Enumerations shared across the engine."""
from enum import Enum


class PrimaryBackend(str, Enum):
	S3 = "s3"
	LOCAL = "local"


class LockBackend(str, Enum):
	MEMORY = "memory"
	REDIS = "redis"


class TierName(str, Enum):
	"""The two storage tiers, in read order."""
	PRIMARY = "primary"
	CACHE = "cache"

	@property
	def other(self) -> "TierName":
		return TierName.CACHE if self is TierName.PRIMARY else TierName.PRIMARY


class PreviewStatus(str, Enum):
	ORIGINAL = "original"
	REGENERATED = "regenerated"
	PLACEHOLDER = "placeholder"


class RecoveryState(str, Enum):
	"""Per-document recovery state machine.

	healthy -> missing_detected -> recovery_in_flight -> healthy | recovery_failed

	``recovery_failed`` is terminal until a new scan or a manual retry moves
	the document back to ``missing_detected``.
	"""
	HEALTHY = "healthy"
	MISSING_DETECTED = "missing_detected"
	RECOVERY_IN_FLIGHT = "recovery_in_flight"
	RECOVERY_FAILED = "recovery_failed"


class EventType(str, Enum):
	MISSING_DETECTED = "missing_detected"
	RECOVERY_INITIATED = "recovery_initiated"
	RECOVERY_SUCCEEDED = "recovery_succeeded"
	RECOVERY_FAILED = "recovery_failed"
	CHECKSUM_MISMATCH = "checksum_mismatch"
	PREVIEW_STATUS_CHANGED = "preview_status_changed"


class RetryStatus(str, Enum):
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	SUCCEEDED = "succeeded"
	FAILED = "failed"
	ABANDONED = "abandoned"


ACTIVE_RETRY_STATUSES = (RetryStatus.PENDING, RetryStatus.IN_PROGRESS)


class VerifyStatus(str, Enum):
	VALID = "valid"
	MISMATCH = "mismatch"
	UNREADABLE = "unreadable"


class RecoveryMethod(str, Enum):
	ALREADY_HEALTHY = "already_healthy"
	TIER_COPY = "tier_copy"
	VERSION_RESTORE = "version_restore"


class HealthStatus(str, Enum):
	HEALTHY = "healthy"
	MISSING = "missing"
	CORRUPTED = "corrupted"


class RiskLevel(str, Enum):
	LOW = "low"
	MEDIUM = "medium"
	HIGH = "high"
