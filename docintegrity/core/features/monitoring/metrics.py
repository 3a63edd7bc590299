# (c) Copyright Datacraft, 2026
"""Prometheus counters for integrity and recovery activity."""
from prometheus_client import Counter

RECOVERIES = Counter(
	"docintegrity_recoveries_total",
	"Recovery attempts by outcome and method",
	["outcome", "method"],
)
CHECKSUM_MISMATCHES = Counter(
	"docintegrity_checksum_mismatches_total",
	"Checksum mismatches detected",
	["source"],
)
MISSING_DETECTED = Counter(
	"docintegrity_missing_detected_total",
	"Documents found absent from every tier",
)
REHYDRATIONS = Counter(
	"docintegrity_rehydrations_total",
	"Background copies into a tier after a fallback read",
	["tier", "outcome"],
)
RETRIES_ABANDONED = Counter(
	"docintegrity_retries_abandoned_total",
	"Retry queue items that exhausted their attempts",
)
