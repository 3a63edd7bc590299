# (c) Copyright Datacraft, 2026
"""Tests for scanning and recovery strategies."""
import asyncio

import pytest

from docintegrity.core.exceptions import AlreadyInFlightError, DocumentNotFoundError
from docintegrity.core.types import (
	EventType,
	HealthStatus,
	RecoveryMethod,
	RecoveryState,
	TierName,
	VerifyStatus,
)
from docintegrity.core.utils.hash import compute_checksum


async def event_types(container, document_id):
	events = await container.health.events_for(document_id)
	return [e.event_type for e in reversed(events)]


async def test_scan_healthy_store(container, invoice):
	result = await container.orchestrator.scan()

	assert result.scanned == 1
	assert result.missing_count == 0
	assert result.mismatch_count == 0
	assert result.events == []


async def test_scan_flags_missing_documents(container, primary, cache, invoice):
	primary.objects.clear()
	cache.objects.clear()

	result = await container.orchestrator.scan()

	assert result.missing_count == 1
	assert result.enqueued == 1
	assert [e.event_type for e in result.events] == [EventType.MISSING_DETECTED.value]
	item = await container.retry_queue.db.get_active(invoice.id)
	assert item.attempt_count == 0
	document = await container.documents.get_document(invoice.id)
	assert document.recovery_state == RecoveryState.MISSING_DETECTED.value


async def test_rescan_does_not_duplicate_events(container, primary, cache, invoice):
	primary.objects.clear()
	cache.objects.clear()

	await container.orchestrator.scan()
	second = await container.orchestrator.scan()

	assert second.missing_count == 1
	assert second.enqueued == 0
	assert (await event_types(container, invoice.id)).count(EventType.MISSING_DETECTED.value) == 1


async def test_scan_skips_when_no_tier_answers(container, primary, cache, invoice):
	primary.fail("exists")
	cache.fail("exists")

	result = await container.orchestrator.scan()

	assert result.skipped == 1
	assert result.missing_count == 0


async def test_scan_queues_partial_copies_without_flagging(container, cache, invoice):
	del cache.objects[invoice.cache_key]

	result = await container.orchestrator.scan()

	assert result.missing_count == 0
	assert result.enqueued == 1
	item = await container.retry_queue.db.get_active(invoice.id)
	assert item.reason == "tier_missing"


async def test_recover_copies_from_other_tier(container, primary, cache, invoice):
	del primary.objects[invoice.primary_key]

	result = await container.orchestrator.recover_one(invoice.id, actor_id="ops")

	assert result.success
	assert result.method is RecoveryMethod.TIER_COPY
	assert result.new_location.tier is TierName.PRIMARY
	assert primary.objects[invoice.primary_key] == cache.objects[invoice.cache_key]
	assert await event_types(container, invoice.id) == [
		EventType.RECOVERY_INITIATED.value,
		EventType.RECOVERY_SUCCEEDED.value,
	]


async def test_recover_replaces_corrupt_copy(container, primary, invoice):
	primary.corrupt(invoice.primary_key)

	result = await container.orchestrator.recover_one(invoice.id)

	assert result.method is RecoveryMethod.TIER_COPY
	assert compute_checksum(primary.objects[invoice.primary_key]) == invoice.checksum


async def test_recover_healthy_document(container, invoice):
	result = await container.orchestrator.recover_one(invoice.id)

	assert result.success
	assert result.method is RecoveryMethod.ALREADY_HEALTHY


async def test_recover_from_older_version(container, primary, cache, invoice):
	await container.versions.create_version(invoice.id, b"second draft")
	document = await container.documents.get_document(invoice.id)
	del primary.objects[document.primary_key]
	del cache.objects[document.cache_key]

	result = await container.orchestrator.recover_one(invoice.id)

	assert result.success
	assert result.method is RecoveryMethod.VERSION_RESTORE
	history = await container.versions.history(invoice.id)
	assert history[0].version_number == 3
	assert history[0].restored_from == 1
	assert history[0].created_by is None
	recovered = await container.documents.get_document(invoice.id)
	assert recovered.checksum == invoice.checksum
	assert recovered.recovery_state == RecoveryState.HEALTHY.value


async def test_recover_fails_when_nothing_verifies(container, primary, cache, invoice):
	primary.objects.clear()
	cache.objects.clear()

	result = await container.orchestrator.recover_one(invoice.id)

	assert not result.success
	assert "tier_copy" in result.error
	assert "version_restore" in result.error
	document = await container.documents.get_document(invoice.id)
	assert document.recovery_state == RecoveryState.RECOVERY_FAILED.value
	assert (await event_types(container, invoice.id))[-1] == EventType.RECOVERY_FAILED.value


async def test_recover_unknown_document(container):
	with pytest.raises(DocumentNotFoundError):
		await container.orchestrator.recover_one("nope")


async def test_single_flight(container, primary, invoice):
	del primary.objects[invoice.primary_key]
	primary.delay = 0.2

	first = asyncio.create_task(container.orchestrator.recover_one(invoice.id))
	await asyncio.sleep(0.05)

	with pytest.raises(AlreadyInFlightError):
		await container.orchestrator.recover_one(invoice.id)

	result = await first
	assert result.success
	types = await event_types(container, invoice.id)
	assert types.count(EventType.RECOVERY_INITIATED.value) == 1


async def test_batch_collapses_duplicates(container, primary, invoice):
	other = await container.versions.create_document("other.pdf", b"other")
	del primary.objects[invoice.primary_key]

	results = await container.orchestrator.recover_batch([invoice.id, other.id, invoice.id, "ghost"])

	assert [r.document_id for r in results] == [invoice.id, other.id, "ghost"]
	assert results[0].method is RecoveryMethod.TIER_COPY
	assert results[1].method is RecoveryMethod.ALREADY_HEALTHY
	assert not results[2].success


async def test_manual_recovery_settles_queued_item(container, primary, cache, invoice):
	primary.objects.clear()
	cache.objects.clear()
	await container.orchestrator.scan()
	cache.objects[invoice.cache_key] = b"%PDF-1.7 invoice 2026-0042"

	await container.orchestrator.recover_one(invoice.id)

	assert await container.retry_queue.db.get_active(invoice.id) is None


async def test_invoice_scenario_end_to_end(container, primary):
	content = b"%PDF-1.7 invoice.pdf totals 1,250.00"
	c1 = compute_checksum(content)
	document = await container.versions.create_document("invoice.pdf", content, actor_id="alice")
	assert document.current_version == 1
	assert document.checksum == c1

	primary.corrupt(document.primary_key)
	verification = await container.verifier.verify(document.id)
	assert verification.status is VerifyStatus.MISMATCH

	scan = await container.orchestrator.scan()
	assert scan.mismatch_count == 1
	assert await container.retry_queue.db.get_active(document.id) is not None

	processed = await container.orchestrator.process_retry_queue()
	assert processed.succeeded == 1

	report = await container.health.document_report(document.id)
	assert report.status is HealthStatus.HEALTHY
	assert compute_checksum(primary.objects[document.primary_key]) == c1
	assert (await container.verifier.verify(document.id)).status is VerifyStatus.VALID
