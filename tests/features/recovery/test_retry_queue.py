# (c) Copyright Datacraft, 2026
"""Tests for the retry queue and its sweep."""
import asyncio
from datetime import timedelta

import pytest

from docintegrity.core.db.base import utcnow
from docintegrity.core.exceptions import AbandonedError
from docintegrity.core.features.recovery.scheduler import RetrySweepScheduler
from docintegrity.core.types import EventType, HealthStatus, RecoveryState, RetryStatus


async def test_backoff_is_exponential_and_capped(container):
	queue = container.retry_queue
	queue.base_delay_seconds = 10
	queue.max_delay_seconds = 100

	assert [queue.backoff_delay(n) for n in range(5)] == [
		timedelta(seconds=10),
		timedelta(seconds=20),
		timedelta(seconds=40),
		timedelta(seconds=80),
		timedelta(seconds=100),
	]


async def test_enqueue_keeps_one_active_row(container, invoice):
	first = await container.retry_queue.enqueue(invoice.id, reason="missing_detected")
	second = await container.retry_queue.enqueue(invoice.id, reason="checksum_mismatch")

	assert first.id == second.id
	assert len(await container.retry_queue.db.list_items(document_id=invoice.id)) == 1


async def test_failed_attempt_is_rescheduled(container, primary, cache, invoice):
	container.retry_queue.base_delay_seconds = 60
	container.retry_queue.max_delay_seconds = 3600
	primary.objects.clear()
	cache.objects.clear()
	await container.orchestrator.scan()

	result = await container.orchestrator.process_retry_queue()

	assert (result.processed, result.failed, result.abandoned) == (1, 1, 0)
	item = await container.retry_queue.db.get_active(invoice.id)
	assert item.status == RetryStatus.PENDING.value
	assert item.attempt_count == 1
	assert item.next_attempt_at > utcnow() + timedelta(seconds=60)
	assert "tier_copy" in item.last_error

	# Not due yet
	assert (await container.orchestrator.process_retry_queue()).processed == 0


async def test_retry_terminates_at_max_attempts(container, settings, primary, cache, invoice):
	primary.objects.clear()
	cache.objects.clear()
	await container.orchestrator.scan()

	for _ in range(settings.retry_max_attempts):
		await container.orchestrator.process_retry_queue()

	items = await container.retry_queue.db.list_items(document_id=invoice.id)
	assert len(items) == 1
	assert items[0].status == RetryStatus.ABANDONED.value
	assert items[0].attempt_count == settings.retry_max_attempts

	again = await container.orchestrator.process_retry_queue()
	assert again.processed == 0

	rescan = await container.orchestrator.scan()
	assert rescan.enqueued == 0

	events = await container.health.events_for(invoice.id)
	abandoned = [e for e in events if e.detail and e.detail.startswith("Abandoned")]
	assert len(abandoned) == 1
	report = await container.health.document_report(invoice.id)
	assert report.abandoned
	assert report.status is HealthStatus.MISSING


async def test_reading_an_abandoned_document_does_not_requeue_it(
	container, settings, primary, cache, invoice
):
	primary.objects.clear()
	cache.objects.clear()
	await container.orchestrator.scan()
	for _ in range(settings.retry_max_attempts):
		await container.orchestrator.process_retry_queue()
	events_before = len(await container.health.events_for(invoice.id))

	with pytest.raises(AbandonedError) as exc_info:
		await container.gateway.read_document(invoice.id)

	assert exc_info.value.attempts == settings.retry_max_attempts
	assert (await container.orchestrator.process_retry_queue()).processed == 0
	items = await container.retry_queue.db.list_items(document_id=invoice.id)
	assert [item.status for item in items] == [RetryStatus.ABANDONED.value]
	assert len(await container.health.events_for(invoice.id)) == events_before


async def test_abandoned_document_ignores_new_mismatches(container, settings, primary, cache, invoice):
	primary.objects.clear()
	cache.objects.clear()
	await container.orchestrator.scan()
	for _ in range(settings.retry_max_attempts):
		await container.orchestrator.process_retry_queue()

	document = await container.documents.get_document(invoice.id)
	await container.retry_queue.flag_mismatch(document, "corrupt copy found", source="read")

	assert await container.retry_queue.db.get_active(invoice.id) is None
	assert (await container.orchestrator.process_retry_queue()).processed == 0

async def test_in_flight_items_are_released_without_spending_an_attempt(container, primary, invoice):
	del primary.objects[invoice.primary_key]
	await container.retry_queue.enqueue(invoice.id, reason="missing_detected")

	async with container.locks.single_flight(invoice.id):
		result = await container.orchestrator.process_retry_queue()

	assert result.deferred == 1
	item = await container.retry_queue.db.get_active(invoice.id)
	assert item.status == RetryStatus.PENDING.value
	assert item.attempt_count == 0


async def test_attempt_timeout_reschedules_without_cancelling(container, primary, invoice):
	del primary.objects[invoice.primary_key]
	await container.retry_queue.enqueue(invoice.id, reason="missing_detected")
	container.orchestrator.attempt_timeout = 0.05
	primary.delay = 0.2

	result = await container.orchestrator.process_retry_queue()
	assert result.failed == 1
	await container.orchestrator.drain()

	# The recovery ran to completion after the attempt was given up on
	assert invoice.primary_key in primary.objects
	item = (await container.retry_queue.db.list_items(document_id=invoice.id))[0]
	assert item.attempt_count == 1


async def test_retry_document_requeues_abandoned(container, settings, primary, cache, invoice):
	primary.objects.clear()
	cache.objects.clear()
	await container.orchestrator.scan()
	for _ in range(settings.retry_max_attempts):
		await container.orchestrator.process_retry_queue()

	item = await container.orchestrator.retry_document(invoice.id, actor_id="ops")

	assert item.status == RetryStatus.PENDING.value
	assert item.attempt_count == 0
	document = await container.documents.get_document(invoice.id)
	assert document.recovery_state == RecoveryState.MISSING_DETECTED.value
	events = await container.health.events_for(invoice.id, limit=1)
	assert events[0].event_type == EventType.MISSING_DETECTED.value
	assert events[0].actor_id == "ops"


async def test_scheduler_runs_sweeps(container, primary, invoice):
	del primary.objects[invoice.primary_key]
	await container.retry_queue.enqueue(invoice.id, reason="missing_detected")
	scheduler = RetrySweepScheduler(container.orchestrator, interval=0.05)

	scheduler.start()
	for _ in range(50):
		if invoice.primary_key in primary.objects:
			break
		await asyncio.sleep(0.02)
	await scheduler.stop()

	assert not scheduler.running
	assert invoice.primary_key in primary.objects
	assert await container.retry_queue.db.get_active(invoice.id) is None
