# (c) Copyright Datacraft, 2026
"""Tests for health reports and CSV export."""
import csv
import io

import pytest

from docintegrity.core.exceptions import DocumentNotFoundError
from docintegrity.core.features.audit.export import export_csv
from docintegrity.core.features.audit.health import HealthReport, health_score
from docintegrity.core.types import HealthStatus, RiskLevel


def test_health_score():
	assert health_score(0, 0) == 100.0
	assert health_score(2, 3) == 66.7
	assert health_score(3, 3) == 100.0


async def test_empty_report(container):
	report = await container.health.health_report()

	assert report.total == 0
	assert report.health_score_percent == 100.0


async def test_report_counts_each_status(container, primary, cache, invoice):
	corrupt = await container.versions.create_document("corrupt.pdf", b"corrupt me")
	missing = await container.versions.create_document("missing.pdf", b"lose me")
	primary.corrupt(corrupt.primary_key)
	for tier in (primary, cache):
		del tier.objects[missing.primary_key]

	await container.orchestrator.scan()
	report = await container.health.health_report()

	assert (report.total, report.healthy, report.missing, report.corrupted) == (3, 1, 1, 1)
	assert report.health_score_percent == 33.3
	by_id = {entry.document_id: entry for entry in report.documents}
	assert by_id[invoice.id].risk_level is RiskLevel.LOW
	assert by_id[corrupt.id].status is HealthStatus.CORRUPTED
	assert by_id[corrupt.id].risk_level is RiskLevel.MEDIUM
	assert by_id[missing.id].risk_level is RiskLevel.HIGH


async def test_report_is_read_only(container, primary, invoice):
	primary.corrupt(invoice.primary_key)

	await container.health.health_report()
	await container.health.document_report(invoice.id)

	assert await container.health.events_for(invoice.id) == []


async def test_document_report_unknown(container):
	with pytest.raises(DocumentNotFoundError):
		await container.health.document_report("missing")


async def test_partial_copy_is_medium_risk(container, primary, cache):
	primary.fail("put")
	document = await container.versions.create_document("cache-only.pdf", b"bytes")

	report = await container.health.document_report(document.id)

	assert report.status is HealthStatus.HEALTHY
	assert report.risk_level is RiskLevel.MEDIUM


async def test_export_csv(container, invoice):
	report = await container.health.health_report()

	rows = list(csv.reader(io.StringIO(export_csv(report).decode("utf-8"))))

	assert rows[0][:4] == ["total", "healthy", "missing", "corrupted"]
	assert rows[1][:4] == ["1", "1", "0", "0"]
	assert rows[2] == []
	assert rows[3][0] == "document_id"
	assert rows[4][0] == invoice.id
	assert rows[4][2] == "healthy"


def test_export_csv_is_pure():
	report = HealthReport(total=0)

	assert export_csv(report) == export_csv(report)
	assert report.documents == []
