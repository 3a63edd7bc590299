# (c) Copyright Datacraft, 2026
"""CSV rendering of health reports."""
import csv
import io

from .health import HealthReport

SUMMARY_FIELDS = ["total", "healthy", "missing", "corrupted", "abandoned", "health_score_percent"]
DOCUMENT_FIELDS = [
	"document_id",
	"display_name",
	"status",
	"risk_level",
	"recovery_state",
	"file_exists",
	"current_version",
	"checksum",
	"abandoned",
	"retry_status",
	"last_event_type",
	"last_event_at",
]


def _cell(value) -> str:
	if value is None:
		return ""
	if hasattr(value, "isoformat"):
		return value.isoformat()
	if hasattr(value, "value"):
		return str(value.value)
	return str(value)


def export_csv(report: HealthReport) -> bytes:
	"""
	Render ``report`` as UTF-8 CSV.

	A summary block comes first, then a blank line, then one row per
	document. Pure function; the report is not modified.
	"""
	buffer = io.StringIO()
	writer = csv.writer(buffer, lineterminator="\n")

	writer.writerow(SUMMARY_FIELDS)
	writer.writerow([_cell(getattr(report, name)) for name in SUMMARY_FIELDS])
	writer.writerow([])

	writer.writerow(DOCUMENT_FIELDS)
	for entry in report.documents:
		writer.writerow([_cell(getattr(entry, name)) for name in DOCUMENT_FIELDS])

	return buffer.getvalue().encode("utf-8")
