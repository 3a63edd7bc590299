# (c) Copyright Datacraft, 2026
"""Tests for the document, version, recovery and health endpoints."""
import csv
import io

from docintegrity.core.types import EventType
from docintegrity.core.utils.hash import compute_checksum


async def upload(client, content=b"%PDF-1.7 contract", name="contract.pdf", user="alice"):
	response = await client.post(
		"/documents",
		files={"file": (name, content, "application/pdf")},
		data={"notes": "signed copy"},
		headers={"X-Forwarded-User": user},
	)
	assert response.status_code == 201, response.text
	return response.json()


async def test_upload_and_download(client):
	document = await upload(client)

	assert document["current_version"] == 1
	assert document["display_name"] == "contract.pdf"
	assert document["checksum"] == compute_checksum(b"%PDF-1.7 contract")

	response = await client.get(f"/documents/{document['id']}")
	assert response.status_code == 200
	assert response.content == b"%PDF-1.7 contract"
	assert response.headers["content-type"] == "application/pdf"
	assert response.headers["x-storage-tier"] == "primary"


async def test_download_corrupt_document_is_refused(client, primary):
	document = await upload(client)
	primary.corrupt(document["primary_key"])

	response = await client.get(f"/documents/{document['id']}")

	assert response.status_code == 409
	assert response.json()["error"] == "checksum_mismatch"
	assert b"tampered" not in response.content


async def test_download_missing_document(client, primary, cache):
	document = await upload(client)
	primary.objects.clear()
	cache.objects.clear()

	response = await client.get(f"/documents/{document['id']}")

	assert response.status_code == 404
	assert response.json()["error"] == "not_found"


async def test_download_abandoned_document_is_409(client, settings, primary, cache):
	document = await upload(client)
	primary.objects.clear()
	cache.objects.clear()
	await client.post("/recovery/scan")
	for _ in range(settings.retry_max_attempts):
		await client.post("/recovery/retry-queue/process", json={"max_concurrency": 1})

	response = await client.get(f"/documents/{document['id']}")

	assert response.status_code == 409
	assert response.json()["error"] == "abandoned"
	queue = (await client.get("/recovery/retry-queue", params={"status": "pending"})).json()
	assert queue == []


async def test_download_header_for_non_latin_name(client):
	response = await client.post(
		"/documents",
		files={"file": ("upload.pdf", b"%PDF-1.7 fapiao", "application/pdf")},
		data={"display_name": "\u53d1\u7968.pdf"},
	)
	assert response.status_code == 201

	response = await client.get(f"/documents/{response.json()['id']}")

	assert response.status_code == 200
	assert response.headers["content-disposition"] == (
		"attachment; filename=\".pdf\"; filename*=UTF-8''%E5%8F%91%E7%A5%A8.pdf"
	)


async def test_download_header_escapes_quotes(client):
	response = await client.post(
		"/documents",
		files={"file": ("upload.pdf", b"%PDF-1.7 memo", "application/pdf")},
		data={"display_name": 'say "hi".pdf'},
	)

	response = await client.get(f"/documents/{response.json()['id']}")

	assert response.headers["content-disposition"] == (
		"attachment; filename=\"say _hi_.pdf\"; filename*=UTF-8''say%20%22hi%22.pdf"
	)


async def test_unknown_document(client):
	response = await client.get("/documents/unknown/meta")

	assert response.status_code == 404
	assert response.json()["error"] == "document_not_found"


async def test_storage_outage_is_503(client, primary, cache):
	document = await upload(client)
	primary.fail("get")
	cache.fail("get")

	response = await client.get(f"/documents/{document['id']}")

	assert response.status_code == 503


async def test_preview_status_change_is_audited(client):
	document = await upload(client)

	response = await client.put(
		f"/documents/{document['id']}/preview-status",
		json={"preview_status": "placeholder"},
		headers={"X-Forwarded-User": "bob"},
	)

	assert response.status_code == 200
	assert response.json()["preview_status"] == "placeholder"
	events = (await client.get(f"/health/events/{document['id']}")).json()
	assert events[0]["event_type"] == EventType.PREVIEW_STATUS_CHANGED.value
	assert events[0]["actor_id"] == "bob"


async def test_versions_endpoints(client):
	document = await upload(client)
	doc_id = document["id"]

	response = await client.post(
		f"/documents/{doc_id}/versions",
		files={"file": ("contract.pdf", b"%PDF-1.7 amended", "application/pdf")},
	)
	assert response.status_code == 201
	assert response.json()["version_number"] == 2

	response = await client.post(f"/documents/{doc_id}/versions/1/restore", json={"notes": "undo"})
	assert response.json()["version_number"] == 3

	history = (await client.get(f"/documents/{doc_id}/versions")).json()
	assert [v["version_number"] for v in history] == [3, 2, 1]
	assert history[0]["restored_from"] == 1
	assert history[0]["notes"] == "undo"
	assert history[2]["created_by"] == "alice"

	response = await client.post(f"/documents/{doc_id}/versions/9/restore")
	assert response.status_code == 404

	response = await client.post(f"/documents/{doc_id}/versions/prune", json={"keep_latest_n": 1})
	assert response.json() == {"deleted": [2, 1], "kept": [3]}


async def test_verify_endpoint(client, primary):
	document = await upload(client)

	assert (await client.get(f"/documents/{document['id']}/verify")).json()["status"] == "valid"

	primary.corrupt(document["primary_key"])
	body = (await client.get(f"/documents/{document['id']}/verify")).json()
	assert body["status"] == "mismatch"
	assert body["expected"] == document["checksum"]


async def test_recovery_endpoints(client, primary):
	document = await upload(client)
	doc_id = document["id"]
	primary.corrupt(document["primary_key"])

	scan = (await client.post("/recovery/scan")).json()
	assert scan["mismatch_count"] == 1
	assert scan["events"][0]["event_type"] == "checksum_mismatch"

	queue = (await client.get("/recovery/retry-queue", params={"status": "pending"})).json()
	assert [item["document_id"] for item in queue] == [doc_id]

	processed = (await client.post("/recovery/retry-queue/process", json={"max_concurrency": 2})).json()
	assert processed["succeeded"] == 1

	report = (await client.get(f"/health/report/{doc_id}")).json()
	assert report["status"] == "healthy"

	result = (await client.post(f"/recovery/{doc_id}")).json()
	assert result["method"] == "already_healthy"

	batch = (await client.post("/recovery/batch", json={"document_ids": [doc_id, doc_id]})).json()
	assert len(batch) == 1

	item = (await client.post(f"/recovery/{doc_id}/retry")).json()
	assert item["status"] == "pending"


async def test_recovery_in_flight_is_409(client, container):
	document = await upload(client)

	async with container.locks.single_flight(document["id"]):
		response = await client.post(f"/recovery/{document['id']}")

	assert response.status_code == 409
	assert response.json()["error"] == "already_in_flight"
	assert response.headers["retry-after"] == "5"


async def test_health_report_and_export(client):
	await upload(client)
	await upload(client, b"second", name="second.pdf")

	report = (await client.get("/health/report")).json()
	assert report["total"] == 2
	assert report["health_score_percent"] == 100.0
	assert report["degraded"] is False

	response = await client.get("/health/report/export")
	assert response.status_code == 200
	assert response.headers["content-type"].startswith("text/csv")
	assert "attachment" in response.headers["content-disposition"]
	rows = list(csv.reader(io.StringIO(response.text)))
	assert rows[1][0] == "2"
	assert len(rows) == 6
