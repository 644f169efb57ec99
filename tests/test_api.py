"""
HTTP surface: auth, upload, listing, CSV download and the maintenance endpoints.
"""
import csv
import io
from datetime import datetime, timezone

from receiptbook.analysis.base import ExtractedLineItem, ExtractedReceipt
from receiptbook.cache import file_digest
from receiptbook.deps import get_analyzer
from receiptbook.main import app
from receiptbook.reconcile import persist_receipt

from conftest import load_fixture

IMAGE = b"\xff\xd8\xff\xe0 jpeg receipt"


def _upload(client, content: bytes = IMAGE):
    return client.post("/api/upload", files={"file": ("receipt.jpg", content, "image/jpeg")})


class TestAuth:
    def test_health_is_public(self, client):
        resp = client.get("/health", headers={"Authorization": ""})
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_missing_token(self, client):
        resp = client.get("/api/all", headers={"Authorization": ""})
        assert resp.status_code == 401

    def test_wrong_token(self, client):
        resp = client.get("/api/all", headers={"Authorization": "Bearer not-the-secret"})
        assert resp.status_code == 403

    def test_wrong_scheme(self, client):
        resp = client.get("/api/all", headers={"Authorization": "Basic dGVzdDp0ZXN0"})
        assert resp.status_code == 401


class TestUpload:
    def test_upload_queues_and_ingests(self, client, analyzer):
        resp = _upload(client)

        assert resp.status_code == 202
        data = resp.json()
        assert data["fileHash"] == file_digest(IMAGE)
        assert data["resultUrl"] == "https://analysis.test/operations/1"
        assert data["resultUrl"] in data["message"]
        assert analyzer.polled == [data["resultUrl"]]

        rows = client.get("/api/all").json()
        assert len(rows) == 3
        assert {row["merchantName"] for row in rows} == {"Netto"}
        assert {row["paidAt"] for row in rows} == {"2023-10-06T15:24:00+00:00"}

    def test_duplicate_upload(self, client, analyzer):
        assert _upload(client).status_code == 202
        resp = _upload(client)
        assert resp.status_code == 409
        assert len(analyzer.submitted) == 1

    def test_empty_file(self, client, analyzer):
        resp = _upload(client, b"")
        assert resp.status_code == 400
        assert analyzer.submitted == []

    def test_rejected_by_analysis_service_can_be_retried(self, client, analyzer):
        analyzer.reject_with = 400
        assert _upload(client).status_code == 502

        analyzer.reject_with = None
        assert _upload(client).status_code == 202

    def test_analyzer_not_configured(self, client, monkeypatch):
        monkeypatch.delenv("AZURE_FORM_RECOGNIZER_KEY", raising=False)
        monkeypatch.delenv("DOCUMENT_ANALYZER", raising=False)
        app.dependency_overrides.pop(get_analyzer)

        resp = _upload(client)

        assert resp.status_code == 503


class TestDownload:
    def test_csv_download(self, client):
        _upload(client)

        resp = client.get("/api/download")

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.headers["content-disposition"] == 'attachment; filename="data.csv"'
        reader = csv.DictReader(io.StringIO(resp.text))
        assert reader.fieldnames == ["productName", "unitPrice", "count", "merchantName", "paidAt"]
        assert len(list(reader)) == 3

    def test_empty_download_has_header_only(self, client):
        resp = client.get("/api/download")
        assert resp.text.strip() == "productName,unitPrice,count,merchantName,paidAt"


class TestMaintenance:
    def test_delete_all(self, client):
        _upload(client)

        resp = client.delete("/api/dev/db/all")

        assert resp.status_code == 200
        assert resp.json() == {"message": "All data has been deleted from DB"}
        assert client.get("/api/all").json() == []

    def test_repopulate_replaces_rows_with_cached_results(self, client, cache, session_factory):
        _upload(client)
        cache.store(file_digest(b"second receipt"), "{not json")
        with session_factory() as db:
            persist_receipt(
                db,
                ExtractedReceipt(
                    merchant_name="Føtex",
                    paid_at=datetime(2024, 3, 5, 13, 30, tzinfo=timezone.utc),
                    items=[ExtractedLineItem(name="Gammel vare", count=1.0, unit_price=1.0)],
                ),
                "not-in-cache",
            )
        assert len(client.get("/api/all").json()) == 4

        resp = client.put("/api/dev/db/all")

        assert resp.status_code == 202
        rows = client.get("/api/all").json()
        assert len(rows) == 3
        assert "Gammel vare" not in {row["productName"] for row in rows}

    def test_list_cache(self, client, cache):
        _upload(client)
        cache.reserve(file_digest(b"in flight"))
        cache.store(file_digest(b"garbage"), "{not json")

        resp = client.get("/api/dev/cache/all")

        assert resp.status_code == 200
        entries = resp.json()
        assert [entry["fileHash"] for entry in entries] == [file_digest(IMAGE)]
        result = entries[0]["result"]
        assert result["status"] == "succeeded"
        assert result["analyzeResult"]["documents"][0]["fields"]["MerchantName"]["valueString"] == "Netto"

    def test_cached_result_matches_poll_response(self, client, cache):
        _upload(client)
        assert cache.load(file_digest(IMAGE)) == load_fixture("receipt_netto.json")
