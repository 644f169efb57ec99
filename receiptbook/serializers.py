import csv
import io
from datetime import datetime, timezone

from receiptbook.analysis.jobs import AnalysisJob

PRICE_ROW_COLUMNS = ["productName", "unitPrice", "count", "merchantName", "paidAt"]


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; they are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize_price_row(row) -> dict:
    return {
        "productName": row.name,
        "unitPrice": row.unit_price,
        "count": row.count,
        "merchantName": row.merchant_name,
        "paidAt": _as_utc(row.paid_at).isoformat(),
    }


def serialize_price_rows_csv(rows) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=PRICE_ROW_COLUMNS)
    writer.writeheader()
    for row in rows:
        writer.writerow(serialize_price_row(row))
    return buffer.getvalue()


def serialize_job(job: AnalysisJob) -> dict:
    return {
        "message": f"Successfully queued image analysis. Result will be available at: {job.result_url}",
        "resultUrl": job.result_url,
        "fileHash": job.file_hash,
        "status": job.status.value,
        "submittedAt": job.submitted_at.isoformat(),
    }
