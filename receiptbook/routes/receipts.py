import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, UploadFile, File
from fastapi.responses import Response
from sqlalchemy.orm import Session

from receiptbook.analysis.jobs import AnalysisOrchestrator
from receiptbook.database import get_db
from receiptbook.deps import get_orchestrator
from receiptbook.errors import DuplicateUploadError, ReceiptbookError, RemoteServiceError
from receiptbook.ratelimit import UPLOAD_RATE_LIMIT, limiter
from receiptbook.reconcile import list_price_rows
from receiptbook.serializers import serialize_job, serialize_price_row, serialize_price_rows_csv

logger = logging.getLogger("receiptbook")
router = APIRouter()

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


@router.post("/upload", status_code=202)
@limiter.limit(UPLOAD_RATE_LIMIT)
async def upload(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    file_bytes = await file.read()
    if len(file_bytes) == 0:
        raise HTTPException(status_code=400, detail="No file was submitted for analysis")
    if len(file_bytes) > MAX_FILE_SIZE:
        raise HTTPException(status_code=400, detail="File too large. Maximum size is 10 MB.")

    try:
        job = await orchestrator.submit(file_bytes)
    except DuplicateUploadError as e:
        logger.info("Duplicate upload rejected", extra={"extra_data": {"file_hash": e.file_hash}})
        raise HTTPException(
            status_code=409,
            detail="Submitted file's hash is already in the cache. Not running analysis.",
        )
    except RemoteServiceError as e:
        logger.error(f"Receipt submission failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to submit receipt for analysis. Please try again.")
    except ReceiptbookError as e:
        logger.error(f"Receipt upload failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Something went wrong")

    background_tasks.add_task(orchestrator.await_result, job)
    return serialize_job(job)


@router.get("/all")
def show_all(db: Session = Depends(get_db)):
    return [serialize_price_row(row) for row in list_price_rows(db)]


@router.get("/download")
def download(db: Session = Depends(get_db)):
    content = serialize_price_rows_csv(list_price_rows(db))
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="data.csv"'},
    )
