import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from receiptbook.analysis.base import DocumentAnalyzer, ExtractedReceipt
from receiptbook.analysis.documents import parse_analyze_result
from receiptbook.analysis.extraction import extract_receipt
from receiptbook.cache import AnalysisCache, file_digest
from receiptbook.errors import DuplicateUploadError, RemoteServiceError
from receiptbook.reconcile import persist_receipt

logger = logging.getLogger("receiptbook")

# A single fixed wait: a job that is still running at this point is not re-polled
POLL_DELAY_SECONDS = float(os.getenv("ANALYSIS_POLL_DELAY_SECONDS", "30"))


class JobStatus(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class AnalysisJob:
    file_hash: str
    result_url: str
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: JobStatus = JobStatus.SUBMITTED
    error: str | None = None


class AnalysisOrchestrator:
    """Submits uploads for analysis and ingests the result once, after a fixed delay.

    Jobs live only as long as the background task polling for them; the
    cache entry and the database rows are the only lasting trace.
    """

    def __init__(
        self,
        analyzer: DocumentAnalyzer,
        cache: AnalysisCache,
        session_factory: sessionmaker,
        poll_delay: float = POLL_DELAY_SECONDS,
    ):
        self.analyzer = analyzer
        self.cache = cache
        self.session_factory = session_factory
        self.poll_delay = poll_delay

    async def submit(self, file_bytes: bytes) -> AnalysisJob:
        file_hash = file_digest(file_bytes)

        # reserve() is the atomic gate; is_known() just avoids a failed insert
        known = await run_in_threadpool(self.cache.is_known, file_hash)
        if known or not await run_in_threadpool(self.cache.reserve, file_hash):
            raise DuplicateUploadError(file_hash)

        logger.info("New file detected, starting analysis", extra={"extra_data": {"file_hash": file_hash}})
        try:
            result_url = await self.analyzer.submit(file_bytes)
        except RemoteServiceError:
            # Nothing was queued remotely, so let the same file be uploaded again
            await run_in_threadpool(self.cache.release, file_hash)
            raise

        job = AnalysisJob(file_hash=file_hash, result_url=result_url)
        logger.info(
            "Queued image analysis",
            extra={"extra_data": {"file_hash": file_hash, "result_url": result_url}},
        )
        return job

    async def await_result(self, job: AnalysisJob) -> AnalysisJob:
        """Wait, poll once, then cache and ingest. Failures are logged, never raised."""
        logger.info("Waiting before asking for results", extra={"extra_data": {"file_hash": job.file_hash}})
        await asyncio.sleep(self.poll_delay)

        job.status = JobStatus.POLLING
        try:
            raw_text = await self.analyzer.fetch_result(job.result_url)
            await run_in_threadpool(self.cache.store, job.file_hash, raw_text)
            receipt_id = await self.ingest_raw(job.file_hash, raw_text)
        except Exception as e:
            job.status = JobStatus.FAILED
            job.error = str(e)
            logger.error(
                f"Error when processing analysis results: {e}",
                exc_info=True,
                extra={"extra_data": {"file_hash": job.file_hash, "result_url": job.result_url}},
            )
            return job

        job.status = JobStatus.COMPLETED
        logger.info(
            "Successfully processed analysis results",
            extra={"extra_data": {"file_hash": job.file_hash, "receipt_id": receipt_id}},
        )
        return job

    async def ingest_raw(self, file_hash: str, raw_text: str) -> int:
        return await ingest_raw(self.session_factory, file_hash, raw_text)


async def ingest_raw(session_factory: sessionmaker, file_hash: str, raw_text: str) -> int:
    """Parse, extract and persist one raw analysis response."""
    operation = parse_analyze_result(raw_text)
    if operation.is_running:
        logger.warning(
            f"Analysis was still {operation.status} when polled; it will not be polled again",
            extra={"extra_data": {"file_hash": file_hash}},
        )
    extracted = extract_receipt(operation)
    return await run_in_threadpool(_persist, session_factory, extracted, file_hash)


def _persist(session_factory: sessionmaker, extracted: ExtractedReceipt, file_hash: str) -> int:
    with session_factory() as db:
        return persist_receipt(db, extracted, file_hash)
