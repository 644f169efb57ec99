"""Operator endpoints for rebuilding the relational data from the cache."""
import logging
from functools import partial

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session, sessionmaker

from receiptbook.analysis.documents import parse_analyze_result
from receiptbook.analysis.jobs import ingest_raw
from receiptbook.cache import AnalysisCache
from receiptbook.database import get_db, get_session_factory
from receiptbook.deps import get_analysis_cache
from receiptbook.errors import CacheError, DecodeError, PersistenceError
from receiptbook.reconcile import clear_all, repopulate_from_cache

logger = logging.getLogger("receiptbook")
router = APIRouter(prefix="/dev")


@router.delete("/db/all")
def clear_db(db: Session = Depends(get_db)):
    try:
        clear_all(db)
    except PersistenceError as e:
        logger.error(f"Clearing DB failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Something went wrong")
    return {"message": "All data has been deleted from DB"}


@router.put("/db/all", status_code=202)
def repopulate_db_from_cache(
    background_tasks: BackgroundTasks,
    cache: AnalysisCache = Depends(get_analysis_cache),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    background_tasks.add_task(repopulate_from_cache, session_factory, cache, partial(ingest_raw, session_factory))
    msg = (
        "Successfully enqueued repopulation of DB data from cached analysis results. "
        "Results should be available shortly"
    )
    logger.info(msg)
    return {"message": msg}


@router.get("/cache/all")
def show_all_parsing_results(cache: AnalysisCache = Depends(get_analysis_cache)):
    results = []
    try:
        for file_hash in cache.list_hashes():
            if not cache.is_complete(file_hash):
                continue  # analysis still in flight
            raw_text = cache.load(file_hash)
            try:
                operation = parse_analyze_result(raw_text)
            except DecodeError as e:
                logger.warning(
                    f"Skipping undecodable cache entry: {e}",
                    extra={"extra_data": {"file_hash": file_hash}},
                )
                continue
            results.append({
                "fileHash": file_hash,
                "result": operation.model_dump(mode="json", by_alias=True, exclude_none=True),
            })
    except CacheError as e:
        logger.error(f"Reading cache failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Something went wrong")
    return results
