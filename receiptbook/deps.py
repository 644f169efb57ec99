import logging

from fastapi import Depends, HTTPException
from sqlalchemy.orm import sessionmaker

from receiptbook.analysis.base import DocumentAnalyzer
from receiptbook.analysis.factory import get_document_analyzer
from receiptbook.analysis.jobs import AnalysisOrchestrator
from receiptbook.cache import AnalysisCache
from receiptbook.database import get_session_factory

logger = logging.getLogger("receiptbook")


def get_analyzer() -> DocumentAnalyzer:
    try:
        return get_document_analyzer()
    except ValueError as e:
        logger.error(f"Document analyzer config error: {e}")
        raise HTTPException(status_code=503, detail="Receipt analysis is not available")


def get_analysis_cache(session_factory: sessionmaker = Depends(get_session_factory)) -> AnalysisCache:
    return AnalysisCache(session_factory)


def get_orchestrator(
    analyzer: DocumentAnalyzer = Depends(get_analyzer),
    cache: AnalysisCache = Depends(get_analysis_cache),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(analyzer, cache, session_factory)
