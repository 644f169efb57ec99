"""Content-addressed store of raw analysis responses.

Entries are keyed by the SHA-256 of the uploaded file. An entry is written
empty when an upload is accepted and overwritten with the poll response
once the analysis completes, so it doubles as the duplicate-upload gate and
as the replay source for rebuilding the relational tables.
"""
import hashlib
import logging
from contextlib import contextmanager

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from receiptbook.errors import CacheError
from receiptbook.models import AnalysisCacheEntry

logger = logging.getLogger("receiptbook")


def file_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class AnalysisCache:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self):
        db: Session = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            raise CacheError(f"Analysis cache unavailable: {e}") from e
        finally:
            db.close()

    def is_known(self, file_hash: str) -> bool:
        """True for any entry, including an in-flight placeholder."""
        with self._session() as db:
            return db.get(AnalysisCacheEntry, file_hash) is not None

    def is_complete(self, file_hash: str) -> bool:
        with self._session() as db:
            entry = db.get(AnalysisCacheEntry, file_hash)
            return entry is not None and entry.raw_text != ""

    def reserve(self, file_hash: str) -> bool:
        """Write an empty placeholder. Returns False if the hash already has an entry."""
        with self._session() as db:
            db.add(AnalysisCacheEntry(file_sha256=file_hash, raw_text=""))
            try:
                db.commit()
            except IntegrityError:
                # Another upload of the same bytes got here first
                db.rollback()
                return False
        logger.info("Reserved cache entry", extra={"extra_data": {"file_hash": file_hash}})
        return True

    def store(self, file_hash: str, raw_text: str) -> None:
        with self._session() as db:
            entry = db.get(AnalysisCacheEntry, file_hash)
            if entry:
                entry.raw_text = raw_text
            else:
                db.add(AnalysisCacheEntry(file_sha256=file_hash, raw_text=raw_text))
            db.commit()
        logger.info(
            "Cached raw analysis response",
            extra={"extra_data": {"file_hash": file_hash, "length": len(raw_text)}},
        )

    def load(self, file_hash: str) -> str:
        with self._session() as db:
            entry = db.get(AnalysisCacheEntry, file_hash)
            if entry is None:
                raise CacheError(f"No cache entry for file {file_hash}")
            return entry.raw_text

    def list_hashes(self) -> list[str]:
        with self._session() as db:
            return list(
                db.scalars(select(AnalysisCacheEntry.file_sha256).order_by(AnalysisCacheEntry.created_at))
            )

    def release(self, file_hash: str) -> None:
        """Drop a placeholder whose submission never reached the analysis service."""
        with self._session() as db:
            db.execute(
                delete(AnalysisCacheEntry).where(
                    AnalysisCacheEntry.file_sha256 == file_hash,
                    AnalysisCacheEntry.raw_text == "",
                )
            )
            db.commit()
