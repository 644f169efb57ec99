"""Merge extracted receipts into the receipts/products/prices tables.

Products are shared across receipts by name, receipts are unique per file
hash and there is at most one price row per (receipt, product) pair.
"""
import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timezone

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from receiptbook.analysis.base import ExtractedLineItem, ExtractedReceipt
from receiptbook.cache import AnalysisCache
from receiptbook.errors import DuplicateReceiptError, PersistenceError, ReceiptbookError
from receiptbook.models import Price, Product, Receipt

logger = logging.getLogger("receiptbook")

# SQLite's default SQLITE_MAX_VARIABLE_NUMBER, below Postgres' limit of 65535
MAX_STATEMENT_PARAMS = 32766

REPOPULATE_STAGGER_SECONDS = float(os.getenv("REPOPULATE_STAGGER_SECONDS", "1"))


def _insert(db: Session, model):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise PersistenceError(f"Unsupported database dialect: {dialect}")


def latest_by_name(items: list[ExtractedLineItem]) -> dict[str, ExtractedLineItem]:
    """Collapse items sharing a product name; the last one seen wins.

    This loses separate entries for e.g. repeated discount lines with the
    same text, since prices are keyed by (receipt, product).
    """
    latest: dict[str, ExtractedLineItem] = {}
    for item in items:
        latest[item.name] = item
    return latest


def _chunks(rows: list, params_per_row: int) -> list[list]:
    size = max(1, MAX_STATEMENT_PARAMS // params_per_row)
    return [rows[i:i + size] for i in range(0, len(rows), size)]


def persist_receipt(db: Session, extracted: ExtractedReceipt, file_hash: str) -> int:
    """Store one extracted receipt in a single transaction and return its id.

    Product and price rows are written in batches that stay under the bound
    parameter limit of every supported backend.
    """
    receipt = Receipt(
        merchant_name=extracted.merchant_name,
        paid_at=extracted.paid_at.astimezone(timezone.utc),
        file_sha256=file_hash,
    )
    db.add(receipt)
    try:
        db.flush()  # get receipt.id
    except IntegrityError as e:
        db.rollback()
        raise DuplicateReceiptError(file_hash) from e
    receipt_id = receipt.id

    latest = latest_by_name(extracted.items)
    names = sorted(latest)
    try:
        product_ids: dict[str, int] = {}
        for batch in _chunks(names, 1):
            db.execute(
                _insert(db, Product)
                .values([{"name": name} for name in batch])
                .on_conflict_do_nothing(index_elements=["name"])
            )
            product_ids.update(db.execute(select(Product.name, Product.id).where(Product.name.in_(batch))).all())

        for batch in _chunks(names, 4):
            stmt = _insert(db, Price).values([
                {
                    "receipt_id": receipt_id,
                    "product_id": product_ids[name],
                    "count": latest[name].count,
                    "unit_price": latest[name].unit_price,
                }
                for name in batch
            ])
            stmt = stmt.on_conflict_do_update(
                index_elements=["receipt_id", "product_id"],
                set_={"count": stmt.excluded.count, "unit_price": stmt.excluded.unit_price},
            )
            db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to store receipt for file {file_hash}: {e}") from e

    logger.info(
        "Saved receipt data in database",
        extra={"extra_data": {
            "receipt_id": receipt_id,
            "file_hash": file_hash,
            "items": len(extracted.items),
            "products": len(latest),
        }},
    )
    return receipt_id


def clear_all(db: Session) -> None:
    try:
        db.execute(delete(Price))
        db.execute(delete(Product))
        db.execute(delete(Receipt))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to clear receipt data: {e}") from e
    logger.info("All data has been deleted from DB")


def list_price_rows(db: Session):
    """Every price row joined with its receipt and product."""
    return db.execute(
        select(
            Product.name,
            Price.unit_price,
            Price.count,
            Receipt.merchant_name,
            Receipt.paid_at,
        )
        .select_from(Receipt)
        .join(Price, Price.receipt_id == Receipt.id)
        .join(Product, Product.id == Price.product_id)
        .order_by(Receipt.paid_at, Product.name)
    ).all()


@dataclass
class RepopulationReport:
    persisted: int = 0
    failed: int = 0


async def replay_cache(
    cache: AnalysisCache,
    ingest: Callable[[str, str], Awaitable[int]],
    stagger_seconds: float = REPOPULATE_STAGGER_SECONDS,
) -> RepopulationReport:
    """Re-run ingestion for every cached response.

    One task is spawned per cached hash, ``stagger_seconds`` apart, so a large
    backlog does not exhaust the connection pool. A failing entry is logged
    and counted; it never stops the others.
    """
    report = RepopulationReport()

    async def replay(file_hash: str) -> None:
        try:
            raw_text = await run_in_threadpool(cache.load, file_hash)
            await ingest(file_hash, raw_text)
        except ReceiptbookError as e:
            report.failed += 1
            logger.error(
                f"Cached results for file {file_hash} encountered an error during processing: {e}",
                extra={"extra_data": {"file_hash": file_hash, "error": type(e).__name__}},
            )
            return
        except Exception:
            report.failed += 1
            logger.error(
                f"Unexpected error replaying cached results for file {file_hash}",
                exc_info=True,
                extra={"extra_data": {"file_hash": file_hash}},
            )
            return
        report.persisted += 1
        logger.info(
            "Saved receipt data in DB from cached analysis results",
            extra={"extra_data": {"file_hash": file_hash}},
        )

    tasks = []
    for file_hash in await run_in_threadpool(cache.list_hashes):
        await asyncio.sleep(stagger_seconds)
        tasks.append(asyncio.create_task(replay(file_hash)))
    await asyncio.gather(*tasks)

    logger.info(
        "Finished repopulating DB from cache",
        extra={"extra_data": {"persisted": report.persisted, "failed": report.failed}},
    )
    return report


async def repopulate_from_cache(
    session_factory: sessionmaker,
    cache: AnalysisCache,
    ingest: Callable[[str, str], Awaitable[int]],
    stagger_seconds: float = REPOPULATE_STAGGER_SECONDS,
) -> RepopulationReport:
    """Clear the relational tables, then rebuild them from the cache.

    Runs as a background task, so a failed clear is logged and reported as
    an empty report instead of raised.
    """

    def _clear() -> None:
        with session_factory() as db:
            clear_all(db)

    try:
        await run_in_threadpool(_clear)
    except PersistenceError as e:
        logger.error(f"Clearing DB before repopulation failed: {e}", exc_info=True)
        return RepopulationReport()
    return await replay_cache(cache, ingest, stagger_seconds)
