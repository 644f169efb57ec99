import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from receiptbook.analysis.base import ExtractedLineItem, ExtractedReceipt
from receiptbook.analysis.documents import AnalyzeResultOperation
from receiptbook.analysis.receipt_fields import ReceiptFields, ReceiptItem
from receiptbook.errors import AmbiguousLocalTimeError, InvalidTimestampError, MissingFieldError

logger = logging.getLogger("receiptbook")

REFERENCE_TIMEZONE = ZoneInfo("Europe/Copenhagen")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Postgres maximum number of parameters in a statement
BIND_LIMIT = 65535

# Merchants whose typed date value swaps day and month. For these the
# printed content is used instead when it is already in YYYY-MM-DD form.
RAW_DATE_MERCHANTS = ("netto",)


def extract_receipt(operation: AnalyzeResultOperation) -> ExtractedReceipt:
    """Turn a decoded analysis result into merchant, timestamp and line items."""
    fields = receipt_fields(operation)
    items = [line for line in (extract_line_item(item) for item in fields.items) if line is not None]
    if len(items) < len(fields.items):
        logger.info(
            "Dropped items without a detected price",
            extra={"extra_data": {"dropped": len(fields.items) - len(items), "kept": len(items)}},
        )

    return ExtractedReceipt(
        merchant_name=fields.merchant_name.value,
        paid_at=paid_at(fields),
        items=items[:BIND_LIMIT],
    )


def receipt_fields(operation: AnalyzeResultOperation) -> ReceiptFields:
    result = operation.analyze_result
    if result is None:
        raise MissingFieldError("analyzeResult")
    if result.documents is None:
        raise MissingFieldError("documents")
    if not result.documents:
        raise MissingFieldError("documents[0]")
    return ReceiptFields.from_document_fields(result.documents[0].fields)


def extract_line_item(item: ReceiptItem) -> ExtractedLineItem | None:
    """Apply the price/quantity fallbacks; None means the item has no usable price."""
    unit_price = item.unit_price if item.unit_price is not None else item.total_price
    if unit_price is None:
        return None
    count = item.quantity if item.quantity is not None else 1.0
    return ExtractedLineItem(name=item.description, count=count, unit_price=unit_price)


def transaction_date_string(fields: ReceiptFields) -> str:
    merchant = fields.merchant_name.value.lower()
    date = fields.transaction_date
    if "-" in date.content and any(token in merchant for token in RAW_DATE_MERCHANTS):
        return date.content
    return date.value


def paid_at(fields: ReceiptFields) -> datetime:
    datetime_str = f"{transaction_date_string(fields)} {fields.transaction_time.value}"
    try:
        naive = datetime.strptime(datetime_str, TIMESTAMP_FORMAT)
    except ValueError:
        raise InvalidTimestampError(datetime_str)
    return localize(naive, REFERENCE_TIMEZONE)


def localize(naive: datetime, tz: ZoneInfo) -> datetime:
    """Attach ``tz`` to a wall-clock time, refusing DST gaps and overlaps.

    Inside a gap or an overlap the two folds resolve to different UTC
    offsets, so there is no single instant to pick.
    """
    earlier = naive.replace(tzinfo=tz, fold=0)
    later = naive.replace(tzinfo=tz, fold=1)
    if earlier.utcoffset() != later.utcoffset():
        raise AmbiguousLocalTimeError(naive, tz.key)
    return earlier
