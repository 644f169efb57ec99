"""Receipt-specific projection of a document's generic ``fields`` mapping.

The prebuilt receipt model reports a different set of fields per receipt
type and per model version, so every accessor here falls back to a zero
value when its source field is missing or has an unexpected kind.
"""
from collections.abc import Mapping

from pydantic import BaseModel

from receiptbook.analysis.documents import ArrayField, DocumentField, FieldBase, ObjectField


class TextField(BaseModel):
    value: str = ""  # normalized value (valueString / valueDate / valueTime)
    content: str = ""  # text span as printed on the receipt
    confidence: float = 0.0


class AmountField(BaseModel):
    amount: float | None = None
    content: str = ""
    confidence: float = 0.0


class ReceiptItem(BaseModel):
    description: str = ""
    quantity: float | None = None
    unit_price: float | None = None
    total_price: float | None = None
    product_code: str | None = None
    quantity_unit: str | None = None
    confidence: float = 0.0


class TaxDetail(BaseModel):
    amount: AmountField = AmountField()
    rate: float | None = None


class ReceiptFields(BaseModel):
    items: list[ReceiptItem] = []
    merchant_name: TextField = TextField()
    tax_details: list[TaxDetail] = []
    total: AmountField = AmountField()
    total_tax: AmountField = AmountField()
    transaction_date: TextField = TextField()
    transaction_time: TextField = TextField()

    @classmethod
    def from_document_fields(cls, fields: Mapping[str, DocumentField]) -> "ReceiptFields":
        return cls(
            items=[_item(f) for f in _array(fields.get("Items"))],
            merchant_name=_text(fields.get("MerchantName")),
            tax_details=[_tax_detail(f) for f in _array(fields.get("TaxDetails"))],
            total=_amount(fields.get("Total")),
            total_tax=_amount(fields.get("TotalTax")),
            transaction_date=_text(fields.get("TransactionDate")),
            transaction_time=_text(fields.get("TransactionTime")),
        )


def _confidence(field: FieldBase | None) -> float:
    if field is None or field.confidence is None:
        return 0.0
    return field.confidence


def _text(field: FieldBase | None) -> TextField:
    if field is None:
        return TextField()
    return TextField(
        value=field.text_value() or "",
        content=field.content or "",
        confidence=_confidence(field),
    )


def _amount(field: FieldBase | None) -> AmountField:
    if field is None:
        return AmountField()
    return AmountField(
        amount=field.number_value(),
        content=field.content or "",
        confidence=_confidence(field),
    )


def _number(field: FieldBase | None) -> float | None:
    return field.number_value() if field is not None else None


def _array(field: FieldBase | None) -> list[DocumentField]:
    if isinstance(field, ArrayField) and field.value_array:
        return field.value_array
    return []


def _item(field: DocumentField) -> ReceiptItem:
    if not isinstance(field, ObjectField):
        # Some receipts report bare line strings instead of item objects
        return ReceiptItem(description=field.text_value() or field.content or "", confidence=_confidence(field))

    description = field.get("Description")
    product_code = field.get("ProductCode")
    quantity_unit = field.get("QuantityUnit")
    return ReceiptItem(
        description=(description.text_value() or "") if description is not None else "",
        quantity=_number(field.get("Quantity")),
        unit_price=_number(field.get("Price")),
        total_price=_number(field.get("TotalPrice")),
        product_code=product_code.text_value() if product_code is not None else None,
        quantity_unit=quantity_unit.text_value() if quantity_unit is not None else None,
        confidence=_confidence(field),
    )


def _tax_detail(field: DocumentField) -> TaxDetail:
    if not isinstance(field, ObjectField):
        return TaxDetail(amount=_amount(field))
    return TaxDetail(amount=_amount(field.get("Amount")), rate=_number(field.get("Rate")))
