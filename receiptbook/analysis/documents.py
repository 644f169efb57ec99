"""Typed model of the document analysis service's result body.

Every value the service extracts is a ``DocumentField`` tagged with a
``type``.  Decoding reads the tag first and validates only the matching
variant, so a field only ever carries the value slot for its own kind.
Unknown keys are ignored everywhere and unknown tags decode into
``UnknownField`` so a newer service version cannot break ingestion.
"""
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Tag, ValidationError
from pydantic.alias_generators import to_camel

from receiptbook.errors import DecodeError


class DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DocumentSpan(DocumentModel):
    offset: int
    length: int


class BoundingRegion(DocumentModel):
    page_number: int
    polygon: list[float] = []


# --- Fields ---

class FieldBase(DocumentModel):
    content: str | None = None
    confidence: float | None = None
    bounding_regions: list[BoundingRegion] | None = None
    spans: list[DocumentSpan] | None = None

    def number_value(self) -> float | None:
        """Numeric value of the field, or None if this kind carries no number."""
        return None

    def text_value(self) -> str | None:
        return None


class StringField(FieldBase):
    type: Literal["string"]
    value_string: str | None = None

    def text_value(self) -> str | None:
        return self.value_string


class DateField(FieldBase):
    type: Literal["date"]
    value_date: str | None = None  # normalized YYYY-MM-DD

    def text_value(self) -> str | None:
        return self.value_date


class TimeField(FieldBase):
    type: Literal["time"]
    value_time: str | None = None  # normalized HH:MM:SS

    def text_value(self) -> str | None:
        return self.value_time


class PhoneNumberField(FieldBase):
    type: Literal["phoneNumber"]
    value_phone_number: str | None = None

    def text_value(self) -> str | None:
        return self.value_phone_number


class NumberField(FieldBase):
    type: Literal["number"]
    value_number: float | None = None

    def number_value(self) -> float | None:
        return self.value_number


class IntegerField(FieldBase):
    type: Literal["integer"]
    value_integer: int | None = None

    def number_value(self) -> float | None:
        return float(self.value_integer) if self.value_integer is not None else None


class SelectionMarkField(FieldBase):
    type: Literal["selectionMark"]
    value_selection_mark: str | None = None  # "selected" | "unselected"


class SignatureField(FieldBase):
    type: Literal["signature"]
    value_signature: str | None = None  # "signed" | "unsigned"


class CountryRegionField(FieldBase):
    type: Literal["countryRegion"]
    value_country_region: str | None = None

    def text_value(self) -> str | None:
        return self.value_country_region


class CurrencyValue(DocumentModel):
    amount: float
    currency_symbol: str | None = None
    currency_code: str | None = None


class CurrencyField(FieldBase):
    type: Literal["currency"]
    value_currency: CurrencyValue | None = None

    def number_value(self) -> float | None:
        return self.value_currency.amount if self.value_currency is not None else None


class AddressValue(DocumentModel):
    house_number: str | None = None
    po_box: str | None = None
    road: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country_region: str | None = None
    street_address: str | None = None
    unit: str | None = None
    city_district: str | None = None
    state_district: str | None = None
    suburb: str | None = None
    house: str | None = None
    level: str | None = None


class AddressField(FieldBase):
    type: Literal["address"]
    value_address: AddressValue | None = None


class BooleanField(FieldBase):
    type: Literal["boolean"]
    value_boolean: bool | None = None


class ArrayField(FieldBase):
    type: Literal["array"]
    value_array: list["DocumentField"] | None = None


class ObjectField(FieldBase):
    type: Literal["object"]
    value_object: dict[str, "DocumentField"] | None = None

    def get(self, name: str) -> "DocumentField | None":
        if self.value_object is None:
            return None
        return self.value_object.get(name)


class UnknownField(FieldBase):
    """A field whose ``type`` tag this version does not know about."""

    type: str | None = None


FIELD_KINDS = {
    "string", "date", "time", "phoneNumber", "number", "integer", "selectionMark",
    "signature", "countryRegion", "array", "object", "currency", "address", "boolean",
}


def _field_kind(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return kind if kind in FIELD_KINDS else "unknown"


DocumentField = Annotated[
    Union[
        Annotated[StringField, Tag("string")],
        Annotated[DateField, Tag("date")],
        Annotated[TimeField, Tag("time")],
        Annotated[PhoneNumberField, Tag("phoneNumber")],
        Annotated[NumberField, Tag("number")],
        Annotated[IntegerField, Tag("integer")],
        Annotated[SelectionMarkField, Tag("selectionMark")],
        Annotated[SignatureField, Tag("signature")],
        Annotated[CountryRegionField, Tag("countryRegion")],
        Annotated[ArrayField, Tag("array")],
        Annotated[ObjectField, Tag("object")],
        Annotated[CurrencyField, Tag("currency")],
        Annotated[AddressField, Tag("address")],
        Annotated[BooleanField, Tag("boolean")],
        Annotated[UnknownField, Tag("unknown")],
    ],
    Discriminator(_field_kind),
]

ArrayField.model_rebuild()
ObjectField.model_rebuild()


# --- Layout ---

class DocumentWord(DocumentModel):
    content: str
    polygon: list[float] | None = None
    span: DocumentSpan | None = None
    confidence: float | None = None


class DocumentLine(DocumentModel):
    content: str
    polygon: list[float] | None = None
    spans: list[DocumentSpan] = []


class DocumentSelectionMark(DocumentModel):
    state: str
    polygon: list[float] | None = None
    span: DocumentSpan | None = None
    confidence: float | None = None


class DocumentBarcode(DocumentModel):
    kind: str
    value: str
    polygon: list[float] | None = None
    span: DocumentSpan | None = None
    confidence: float | None = None


class DocumentPage(DocumentModel):
    page_number: int
    angle: float | None = None
    width: float | None = None
    height: float | None = None
    unit: str | None = None  # "pixel" | "inch"
    spans: list[DocumentSpan] = []
    words: list[DocumentWord] | None = None
    lines: list[DocumentLine] | None = None
    selection_marks: list[DocumentSelectionMark] | None = None
    barcodes: list[DocumentBarcode] | None = None


class DocumentParagraph(DocumentModel):
    role: str | None = None
    content: str
    bounding_regions: list[BoundingRegion] | None = None
    spans: list[DocumentSpan] = []


class DocumentTableCell(DocumentModel):
    kind: str | None = None
    row_index: int
    column_index: int
    row_span: int | None = None
    column_span: int | None = None
    content: str
    bounding_regions: list[BoundingRegion] | None = None
    spans: list[DocumentSpan] = []


class DocumentTable(DocumentModel):
    row_count: int
    column_count: int
    cells: list[DocumentTableCell] = []
    bounding_regions: list[BoundingRegion] | None = None
    spans: list[DocumentSpan] = []


class DocumentKeyValueElement(DocumentModel):
    content: str
    bounding_regions: list[BoundingRegion] | None = None
    spans: list[DocumentSpan] = []


class DocumentKeyValuePair(DocumentModel):
    key: DocumentKeyValueElement
    value: DocumentKeyValueElement | None = None
    confidence: float | None = None


class DocumentStyle(DocumentModel):
    is_handwritten: bool | None = None
    similar_font_family: str | None = None
    font_style: str | None = None
    font_weight: str | None = None
    color: str | None = None
    background_color: str | None = None
    spans: list[DocumentSpan] = []
    confidence: float | None = None


class DocumentLanguage(DocumentModel):
    locale: str
    spans: list[DocumentSpan] = []
    confidence: float | None = None


# --- Result envelope ---

class AnalyzedDocument(DocumentModel):
    doc_type: str | None = None
    bounding_regions: list[BoundingRegion] = []
    spans: list[DocumentSpan] = []
    fields: dict[str, DocumentField] = {}
    confidence: float | None = None


class AnalyzeResult(DocumentModel):
    api_version: str | None = None
    model_id: str | None = None
    string_index_type: str | None = None
    content: str = ""
    pages: list[DocumentPage] = []
    paragraphs: list[DocumentParagraph] | None = None
    tables: list[DocumentTable] | None = None
    key_value_pairs: list[DocumentKeyValuePair] | None = None
    styles: list[DocumentStyle] | None = None
    languages: list[DocumentLanguage] | None = None
    documents: list[AnalyzedDocument] | None = None


class AnalysisError(DocumentModel):
    code: str | None = None
    message: str | None = None
    target: str | None = None
    details: list[dict[str, Any]] | None = None


class AnalyzeResultOperation(DocumentModel):
    status: str  # notStarted | running | succeeded | failed
    created_date_time: datetime | None = None
    last_updated_date_time: datetime | None = None
    error: AnalysisError | None = None
    analyze_result: AnalyzeResult | None = None

    @property
    def is_running(self) -> bool:
        return self.status in ("notStarted", "running")


def parse_analyze_result(raw_text: str) -> AnalyzeResultOperation:
    """Decode a raw poll response body, raising DecodeError on anything malformed."""
    if not raw_text or not raw_text.strip():
        raise DecodeError("Analysis response is empty")
    try:
        return AnalyzeResultOperation.model_validate_json(raw_text)
    except ValidationError as e:
        raise DecodeError(f"Malformed analysis response ({e.error_count()} errors): {e}") from e
