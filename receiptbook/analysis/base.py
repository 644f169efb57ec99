from datetime import datetime
from typing import Protocol

from pydantic import BaseModel


class ExtractedLineItem(BaseModel):
    name: str
    count: float  # 1.0 when the receipt shows no quantity
    unit_price: float  # display units (e.g. 12.50 for 12,50 kr)


class ExtractedReceipt(BaseModel):
    merchant_name: str
    paid_at: datetime  # timezone-aware
    items: list[ExtractedLineItem]


class DocumentAnalyzer(Protocol):
    async def submit(self, file_bytes: bytes) -> str:
        """Start an analysis job and return the URL its result will be polled from."""
        ...

    async def fetch_result(self, result_url: str) -> str:
        """Fetch the raw result body of a previously submitted job."""
        ...
