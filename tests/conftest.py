"""
Shared pytest fixtures: file-backed SQLite, fake document analyzer and FastAPI TestClient.
"""
import json
import os
import pathlib

os.environ["CLIENT_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ANALYSIS_POLL_DELAY_SECONDS"] = "0"
os.environ["REPOPULATE_STAGGER_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from receiptbook.cache import AnalysisCache
from receiptbook.database import Base, get_db, get_session_factory
from receiptbook.deps import get_analyzer
from receiptbook.errors import RemoteRejectedError
from receiptbook.main import app
from receiptbook.ratelimit import limiter

FIXTURES = pathlib.Path(__file__).resolve().parent / "fixtures"
AUTH_HEADER = {"Authorization": "Bearer test-secret"}


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


def operation_body(fields: dict, status: str = "succeeded") -> str:
    """A minimal poll response wrapping one document with the given fields."""
    return json.dumps({
        "status": status,
        "createdDateTime": "2024-03-05T13:30:10Z",
        "lastUpdatedDateTime": "2024-03-05T13:30:14Z",
        "analyzeResult": {
            "apiVersion": "2023-07-31",
            "modelId": "prebuilt-receipt",
            "content": "",
            "pages": [],
            "documents": [{"docType": "receipt.retailMeal", "fields": fields}],
        },
    })


def item(description: str | None = None, quantity=None, price=None, total_price=None) -> dict:
    value_object = {}
    if description is not None:
        value_object["Description"] = {"type": "string", "valueString": description, "content": description}
    if quantity is not None:
        value_object["Quantity"] = {"type": "number", "valueNumber": quantity}
    if price is not None:
        value_object["Price"] = {"type": "number", "valueNumber": price}
    if total_price is not None:
        value_object["TotalPrice"] = {"type": "number", "valueNumber": total_price}
    return {"type": "object", "valueObject": value_object}


def fields_for(items: list[dict], merchant="Føtex", date="2024-03-05", time="14:30:00") -> dict:
    return {
        "MerchantName": {"type": "string", "valueString": merchant, "content": merchant},
        "TransactionDate": {"type": "date", "valueDate": date, "content": date},
        "TransactionTime": {"type": "time", "valueTime": time, "content": time[:5]},
        "Items": {"type": "array", "valueArray": items},
    }


class FakeAnalyzer:
    """Stands in for the remote analysis service."""

    def __init__(self, result_text: str = ""):
        self.result_text = result_text
        self.reject_with: int | None = None
        self.submitted: list[bytes] = []
        self.polled: list[str] = []

    async def submit(self, file_bytes: bytes) -> str:
        if self.reject_with is not None:
            raise RemoteRejectedError(self.reject_with)
        self.submitted.append(file_bytes)
        return f"https://analysis.test/operations/{len(self.submitted)}"

    async def fetch_result(self, result_url: str) -> str:
        self.polled.append(result_url)
        return self.result_text


@pytest.fixture()
def engine(tmp_path):
    # A file database so worker threads get their own connections
    engine = create_engine(
        f"sqlite:///{tmp_path / 'receiptbook.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def cache(session_factory):
    return AnalysisCache(session_factory)


@pytest.fixture()
def analyzer():
    return FakeAnalyzer(result_text=load_fixture("receipt_netto.json"))


@pytest.fixture()
def client(session_factory, analyzer):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_analyzer] = lambda: analyzer
    limiter.enabled = False
    with TestClient(app) as c:
        c.headers.update(AUTH_HEADER)
        yield c
    app.dependency_overrides.clear()
    limiter.enabled = True
