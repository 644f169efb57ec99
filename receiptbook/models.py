from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Text, Integer, Float, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from receiptbook.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class Receipt(Base):
    __tablename__ = "receipts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    merchant_name = Column(Text, nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=False)
    file_sha256 = Column(String(64), nullable=False)

    __table_args__ = (UniqueConstraint("file_sha256", name="receipts_file_sha256_key"),)

    prices = relationship("Price", back_populates="receipt", cascade="all, delete-orphan")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, unique=True, nullable=False)


class Price(Base):
    __tablename__ = "prices"

    receipt_id = Column(Integer, ForeignKey("receipts.id", ondelete="CASCADE"), primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), primary_key=True)
    count = Column(Float, nullable=False)
    unit_price = Column(Float, nullable=False)

    receipt = relationship("Receipt", back_populates="prices")
    product = relationship("Product")


class AnalysisCacheEntry(Base):
    """Raw analysis response text keyed by the SHA-256 of the uploaded file.

    An empty ``raw_text`` is a placeholder: the file was accepted and its
    analysis is still in flight.
    """

    __tablename__ = "analysis_cache"

    file_sha256 = Column(String(64), primary_key=True)
    raw_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
