from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, UniqueConstraint
from datetime import datetime
from .database import Base


class PriceBookRecord(Base):
    """Stored pricebook snapshots — one row per (name, version), never updated."""
    __tablename__ = "price_books"
    __table_args__ = (UniqueConstraint("name", "version", name="uq_price_books_name_version"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    version = Column(String, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    notes = Column(Text, nullable=True)
    payload = Column(JSON, nullable=False)  # Full validated snapshot (JSON mode dump)
    created_at = Column(DateTime, default=datetime.utcnow)


class QuoteFactsRecord(Base):
    """Per-quote derived facts, including the stage_pending_bump flag."""
    __tablename__ = "quote_facts"

    key = Column(String, primary_key=True)  # "{namespace}:{env}:{quote_id}"
    quote_id = Column(String, nullable=False, index=True)
    facts = Column(JSON, default=dict)
    version = Column(Integer, nullable=False, default=1)  # Optimistic concurrency
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
