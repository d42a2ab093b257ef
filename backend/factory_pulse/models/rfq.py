# backend/factory_pulse/models/rfq.py
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Date, Float, ForeignKey, Enum
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.dates import utcnow


class RFQStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class QuoteStatus(str, enum.Enum):
    SENT = "sent"
    RECEIVED = "received"
    REJECTED = "rejected"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class SupplierRFQ(Base):
    __tablename__ = "supplier_rfqs"

    id = Column(Integer, primary_key=True, index=True)
    rfq_number = Column(String(50), nullable=False, unique=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    requirements = Column(Text, nullable=True)
    status = Column(Enum(RFQStatus), nullable=False, default=RFQStatus.DRAFT)
    priority = Column(String(20), nullable=False, default="medium")
    due_date = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    project = relationship("Project", back_populates="rfqs")
    quotes = relationship("SupplierQuote", back_populates="rfq", cascade="all, delete-orphan")


class SupplierQuote(Base):
    __tablename__ = "supplier_quotes"

    id = Column(Integer, primary_key=True, index=True)
    rfq_id = Column(Integer, ForeignKey("supplier_rfqs.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True)
    quote_number = Column(String(50), nullable=True)
    status = Column(Enum(QuoteStatus), nullable=False, default=QuoteStatus.SENT)

    quote_amount = Column(Float, nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    unit_price = Column(Float, nullable=True)
    minimum_quantity = Column(Integer, nullable=True)
    lead_time_days = Column(Integer, nullable=True)
    valid_until = Column(Date, nullable=True)
    payment_terms = Column(String(255), nullable=True)
    delivery_terms = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    rfq_message = Column(Text, nullable=True)

    rfq_sent_at = Column(DateTime, nullable=False, default=utcnow)
    quote_deadline = Column(DateTime, nullable=True)
    quote_received_at = Column(DateTime, nullable=True)
    response_time_hours = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    rfq = relationship("SupplierRFQ", back_populates="quotes")
    supplier = relationship("Supplier", back_populates="quotes")
    status_history = relationship(
        "SupplierQuoteStatusHistory",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="SupplierQuoteStatusHistory.id"
    )


class SupplierQuoteStatusHistory(Base):
    __tablename__ = "supplier_quote_status_history"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("supplier_quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(Enum(QuoteStatus), nullable=True)
    new_status = Column(Enum(QuoteStatus), nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reason = Column(Text, nullable=True)
    changed_at = Column(DateTime, default=utcnow)

    quote = relationship("SupplierQuote", back_populates="status_history")
