# backend/factory_pulse/schemas/rfq.py
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import BaseSchema, TimestampMixin
from ..models.rfq import QuoteStatus, RFQStatus


class RFQCreate(BaseModel):
    project_id: int
    title: str = Field(..., min_length=1, max_length=255)
    requirements: Optional[str] = None
    priority: str = "medium"
    due_date: Optional[datetime] = None


class RFQSend(BaseModel):
    supplier_ids: List[int] = Field(..., min_length=1)
    quote_deadline: Optional[datetime] = None
    message: Optional[str] = None


class RFQ(BaseSchema, TimestampMixin):
    id: int
    rfq_number: str
    project_id: int
    title: str
    requirements: Optional[str] = None
    status: RFQStatus
    priority: str
    due_date: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    created_by: Optional[int] = None


class QuoteSubmission(BaseModel):
    quote_amount: float = Field(..., ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    unit_price: Optional[float] = Field(None, ge=0)
    minimum_quantity: Optional[int] = Field(None, ge=1)
    lead_time_days: Optional[int] = Field(None, ge=0)
    valid_until: Optional[date] = None
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None
    notes: Optional[str] = None


class QuoteStatusUpdate(BaseModel):
    status: QuoteStatus
    reason: Optional[str] = None


class Quote(BaseSchema, TimestampMixin):
    id: int
    rfq_id: int
    project_id: int
    supplier_id: int
    quote_number: Optional[str] = None
    status: QuoteStatus
    quote_amount: Optional[float] = None
    currency: str
    unit_price: Optional[float] = None
    minimum_quantity: Optional[int] = None
    lead_time_days: Optional[int] = None
    valid_until: Optional[date] = None
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None
    notes: Optional[str] = None
    rfq_sent_at: datetime
    quote_deadline: Optional[datetime] = None
    quote_received_at: Optional[datetime] = None
    response_time_hours: Optional[float] = None


class QuoteStatusHistoryEntry(BaseSchema):
    id: int
    quote_id: int
    old_status: Optional[QuoteStatus] = None
    new_status: QuoteStatus
    changed_by: Optional[int] = None
    reason: Optional[str] = None
    changed_at: datetime


class RFQDetail(RFQ):
    quotes: List[Quote] = []


class QuoteReadiness(BaseModel):
    total_suppliers: int
    received_quotes: int
    pending_quotes: int
    overdue_quotes: int
    readiness_percentage: float
    status_text: str
    color_code: str
