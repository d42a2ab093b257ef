# backend/factory_pulse/schemas/supplier.py
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .base import BaseSchema, TimestampMixin

SUPPLIER_SPECIALTIES = [
    "machining", "fabrication", "casting", "finishing", "injection_molding",
    "assembly", "3d_printing", "prototyping", "coating", "painting",
    "welding", "sheet_metal", "electronics", "testing", "packaging",
]


class SupplierBase(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    specialties: List[str] = []
    tags: List[str] = []
    notes: Optional[str] = None


class SupplierCreate(SupplierBase):
    quality_rating: float = Field(4.0, ge=0, le=5)
    delivery_rating: float = Field(4.0, ge=0, le=5)
    cost_rating: float = Field(4.0, ge=0, le=5)


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    specialties: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None
    quality_rating: Optional[float] = Field(None, ge=0, le=5)
    delivery_rating: Optional[float] = Field(None, ge=0, le=5)
    cost_rating: Optional[float] = Field(None, ge=0, le=5)
    is_active: Optional[bool] = None


class Supplier(SupplierBase, TimestampMixin):
    id: int
    is_active: bool
    rating: float
    quality_rating: float
    delivery_rating: float
    cost_rating: float
    qualification_status: str
    qualification_score: Optional[float] = None
    qualification_valid_until: Optional[date] = None
    performance_score: Optional[int] = None
    performance_grade: Optional[str] = None


class SupplierSearch(BaseModel):
    name: Optional[str] = None
    specialties: List[str] = []
    country: Optional[str] = None
    is_active: Optional[bool] = None
    min_rating: Optional[float] = Field(None, ge=0, le=5)


class QualificationRequest(BaseModel):
    criteria: Dict[str, float]
    overall_score: float = Field(..., ge=0, le=100)
    recommendations: List[str] = []
    valid_until: date


class Qualification(BaseSchema):
    id: int
    supplier_id: int
    criteria_scores: Dict[str, float]
    overall_score: float
    recommendations: List[str]
    valid_until: date
    approved_by: Optional[int] = None
    approved_at: datetime


class PerformanceMetrics(BaseModel):
    total_orders: int = Field(0, ge=0)
    on_time_deliveries: int = Field(0, ge=0)
    quality_incidents: int = Field(0, ge=0)
    average_lead_time: float = Field(0, ge=0)
    average_cost_variance: float = 0
    responsiveness_rating: float = Field(0, ge=0, le=5)


class PerformanceResult(BaseModel):
    supplier_id: int
    metrics: PerformanceMetrics
    score: int
    grade: str


class SupplierAnalytics(BaseModel):
    supplier_id: int
    supplier_name: str
    total_quotes: int
    quotes_received: int
    quotes_accepted: int
    quotes_expired: int
    response_rate_percent: float
    win_rate_percent: float
    avg_response_time_hours: Optional[float] = None
    last_activity_date: Optional[datetime] = None
