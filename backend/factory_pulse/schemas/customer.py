# backend/factory_pulse/schemas/customer.py
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .base import BaseSchema, TimestampMixin


class CustomerBase(BaseSchema):
    company_name: str = Field(..., min_length=1)
    contact_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    company_name: Optional[str] = Field(None, min_length=1)
    contact_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None


class Customer(CustomerBase, TimestampMixin):
    id: int
    is_active: bool
    # Stored values are not re-validated as emails on the way out
    email: Optional[str] = None
