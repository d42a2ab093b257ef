# backend/factory_pulse/models/supplier.py
from sqlalchemy import Column, Integer, String, Text, DateTime, Date, Float, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.dates import utcnow


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    company = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    country = Column(String(100), nullable=True, index=True)
    specialties = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)
    quality_rating = Column(Float, nullable=False, default=4.0)
    delivery_rating = Column(Float, nullable=False, default=4.0)
    cost_rating = Column(Float, nullable=False, default=4.0)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)

    qualification_status = Column(String(50), nullable=False, default="not_qualified")
    qualification_score = Column(Float, nullable=True)
    qualification_valid_until = Column(Date, nullable=True)

    performance_score = Column(Integer, nullable=True)
    performance_grade = Column(String(1), nullable=True)
    performance_metrics = Column(JSON, nullable=True)

    last_contact_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    qualifications = relationship(
        "SupplierQualification",
        back_populates="supplier",
        cascade="all, delete-orphan",
        order_by="SupplierQualification.approved_at.desc()"
    )
    quotes = relationship("SupplierQuote", back_populates="supplier", cascade="all, delete-orphan")

    @property
    def rating(self) -> float:
        ratings = [
            self.quality_rating if self.quality_rating is not None else 4.0,
            self.delivery_rating if self.delivery_rating is not None else 4.0,
            self.cost_rating if self.cost_rating is not None else 4.0,
        ]
        return round(sum(ratings) / len(ratings), 2)


class SupplierQualification(Base):
    __tablename__ = "supplier_qualifications"

    id = Column(Integer, primary_key=True, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True)
    criteria_scores = Column(JSON, nullable=False, default=dict)
    overall_score = Column(Float, nullable=False)
    recommendations = Column(JSON, nullable=False, default=list)
    valid_until = Column(Date, nullable=False)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, default=utcnow)

    supplier = relationship("Supplier", back_populates="qualifications")
