# backend/factory_pulse/services/suppliers.py
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationFailedError
from ..models import QuoteStatus, Supplier, SupplierQualification, SupplierQuote
from ..schemas.supplier import (
    PerformanceMetrics,
    QualificationRequest,
    SupplierAnalytics,
    SupplierCreate,
    SupplierSearch,
    SupplierUpdate,
)
from ..utils.dates import utcnow
from ..utils.logging import service_logger
from ..utils.numbers import round_half_up

# Weights of the performance score; they add up to 100
ON_TIME_WEIGHT = 30
QUALITY_WEIGHT = 25
LEAD_TIME_WEIGHT = 20
COST_WEIGHT = 15
RESPONSIVENESS_WEIGHT = 10

TARGET_LEAD_TIME_DAYS = 30
MAX_QUALITY_INCIDENTS = 5


def calculate_performance_score(metrics: PerformanceMetrics) -> int:
    """Weighted 0-100 score; suppliers without orders score 0"""
    if metrics.total_orders == 0:
        return 0

    on_time = min(1.0, metrics.on_time_deliveries / metrics.total_orders) * ON_TIME_WEIGHT
    quality = max(0.0, (MAX_QUALITY_INCIDENTS - metrics.quality_incidents) / MAX_QUALITY_INCIDENTS) * QUALITY_WEIGHT
    lead_time = max(0.0, (TARGET_LEAD_TIME_DAYS - metrics.average_lead_time) / TARGET_LEAD_TIME_DAYS) * LEAD_TIME_WEIGHT
    cost = max(0.0, 1 - abs(metrics.average_cost_variance)) * COST_WEIGHT
    responsiveness = (metrics.responsiveness_rating / 5) * RESPONSIVENESS_WEIGHT

    return min(100, round_half_up(on_time + quality + lead_time + cost + responsiveness))


def calculate_grade(score: int) -> str:
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


class SupplierService:

    def get_supplier(self, db: Session, supplier_id: int) -> Supplier:
        supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
        if not supplier:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    def create_supplier(self, db: Session, data: SupplierCreate) -> Supplier:
        supplier = Supplier(**data.model_dump())
        db.add(supplier)
        db.commit()
        db.refresh(supplier)
        service_logger.info("Created supplier", extra={"supplier_id": supplier.id, "supplier_name": supplier.name})
        return supplier

    def update_supplier(self, db: Session, supplier_id: int, data: SupplierUpdate) -> Supplier:
        supplier = self.get_supplier(db, supplier_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(supplier, field, value)
        db.commit()
        db.refresh(supplier)
        return supplier

    def deactivate_supplier(self, db: Session, supplier_id: int) -> Supplier:
        supplier = self.get_supplier(db, supplier_id)
        supplier.is_active = False
        db.commit()
        db.refresh(supplier)
        service_logger.info("Deactivated supplier", extra={"supplier_id": supplier_id})
        return supplier

    def delete_supplier(self, db: Session, supplier_id: int) -> None:
        supplier = self.get_supplier(db, supplier_id)
        db.delete(supplier)
        db.commit()
        service_logger.info("Deleted supplier", extra={"supplier_id": supplier_id})

    def search(self, db: Session, criteria: SupplierSearch) -> List[Supplier]:
        query = db.query(Supplier)
        if criteria.name:
            pattern = f"%{criteria.name.strip()}%"
            query = query.filter(or_(Supplier.name.ilike(pattern), Supplier.company.ilike(pattern)))
        if criteria.country:
            query = query.filter(func.lower(Supplier.country) == criteria.country.lower())
        if criteria.is_active is not None:
            query = query.filter(Supplier.is_active == criteria.is_active)

        suppliers = query.order_by(Supplier.name).all()

        # Specialties live in a JSON list and the rating is derived, so both filter in Python
        if criteria.specialties:
            wanted = {s.lower() for s in criteria.specialties}
            suppliers = [s for s in suppliers if wanted & {x.lower() for x in (s.specialties or [])}]
        if criteria.min_rating is not None:
            suppliers = [s for s in suppliers if s.rating >= criteria.min_rating]
        return suppliers

    def qualify(
            self,
            db: Session,
            supplier_id: int,
            data: QualificationRequest,
            approved_by: Optional[int] = None
    ) -> SupplierQualification:
        supplier = self.get_supplier(db, supplier_id)
        if not data.criteria:
            raise ValidationFailedError("At least one qualification criterion is required")

        qualification = SupplierQualification(
            supplier_id=supplier.id,
            criteria_scores=data.criteria,
            overall_score=data.overall_score,
            recommendations=data.recommendations,
            valid_until=data.valid_until,
            approved_by=approved_by,
            approved_at=utcnow()
        )
        db.add(qualification)
        supplier.qualification_status = "qualified"
        supplier.qualification_score = data.overall_score
        supplier.qualification_valid_until = data.valid_until
        db.commit()
        db.refresh(qualification)

        service_logger.info("Qualified supplier", extra={
            "supplier_id": supplier.id,
            "overall_score": data.overall_score,
            "approved_by": approved_by
        })
        return qualification

    def update_performance(self, db: Session, supplier_id: int, metrics: PerformanceMetrics) -> Supplier:
        supplier = self.get_supplier(db, supplier_id)
        score = calculate_performance_score(metrics)
        supplier.performance_metrics = metrics.model_dump()
        supplier.performance_score = score
        supplier.performance_grade = calculate_grade(score)
        db.commit()
        db.refresh(supplier)
        service_logger.info("Updated supplier performance", extra={
            "supplier_id": supplier.id,
            "score": score,
            "grade": supplier.performance_grade
        })
        return supplier

    def analytics(self, db: Session, supplier_id: int) -> SupplierAnalytics:
        supplier = self.get_supplier(db, supplier_id)
        quotes = db.query(SupplierQuote).filter(SupplierQuote.supplier_id == supplier_id).all()

        total = len(quotes)
        responded = [q for q in quotes if q.quote_received_at is not None]
        accepted = sum(1 for q in quotes if q.status == QuoteStatus.ACCEPTED)
        expired = sum(1 for q in quotes if q.status == QuoteStatus.EXPIRED)
        response_times = [q.response_time_hours for q in responded if q.response_time_hours is not None]
        activity = [d for q in quotes for d in (q.rfq_sent_at, q.quote_received_at) if d is not None]

        return SupplierAnalytics(
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            total_quotes=total,
            quotes_received=len(responded),
            quotes_accepted=accepted,
            quotes_expired=expired,
            response_rate_percent=round(len(responded) / total * 100, 1) if total else 0.0,
            win_rate_percent=round(accepted / len(responded) * 100, 1) if responded else 0.0,
            avg_response_time_hours=round(sum(response_times) / len(response_times), 1) if response_times else None,
            last_activity_date=max(activity) if activity else None
        )


supplier_service = SupplierService()
