# backend/factory_pulse/services/rfqs.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationFailedError
from ..models import (
    ProjectStage,
    QuoteStatus,
    RFQStatus,
    Supplier,
    SupplierQuote,
    SupplierQuoteStatusHistory,
    SupplierRFQ,
)
from ..schemas.rfq import QuoteReadiness, QuoteSubmission, RFQCreate
from ..utils.dates import as_naive_utc, utcnow
from ..utils.logging import service_logger
from .projects import CLOSED_STATUSES, project_service, stage_index

QUOTE_TRANSITIONS = {
    QuoteStatus.SENT: {QuoteStatus.RECEIVED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED, QuoteStatus.CANCELLED},
    QuoteStatus.RECEIVED: {QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED},
    QuoteStatus.ACCEPTED: set(),
    QuoteStatus.REJECTED: set(),
    QuoteStatus.EXPIRED: set(),
    QuoteStatus.CANCELLED: set(),
}


def can_transition_quote(current: QuoteStatus, new: QuoteStatus) -> bool:
    return new in QUOTE_TRANSITIONS[QuoteStatus(current)]


def readiness_color(total: int, percentage: float, overdue: int) -> str:
    if total == 0:
        return "gray"
    if percentage >= 100:
        return "green"
    if overdue > 0:
        return "red"
    if percentage >= 50:
        return "yellow"
    return "orange"


class RFQService:
    """Supplier RFQs and the quotes they collect"""

    def get_rfq(self, db: Session, rfq_id: int) -> SupplierRFQ:
        rfq = db.query(SupplierRFQ).filter(SupplierRFQ.id == rfq_id).first()
        if not rfq:
            raise NotFoundError("RFQ", rfq_id)
        return rfq

    def list_project_rfqs(self, db: Session, project_id: int) -> List[SupplierRFQ]:
        return db.query(SupplierRFQ) \
            .filter(SupplierRFQ.project_id == project_id) \
            .order_by(SupplierRFQ.created_at.desc(), SupplierRFQ.id.desc()) \
            .all()

    def generate_rfq_number(self, db: Session, project) -> str:
        sequence = db.query(SupplierRFQ).filter(SupplierRFQ.project_id == project.id).count() + 1
        while True:
            number = f"RFQ-{project.project_number}-{sequence:02d}"
            if not db.query(SupplierRFQ.id).filter(SupplierRFQ.rfq_number == number).first():
                return number
            sequence += 1

    def create_rfq(self, db: Session, data: RFQCreate, created_by: Optional[int] = None) -> SupplierRFQ:
        project = project_service.get_project(db, data.project_id)
        rfq = SupplierRFQ(
            rfq_number=self.generate_rfq_number(db, project),
            project_id=project.id,
            title=data.title,
            requirements=data.requirements,
            priority=data.priority,
            due_date=as_naive_utc(data.due_date),
            status=RFQStatus.DRAFT,
            created_by=created_by
        )
        db.add(rfq)
        db.commit()
        db.refresh(rfq)
        service_logger.info("Created RFQ", extra={"rfq_id": rfq.id, "rfq_number": rfq.rfq_number})
        return rfq

    def cancel_rfq(self, db: Session, rfq_id: int, changed_by: Optional[int] = None) -> SupplierRFQ:
        rfq = self.get_rfq(db, rfq_id)
        if rfq.status in (RFQStatus.CLOSED, RFQStatus.CANCELLED):
            raise InvalidTransitionError("RFQ", rfq.status.value, RFQStatus.CANCELLED.value)

        for quote in rfq.quotes:
            if can_transition_quote(quote.status, QuoteStatus.CANCELLED):
                self._set_quote_status(db, quote, QuoteStatus.CANCELLED, changed_by, "RFQ cancelled")
        rfq.status = RFQStatus.CANCELLED
        db.commit()
        db.refresh(rfq)
        return rfq

    def send(
            self,
            db: Session,
            rfq_id: int,
            supplier_ids: List[int],
            quote_deadline: Optional[datetime] = None,
            message: Optional[str] = None,
            sent_by: Optional[int] = None
    ) -> SupplierRFQ:
        """Send an RFQ to suppliers: one quote request per supplier"""
        rfq = self.get_rfq(db, rfq_id)
        if rfq.status in (RFQStatus.CLOSED, RFQStatus.CANCELLED):
            raise ConflictError(f"RFQ {rfq.rfq_number} is {rfq.status.value}")

        unique_ids = list(dict.fromkeys(supplier_ids))
        suppliers = db.query(Supplier).filter(Supplier.id.in_(unique_ids)).all()
        found = {s.id: s for s in suppliers}
        missing = [sid for sid in unique_ids if sid not in found]
        if missing:
            raise NotFoundError("Supplier", ", ".join(str(m) for m in missing))
        inactive = [s.name for s in suppliers if not s.is_active]
        if inactive:
            raise ValidationFailedError("Inactive suppliers cannot receive RFQs", [
                f"Supplier {name} is inactive" for name in inactive
            ])

        already_sent = {q.supplier_id for q in rfq.quotes if q.status != QuoteStatus.CANCELLED}
        now = utcnow()
        deadline = as_naive_utc(quote_deadline) or rfq.due_date
        created = 0
        for supplier_id in unique_ids:
            if supplier_id in already_sent:
                continue
            quote = SupplierQuote(
                rfq_id=rfq.id,
                project_id=rfq.project_id,
                supplier_id=supplier_id,
                status=QuoteStatus.SENT,
                rfq_message=message,
                rfq_sent_at=now,
                quote_deadline=deadline
            )
            db.add(quote)
            db.flush()
            db.add(SupplierQuoteStatusHistory(
                quote_id=quote.id,
                old_status=None,
                new_status=QuoteStatus.SENT,
                changed_by=sent_by,
                reason="RFQ sent"
            ))
            found[supplier_id].last_contact_date = now
            created += 1

        rfq.status = RFQStatus.SENT
        rfq.sent_at = rfq.sent_at or now

        project = rfq.project
        if project.status not in CLOSED_STATUSES and \
                stage_index(project.stage) < stage_index(ProjectStage.SUPPLIER_RFQ_SENT):
            project_service.transition_stage(
                db, project.id, ProjectStage.SUPPLIER_RFQ_SENT,
                changed_by=sent_by,
                reason=f"RFQ {rfq.rfq_number} sent to suppliers",
                commit=False,
                allow_skip=True
            )

        db.commit()
        db.refresh(rfq)
        service_logger.info("Sent RFQ", extra={
            "rfq_id": rfq.id,
            "supplier_count": len(unique_ids),
            "quotes_created": created
        })
        return rfq

    def get_quote(self, db: Session, quote_id: int) -> SupplierQuote:
        quote = db.query(SupplierQuote).filter(SupplierQuote.id == quote_id).first()
        if not quote:
            raise NotFoundError("Quote", quote_id)
        return quote

    def list_project_quotes(self, db: Session, project_id: int) -> List[SupplierQuote]:
        return db.query(SupplierQuote) \
            .filter(SupplierQuote.project_id == project_id) \
            .order_by(SupplierQuote.id) \
            .all()

    def _set_quote_status(
            self,
            db: Session,
            quote: SupplierQuote,
            new_status: QuoteStatus,
            changed_by: Optional[int],
            reason: Optional[str]
    ) -> None:
        if not can_transition_quote(quote.status, new_status):
            raise InvalidTransitionError("quote", quote.status.value, new_status.value)
        db.add(SupplierQuoteStatusHistory(
            quote_id=quote.id,
            old_status=quote.status,
            new_status=new_status,
            changed_by=changed_by,
            reason=reason
        ))
        quote.status = new_status

    def submit_quote(
            self,
            db: Session,
            quote_id: int,
            data: QuoteSubmission,
            changed_by: Optional[int] = None
    ) -> SupplierQuote:
        """Record a supplier's answer; the quote moves from sent to received"""
        quote = self.get_quote(db, quote_id)
        self._set_quote_status(db, quote, QuoteStatus.RECEIVED, changed_by, "Quote received")

        for field, value in data.model_dump().items():
            setattr(quote, field, value)
        now = utcnow()
        quote.quote_received_at = now
        quote.response_time_hours = round((now - quote.rfq_sent_at).total_seconds() / 3600, 2)
        if not quote.quote_number:
            quote.quote_number = f"{quote.rfq.rfq_number}-Q{quote.id}"

        db.commit()
        db.refresh(quote)
        service_logger.info("Quote received", extra={
            "quote_id": quote.id,
            "supplier_id": quote.supplier_id,
            "quote_amount": quote.quote_amount
        })
        return quote

    def update_quote_status(
            self,
            db: Session,
            quote_id: int,
            new_status: QuoteStatus,
            changed_by: Optional[int] = None,
            reason: Optional[str] = None
    ) -> SupplierQuote:
        quote = self.get_quote(db, quote_id)
        new_status = QuoteStatus(new_status)
        if new_status == QuoteStatus.RECEIVED:
            raise ValidationFailedError("Use quote submission to record a received quote")

        self._set_quote_status(db, quote, new_status, changed_by, reason)

        if new_status == QuoteStatus.ACCEPTED:
            # The RFQ is settled: other received quotes lose, the RFQ closes
            for other in quote.rfq.quotes:
                if other.id != quote.id and other.status == QuoteStatus.RECEIVED:
                    self._set_quote_status(
                        db, other, QuoteStatus.REJECTED, changed_by,
                        f"Quote {quote.id} accepted"
                    )
            quote.rfq.status = RFQStatus.CLOSED

        db.commit()
        db.refresh(quote)
        service_logger.info("Quote status changed", extra={
            "quote_id": quote.id,
            "new_status": new_status.value,
            "changed_by": changed_by
        })
        return quote

    def quote_history(self, db: Session, quote_id: int) -> List[SupplierQuoteStatusHistory]:
        self.get_quote(db, quote_id)
        return db.query(SupplierQuoteStatusHistory) \
            .filter(SupplierQuoteStatusHistory.quote_id == quote_id) \
            .order_by(SupplierQuoteStatusHistory.id) \
            .all()

    def expire_overdue_quotes(self, db: Session, now: Optional[datetime] = None) -> int:
        now = as_naive_utc(now) or utcnow()
        overdue = db.query(SupplierQuote).filter(
            SupplierQuote.status == QuoteStatus.SENT,
            SupplierQuote.quote_deadline.isnot(None),
            SupplierQuote.quote_deadline < now
        ).all()
        for quote in overdue:
            self._set_quote_status(db, quote, QuoteStatus.EXPIRED, None, "Quote deadline passed")
        db.commit()
        if overdue:
            service_logger.info("Expired overdue quotes", extra={"expired": len(overdue)})
        return len(overdue)

    def quote_readiness(self, db: Session, project_id: int, now: Optional[datetime] = None) -> QuoteReadiness:
        project_service.get_project(db, project_id)
        now = as_naive_utc(now) or utcnow()
        quotes = [
            q for q in self.list_project_quotes(db, project_id)
            if q.status != QuoteStatus.CANCELLED
        ]

        total = len(quotes)
        received = sum(1 for q in quotes if q.quote_received_at is not None)
        pending = sum(1 for q in quotes if q.status == QuoteStatus.SENT)
        overdue = sum(
            1 for q in quotes
            if q.status == QuoteStatus.SENT and q.quote_deadline is not None and q.quote_deadline < now
        )
        percentage = round(received / total * 100, 1) if total else 0.0

        return QuoteReadiness(
            total_suppliers=total,
            received_quotes=received,
            pending_quotes=pending,
            overdue_quotes=overdue,
            readiness_percentage=percentage,
            status_text=f"{received}/{total} quotes received - {pending} pending",
            color_code=readiness_color(total, percentage, overdue)
        )


rfq_service = RFQService()
