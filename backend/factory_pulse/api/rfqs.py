# backend/factory_pulse/api/rfqs.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .deps import get_current_user, report_response
from ..database import get_db
from ..errors import ServiceError
from ..models import User
from ..schemas.rfq import (
    Quote,
    QuoteReadiness,
    QuoteStatusHistoryEntry,
    QuoteStatusUpdate,
    QuoteSubmission,
    RFQ as RFQSchema,
    RFQCreate,
    RFQDetail,
    RFQSend,
)
from ..services.reports import report_service
from ..services.rfqs import rfq_service
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/rfqs", tags=["rfqs"])


def _user_id(user: Optional[User]) -> Optional[int]:
    return user.id if user else None


@router.post("", response_model=RFQSchema)
async def create_rfq(
        rfq: RFQCreate,
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    api_logger.info("Creating RFQ", extra={"project_id": rfq.project_id, "title": rfq.title})

    try:
        created = rfq_service.create_rfq(db, rfq, created_by=_user_id(user))
        api_logger.info("Successfully created RFQ", extra={
            "rfq_id": created.id,
            "rfq_number": created.rfq_number
        })
        return created
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error creating RFQ", extra={"project_id": rfq.project_id, "error": str(e)})
        db.rollback()
        raise


@router.post("/quotes/expire-overdue")
async def expire_overdue_quotes(db: Session = Depends(get_db)):
    """Mark sent quotes past their deadline as expired"""
    expired = rfq_service.expire_overdue_quotes(db)
    api_logger.info("Expired overdue quotes", extra={"expired": expired})
    return {"expired": expired}


@router.post("/quotes/{quote_id}/submit", response_model=Quote)
async def submit_quote(
        quote_id: int,
        submission: QuoteSubmission,
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    api_logger.info("Submitting supplier quote", extra={
        "quote_id": quote_id,
        "quote_amount": submission.quote_amount
    })

    try:
        return rfq_service.submit_quote(db, quote_id, submission, changed_by=_user_id(user))
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error submitting quote", extra={"quote_id": quote_id, "error": str(e)})
        db.rollback()
        raise


@router.put("/quotes/{quote_id}/status", response_model=Quote)
async def update_quote_status(
        quote_id: int,
        update: QuoteStatusUpdate,
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    api_logger.info("Updating quote status", extra={
        "quote_id": quote_id,
        "new_status": update.status.value
    })

    try:
        return rfq_service.update_quote_status(
            db, quote_id, update.status, changed_by=_user_id(user), reason=update.reason
        )
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error updating quote status", extra={"quote_id": quote_id, "error": str(e)})
        db.rollback()
        raise


@router.get("/quotes/{quote_id}/history", response_model=List[QuoteStatusHistoryEntry])
async def get_quote_history(quote_id: int, db: Session = Depends(get_db)):
    return rfq_service.quote_history(db, quote_id)


@router.get("/project/{project_id}", response_model=List[RFQSchema])
async def list_project_rfqs(project_id: int, db: Session = Depends(get_db)):
    return rfq_service.list_project_rfqs(db, project_id)


@router.get("/project/{project_id}/quotes", response_model=List[Quote])
async def list_project_quotes(project_id: int, db: Session = Depends(get_db)):
    return rfq_service.list_project_quotes(db, project_id)


@router.get("/project/{project_id}/readiness", response_model=QuoteReadiness)
async def get_quote_readiness(project_id: int, db: Session = Depends(get_db)):
    """How many of the requested quotes are back, with a status colour"""
    return rfq_service.quote_readiness(db, project_id)


@router.get("/project/{project_id}/comparison")
async def export_quote_comparison(project_id: int, format: str = "pdf", db: Session = Depends(get_db)):
    """Export received quotes for a project as PDF or DOCX, cheapest first"""
    api_logger.info("Exporting quote comparison", extra={"project_id": project_id, "format": format})
    return report_response(report_service.quote_comparison(db, project_id, format))


@router.get("/{rfq_id}", response_model=RFQDetail)
async def get_rfq(rfq_id: int, db: Session = Depends(get_db)):
    return rfq_service.get_rfq(db, rfq_id)


@router.post("/{rfq_id}/send", response_model=RFQDetail)
async def send_rfq(
        rfq_id: int,
        request: RFQSend,
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    api_logger.info("Sending RFQ to suppliers", extra={
        "rfq_id": rfq_id,
        "supplier_count": len(request.supplier_ids)
    })

    try:
        return rfq_service.send(
            db, rfq_id, request.supplier_ids,
            quote_deadline=request.quote_deadline,
            message=request.message,
            sent_by=_user_id(user)
        )
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error sending RFQ", extra={"rfq_id": rfq_id, "error": str(e)})
        db.rollback()
        raise


@router.post("/{rfq_id}/cancel", response_model=RFQSchema)
async def cancel_rfq(
        rfq_id: int,
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    api_logger.info("Cancelling RFQ", extra={"rfq_id": rfq_id})
    return rfq_service.cancel_rfq(db, rfq_id, changed_by=_user_id(user))
