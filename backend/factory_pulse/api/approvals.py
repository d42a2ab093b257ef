# backend/factory_pulse/api/approvals.py
import time
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from .deps import pagination, report_response, require_permission, require_user
from ..database import get_db
from ..errors import ServiceError
from ..models import ApprovalPriority, ApprovalStatus, ApprovalType, User
from ..schemas.approval import (
    Approval as ApprovalSchema,
    ApprovalCreate,
    ApprovalDecision,
    ApprovalFilter,
    ApprovalHistoryEntry,
    ApprovalList,
    ApprovalStats,
    ApprovalUpdate,
    Attachment,
    AutoApprovalRequest,
    CancelRequest,
    Delegation,
    DelegationCreate,
    DelegationRequest,
    EscalationRequest,
    Notification,
)
from ..schemas.base import SuccessResponse
from ..services.approvals import approval_service
from ..services.reports import report_service
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/approvals", tags=["approvals"])


def approval_filters(
        approval_type: List[ApprovalType] = Query(default=[]),
        status: List[ApprovalStatus] = Query(default=[]),
        priority: List[ApprovalPriority] = Query(default=[]),
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        requested_by: Optional[int] = None,
        current_approver_id: Optional[int] = None,
        due_after: Optional[datetime] = None,
        due_before: Optional[datetime] = None,
        created_after: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        overdue_only: bool = False
) -> ApprovalFilter:
    return ApprovalFilter(
        approval_type=approval_type or None,
        status=status or None,
        priority=priority or None,
        entity_type=entity_type,
        entity_id=entity_id,
        requested_by=requested_by,
        current_approver_id=current_approver_id,
        due_after=due_after,
        due_before=due_before,
        created_after=created_after,
        created_before=created_before,
        overdue_only=overdue_only
    )


@router.post("", response_model=ApprovalSchema)
async def create_approval(
        approval: ApprovalCreate,
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    api_logger.info("Creating approval request", extra={
        "approval_type": approval.approval_type.value,
        "entity_type": approval.entity_type,
        "entity_id": approval.entity_id,
        "requested_by": user.id
    })

    try:
        start_time = time.time()
        created = approval_service.create_approval(db, approval, user)
        api_logger.info("Successfully created approval", extra={
            "approval_id": created.id,
            "approval_status": created.status.value,
            "execution_time_ms": round((time.time() - start_time) * 1000, 2)
        })
        return created
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error creating approval", extra={"error": str(e)})
        db.rollback()
        raise


@router.get("", response_model=ApprovalList)
async def list_approvals(
        filters: ApprovalFilter = Depends(approval_filters),
        paging: Tuple[int, int] = Depends(pagination),
        db: Session = Depends(get_db)
):
    """Filtered approvals, most urgent first"""
    page, limit = paging
    items, total = approval_service.list_approvals(db, filters, page=page, limit=limit)
    api_logger.info(f"Found {total} approvals", extra={"returned": len(items), "page": page})
    return ApprovalList(
        items=[ApprovalSchema.model_validate(a) for a in items],
        total=total,
        page=page,
        limit=limit
    )


@router.get("/pending", response_model=List[ApprovalSchema])
async def list_my_pending(db: Session = Depends(get_db), user: User = Depends(require_user)):
    """Open approvals waiting on the current user"""
    return approval_service.pending_for_user(db, user.id)


@router.get("/stats", response_model=ApprovalStats)
async def get_stats(db: Session = Depends(get_db)):
    return approval_service.stats(db)


@router.get("/report")
async def export_report(
        format: str = "pdf",
        filters: ApprovalFilter = Depends(approval_filters),
        db: Session = Depends(get_db),
        user: User = Depends(require_permission("analytics", "export"))
):
    """Export the filtered approvals as a PDF or DOCX summary"""
    api_logger.info("Exporting approval summary", extra={"format": format, "user_id": user.id})
    return report_response(report_service.approval_summary(db, filters, format))


@router.get("/notifications", response_model=List[Notification])
async def list_notifications(
        unread_only: bool = False,
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    return approval_service.notifications(db, user.id, unread_only=unread_only)


@router.put("/notifications/{notification_id}/read", response_model=Notification)
async def mark_notification_read(
        notification_id: int,
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    return approval_service.mark_notification_read(db, notification_id, user)


@router.post("/delegations", response_model=Delegation)
async def create_delegation(
        delegation: DelegationCreate,
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    """Route the user's approvals to a delegate for a period of time"""
    api_logger.info("Creating delegation rule", extra={
        "delegator_id": user.id,
        "delegate_id": delegation.delegate_id
    })

    try:
        return approval_service.create_delegation(db, user, delegation)
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error creating delegation", extra={"delegator_id": user.id, "error": str(e)})
        db.rollback()
        raise


@router.get("/delegations", response_model=List[Delegation])
async def list_delegations(db: Session = Depends(get_db), user: User = Depends(require_user)):
    return approval_service.active_delegations(db, user.id)


@router.post("/delegations/{delegation_id}/deactivate", response_model=Delegation)
async def deactivate_delegation(
        delegation_id: int,
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    api_logger.info("Deactivating delegation rule", extra={"delegation_id": delegation_id, "user_id": user.id})
    return approval_service.deactivate_delegation(db, delegation_id, user)


@router.post("/expire-overdue")
async def expire_overdue(db: Session = Depends(get_db)):
    """Expire pending approvals whose expiry time has passed"""
    expired = approval_service.expire_overdue(db)
    return {"expired": expired}


@router.get("/entity/{entity_type}/{entity_id}/history", response_model=List[ApprovalHistoryEntry])
async def get_entity_history(entity_type: str, entity_id: int, db: Session = Depends(get_db)):
    return approval_service.entity_history(db, entity_type, entity_id)


@router.get("/attachments/{attachment_id}/download")
async def download_attachment(attachment_id: int, db: Session = Depends(get_db)):
    attachment, path = approval_service.attachment_file(db, attachment_id)
    return FileResponse(path, media_type=attachment.mime_type, filename=attachment.original_file_name)


@router.get("/{approval_id}", response_model=ApprovalSchema)
async def get_approval(approval_id: int, db: Session = Depends(get_db)):
    return approval_service.get_approval(db, approval_id)


@router.put("/{approval_id}", response_model=ApprovalSchema)
async def update_approval(
        approval_id: int,
        approval: ApprovalUpdate,
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    api_logger.info("Updating approval", extra={
        "approval_id": approval_id,
        "update_fields": list(approval.model_dump(exclude_unset=True).keys())
    })

    try:
        return approval_service.update_approval(db, approval_id, approval, user)
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error updating approval", extra={"approval_id": approval_id, "error": str(e)})
        db.rollback()
        raise


@router.delete("/{approval_id}", response_model=SuccessResponse)
async def delete_approval(
        approval_id: int,
        db: Session = Depends(get_db),
        user: User = Depends(require_permission("rfq", "approve"))
):
    api_logger.info("Deleting approval", extra={"approval_id": approval_id, "user_id": user.id})
    approval_service.delete_approval(db, approval_id)
    return SuccessResponse()


@router.post("/{approval_id}/review", response_model=ApprovalSchema)
async def start_review(approval_id: int, db: Session = Depends(get_db), user: User = Depends(require_user)):
    return approval_service.start_review(db, approval_id, user)


@router.post("/{approval_id}/decision", response_model=ApprovalSchema)
async def submit_decision(
        approval_id: int,
        decision: ApprovalDecision,
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    api_logger.info("Submitting approval decision", extra={
        "approval_id": approval_id,
        "decision": decision.decision.value,
        "user_id": user.id
    })

    try:
        return approval_service.submit_decision(
            db, approval_id, decision.decision, user,
            comments=decision.comments,
            reason=decision.reason,
            details=decision.details
        )
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error submitting decision", extra={"approval_id": approval_id, "error": str(e)})
        db.rollback()
        raise


@router.post("/{approval_id}/delegate", response_model=ApprovalSchema)
async def delegate_approval(
        approval_id: int,
        request: DelegationRequest,
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    api_logger.info("Delegating approval", extra={
        "approval_id": approval_id,
        "delegate_id": request.delegate_id
    })
    return approval_service.delegate(
        db, approval_id, request.delegate_id, request.reason, user, end_date=request.end_date
    )


@router.post("/{approval_id}/escalate", response_model=ApprovalSchema)
async def escalate_approval(
        approval_id: int,
        request: EscalationRequest,
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    api_logger.info("Escalating approval", extra={
        "approval_id": approval_id,
        "escalate_to": request.escalate_to
    })
    return approval_service.escalate(db, approval_id, request.escalate_to, request.reason, user)


@router.post("/{approval_id}/auto-approve", response_model=ApprovalSchema)
async def auto_approve(
        approval_id: int,
        request: AutoApprovalRequest,
        db: Session = Depends(get_db),
        user: User = Depends(require_permission("rfq", "approve"))
):
    api_logger.info("Auto-approving", extra={"approval_id": approval_id, "user_id": user.id})
    return approval_service.auto_approve(db, approval_id, request.reason, actor=user)


@router.post("/{approval_id}/cancel", response_model=ApprovalSchema)
async def cancel_approval(
        approval_id: int,
        request: CancelRequest,
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    return approval_service.cancel(db, approval_id, user, reason=request.reason)


@router.get("/{approval_id}/history", response_model=List[ApprovalHistoryEntry])
async def get_history(approval_id: int, db: Session = Depends(get_db)):
    return approval_service.history(db, approval_id)


@router.post("/{approval_id}/attachments", response_model=Attachment)
async def upload_attachment(
        approval_id: int,
        file: UploadFile = File(...),
        attachment_type: str = Form("supporting_document"),
        description: Optional[str] = Form(None),
        db: Session = Depends(get_db),
        user: User = Depends(require_user)
):
    api_logger.info("Uploading approval attachment", extra={
        "approval_id": approval_id,
        "file_name": file.filename
    })

    try:
        return await approval_service.upload_attachment(
            db, approval_id, file,
            uploaded_by=user.id,
            attachment_type=attachment_type,
            description=description
        )
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error uploading attachment", extra={"approval_id": approval_id, "error": str(e)})
        db.rollback()
        raise


@router.get("/{approval_id}/attachments", response_model=List[Attachment])
async def list_attachments(approval_id: int, db: Session = Depends(get_db)):
    return approval_service.list_attachments(db, approval_id)
