# backend/factory_pulse/services/approvals.py
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy import case, or_
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from ..models import (
    Approval,
    ApprovalAttachment,
    ApprovalDelegation,
    ApprovalHistory,
    ApprovalNotification,
    ApprovalPriority,
    ApprovalStatus,
    DelegationStatus,
    User,
)
from ..schemas.approval import ApprovalCreate, ApprovalFilter, ApprovalStats, ApprovalUpdate, DelegationCreate
from ..utils.dates import as_naive_utc, utcnow
from ..utils.files import unique_filename
from ..utils.logging import service_logger
from .cleanup import cleanup_service
from .permissions import user_has_permission
from .storage import storage_service

TERMINAL_STATUSES = {
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.EXPIRED,
    ApprovalStatus.CANCELLED,
    ApprovalStatus.AUTO_APPROVED,
}

OPEN_STATUSES = (
    ApprovalStatus.PENDING,
    ApprovalStatus.IN_REVIEW,
    ApprovalStatus.DELEGATED,
    ApprovalStatus.ESCALATED,
)

APPROVAL_TRANSITIONS = {
    ApprovalStatus.PENDING: set(ApprovalStatus) - {ApprovalStatus.PENDING},
    ApprovalStatus.IN_REVIEW: set(ApprovalStatus) - {ApprovalStatus.PENDING, ApprovalStatus.IN_REVIEW},
    ApprovalStatus.DELEGATED: {
        ApprovalStatus.IN_REVIEW,
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.ESCALATED,
        ApprovalStatus.CANCELLED,
        ApprovalStatus.EXPIRED,
    },
    ApprovalStatus.ESCALATED: {
        ApprovalStatus.IN_REVIEW,
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.CANCELLED,
        ApprovalStatus.EXPIRED,
    },
    **{status: set() for status in TERMINAL_STATUSES},
}

# Lower rank sorts first
PRIORITY_RANK = {
    ApprovalPriority.CRITICAL: 0,
    ApprovalPriority.URGENT: 1,
    ApprovalPriority.HIGH: 2,
    ApprovalPriority.NORMAL: 3,
    ApprovalPriority.LOW: 4,
}


def can_transition(current: ApprovalStatus, new: ApprovalStatus) -> bool:
    return ApprovalStatus(new) in APPROVAL_TRANSITIONS[ApprovalStatus(current)]


def priority_order():
    return case(
        *[(Approval.priority == priority, rank) for priority, rank in PRIORITY_RANK.items()],
        else_=len(PRIORITY_RANK)
    )


def assignee_id(approval: Approval) -> Optional[int]:
    """The user who is expected to act on the approval right now"""
    if approval.status == ApprovalStatus.ESCALATED and approval.escalated_to:
        return approval.escalated_to
    if approval.status == ApprovalStatus.DELEGATED and approval.delegated_to:
        return approval.delegated_to
    return approval.current_approver_id


def is_assigned_to(approval: Approval, user: User) -> bool:
    return user.id in {approval.current_approver_id, approval.delegated_to, approval.escalated_to}


class ApprovalService:
    """Centralized approvals: status transitions, delegation and escalation"""

    # Lookups

    def get_approval(self, db: Session, approval_id: int) -> Approval:
        approval = db.query(Approval).filter(Approval.id == approval_id).first()
        if not approval:
            raise NotFoundError("Approval", approval_id)
        return approval

    def _get_user(self, db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User", user_id)
        return user

    # Bookkeeping helpers; none of them commit

    def _record(
            self,
            db: Session,
            approval: Approval,
            action_type: str,
            action_by: Optional[int],
            old_status: Optional[ApprovalStatus] = None,
            new_status: Optional[ApprovalStatus] = None,
            comments: Optional[str] = None,
            details: Optional[Dict[str, Any]] = None
    ) -> None:
        db.add(ApprovalHistory(
            approval_id=approval.id,
            action_type=action_type,
            action_by=action_by,
            action_at=utcnow(),
            old_status=old_status,
            new_status=new_status,
            comments=comments,
            details=details or {}
        ))

    def _notify(
            self,
            db: Session,
            approval: Approval,
            notification_type: str,
            recipient_id: Optional[int],
            recipient_type: str,
            subject: str,
            message: str,
            details: Optional[Dict[str, Any]] = None
    ) -> None:
        if recipient_id is None:
            return
        db.add(ApprovalNotification(
            approval_id=approval.id,
            notification_type=notification_type,
            recipient_id=recipient_id,
            recipient_type=recipient_type,
            subject=subject,
            message=message,
            details={"approval_type": approval.approval_type.value, **(details or {})}
        ))

    def _change_status(
            self,
            db: Session,
            approval: Approval,
            new_status: ApprovalStatus,
            action_type: str,
            action_by: Optional[int],
            comments: Optional[str] = None,
            details: Optional[Dict[str, Any]] = None
    ) -> ApprovalStatus:
        old_status = approval.status
        if not can_transition(old_status, new_status):
            raise InvalidTransitionError("approval", old_status.value, ApprovalStatus(new_status).value)
        approval.status = new_status
        self._record(db, approval, action_type, action_by, old_status, new_status, comments, details)
        return old_status

    # Creation and queries

    def find_active_delegation(
            self,
            db: Session,
            delegator_id: int,
            at: Optional[datetime] = None
    ) -> Optional[ApprovalDelegation]:
        at = as_naive_utc(at) or utcnow()
        return db.query(ApprovalDelegation).filter(
            ApprovalDelegation.delegator_id == delegator_id,
            ApprovalDelegation.status == DelegationStatus.ACTIVE,
            ApprovalDelegation.include_new_approvals.is_(True),
            ApprovalDelegation.start_date <= at,
            ApprovalDelegation.end_date >= at
        ).order_by(ApprovalDelegation.created_at.desc(), ApprovalDelegation.id.desc()).first()

    def create_approval(self, db: Session, data: ApprovalCreate, requested_by: User) -> Approval:
        if data.step_number > data.total_steps:
            raise ValidationFailedError("step_number cannot exceed total_steps")
        if data.current_approver_id is not None:
            self._get_user(db, data.current_approver_id)

        payload = data.model_dump()
        for field in ("due_date", "expires_at"):
            payload[field] = as_naive_utc(payload[field])

        now = utcnow()
        approval = Approval(
            **payload,
            requested_by=requested_by.id,
            requested_at=now,
            status=ApprovalStatus.PENDING
        )
        db.add(approval)
        db.flush()

        self._record(db, approval, "created", requested_by.id, None, ApprovalStatus.PENDING,
                     comments=data.request_reason)
        self._notify(
            db, approval, "request", approval.current_approver_id, "approver",
            f"Approval Request: {approval.title}",
            f"You have a new approval request: {approval.title}",
            {"entity_type": approval.entity_type, "entity_id": approval.entity_id}
        )

        rule = None
        if approval.current_approver_id is not None:
            rule = self.find_active_delegation(db, approval.current_approver_id, now)
        if rule is not None:
            self._apply_delegation(
                db, approval, rule.delegate_id, rule.reason, rule.end_date,
                action_by=None, details={"delegation_rule_id": rule.id}
            )

        db.commit()
        db.refresh(approval)
        service_logger.info("Created approval", extra={
            "approval_id": approval.id,
            "approval_type": approval.approval_type.value,
            "entity_type": approval.entity_type,
            "entity_id": approval.entity_id,
            "status": approval.status.value
        })
        return approval

    def list_approvals(
            self,
            db: Session,
            filters: Optional[ApprovalFilter] = None,
            page: int = 1,
            limit: int = 20,
            now: Optional[datetime] = None
    ) -> Tuple[List[Approval], int]:
        filters = filters or ApprovalFilter()
        query = db.query(Approval)

        if filters.approval_type:
            query = query.filter(Approval.approval_type.in_(filters.approval_type))
        if filters.status:
            query = query.filter(Approval.status.in_(filters.status))
        if filters.priority:
            query = query.filter(Approval.priority.in_(filters.priority))
        if filters.entity_type:
            query = query.filter(Approval.entity_type == filters.entity_type)
        if filters.entity_id is not None:
            query = query.filter(Approval.entity_id == filters.entity_id)
        if filters.requested_by is not None:
            query = query.filter(Approval.requested_by == filters.requested_by)
        if filters.current_approver_id is not None:
            query = query.filter(Approval.current_approver_id == filters.current_approver_id)
        if filters.due_after:
            query = query.filter(Approval.due_date >= as_naive_utc(filters.due_after))
        if filters.due_before:
            query = query.filter(Approval.due_date <= as_naive_utc(filters.due_before))
        if filters.created_after:
            query = query.filter(Approval.created_at >= as_naive_utc(filters.created_after))
        if filters.created_before:
            query = query.filter(Approval.created_at <= as_naive_utc(filters.created_before))
        if filters.overdue_only:
            query = query.filter(
                Approval.due_date < (as_naive_utc(now) or utcnow()),
                Approval.status.in_([ApprovalStatus.PENDING, ApprovalStatus.IN_REVIEW])
            )

        total = query.count()
        items = query.order_by(priority_order(), Approval.created_at.desc(), Approval.id.desc()) \
            .offset((page - 1) * limit) \
            .limit(limit) \
            .all()
        return items, total

    def pending_for_user(self, db: Session, user_id: int) -> List[Approval]:
        """Open approvals the user can act on, most urgent and oldest first"""
        return db.query(Approval).filter(
            Approval.status.in_(OPEN_STATUSES),
            or_(
                Approval.current_approver_id == user_id,
                Approval.delegated_to == user_id,
                Approval.escalated_to == user_id
            )
        ).order_by(priority_order(), Approval.created_at, Approval.id).all()

    # Updates

    def update_approval(self, db: Session, approval_id: int, data: ApprovalUpdate, actor: User) -> Approval:
        approval = self.get_approval(db, approval_id)
        if approval.status in TERMINAL_STATUSES:
            raise ConflictError(f"Approval {approval_id} is {approval.status.value} and can no longer change")

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("current_approver_id") is not None:
            self._get_user(db, update_data["current_approver_id"])
        for field in ("due_date", "expires_at"):
            if field in update_data:
                update_data[field] = as_naive_utc(update_data[field])

        for field, value in update_data.items():
            setattr(approval, field, value)
        self._record(db, approval, "updated", actor.id, details={"fields": sorted(update_data)})
        db.commit()
        db.refresh(approval)
        return approval

    def delete_approval(self, db: Session, approval_id: int) -> None:
        approval = self.get_approval(db, approval_id)
        if approval.status != ApprovalStatus.PENDING:
            raise ConflictError("Only pending approvals can be deleted")
        cleanup_service.delete_approval_artifacts(approval, db)
        db.delete(approval)
        db.commit()
        service_logger.info("Deleted approval", extra={"approval_id": approval_id})

    def start_review(self, db: Session, approval_id: int, actor: User) -> Approval:
        approval = self.get_approval(db, approval_id)
        self._require_decider(approval, actor)
        self._change_status(db, approval, ApprovalStatus.IN_REVIEW, "review_started", actor.id)
        db.commit()
        db.refresh(approval)
        return approval

    def _require_decider(self, approval: Approval, actor: User) -> None:
        if is_assigned_to(approval, actor) or user_has_permission(actor, "rfq", "approve"):
            return
        raise PermissionDeniedError(f"User {actor.id} is not an approver of approval {approval.id}")

    def submit_decision(
            self,
            db: Session,
            approval_id: int,
            decision: ApprovalStatus,
            actor: User,
            comments: Optional[str] = None,
            reason: Optional[str] = None,
            details: Optional[Dict[str, Any]] = None
    ) -> Approval:
        decision = ApprovalStatus(decision)
        if decision not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
            raise ValidationFailedError("Decision must be 'approved' or 'rejected'")

        approval = self.get_approval(db, approval_id)
        self._require_decider(approval, actor)

        self._change_status(db, approval, decision, decision.value, actor.id, comments,
                            {"reason": reason} if reason else None)
        approval.decision_comments = comments
        approval.decision_reason = reason
        approval.decision_details = details or {}
        approval.decided_at = utcnow()
        approval.decided_by = actor.id

        self._notify(
            db, approval, "decision", approval.requested_by, "requester",
            f"Approval {decision.value}: {approval.title}",
            f'Your approval request "{approval.title}" has been {decision.value}',
            {"decision": decision.value}
        )
        db.commit()
        db.refresh(approval)
        service_logger.info("Approval decision submitted", extra={
            "approval_id": approval.id,
            "decision": decision.value,
            "decided_by": actor.id
        })
        return approval

    def cancel(self, db: Session, approval_id: int, actor: User, reason: Optional[str] = None) -> Approval:
        approval = self.get_approval(db, approval_id)
        if approval.requested_by != actor.id:
            raise PermissionDeniedError("Only the requester can cancel an approval")
        self._change_status(db, approval, ApprovalStatus.CANCELLED, "cancelled", actor.id, reason)
        db.commit()
        db.refresh(approval)
        return approval

    def _apply_delegation(
            self,
            db: Session,
            approval: Approval,
            delegate_id: int,
            reason: str,
            end_date: Optional[datetime],
            action_by: Optional[int],
            details: Optional[Dict[str, Any]] = None
    ) -> None:
        delegated_from = assignee_id(approval)
        self._change_status(db, approval, ApprovalStatus.DELEGATED, "delegated", action_by, reason, {
            "delegated_from": delegated_from,
            "delegated_to": delegate_id,
            **(details or {})
        })
        approval.delegated_from = delegated_from
        approval.delegated_to = delegate_id
        approval.delegated_at = utcnow()
        approval.delegation_reason = reason
        approval.delegation_end_date = as_naive_utc(end_date)
        self._notify(
            db, approval, "delegation", delegate_id, "approver",
            f"Approval Delegated: {approval.title}",
            f"An approval has been delegated to you: {approval.title}"
        )

    def delegate(
            self,
            db: Session,
            approval_id: int,
            delegate_id: int,
            reason: str,
            actor: User,
            end_date: Optional[datetime] = None
    ) -> Approval:
        approval = self.get_approval(db, approval_id)
        self._require_decider(approval, actor)
        self._get_user(db, delegate_id)
        if delegate_id == assignee_id(approval):
            raise ValidationFailedError("Approval is already assigned to this user")

        self._apply_delegation(db, approval, delegate_id, reason, end_date, actor.id)
        db.commit()
        db.refresh(approval)
        service_logger.info("Approval delegated", extra={
            "approval_id": approval.id,
            "delegated_to": delegate_id,
            "actor_id": actor.id
        })
        return approval

    def escalate(self, db: Session, approval_id: int, escalate_to: int, reason: str, actor: User) -> Approval:
        approval = self.get_approval(db, approval_id)
        if approval.requested_by != actor.id:
            self._require_decider(approval, actor)
        self._get_user(db, escalate_to)

        escalated_from = assignee_id(approval)
        self._change_status(db, approval, ApprovalStatus.ESCALATED, "escalated", actor.id, reason, {
            "escalated_from": escalated_from,
            "escalated_to": escalate_to
        })
        approval.escalated_from = escalated_from
        approval.escalated_to = escalate_to
        approval.escalated_at = utcnow()
        approval.escalation_reason = reason
        self._notify(
            db, approval, "escalation", escalate_to, "approver",
            f"Approval Escalated: {approval.title}",
            f"An approval has been escalated to you: {approval.title}"
        )
        db.commit()
        db.refresh(approval)
        service_logger.info("Approval escalated", extra={
            "approval_id": approval.id,
            "escalated_to": escalate_to,
            "actor_id": actor.id
        })
        return approval

    def auto_approve(self, db: Session, approval_id: int, reason: str, actor: Optional[User] = None) -> Approval:
        approval = self.get_approval(db, approval_id)
        actor_id = actor.id if actor else None
        self._change_status(db, approval, ApprovalStatus.AUTO_APPROVED, "auto_approved", actor_id, reason)
        now = utcnow()
        approval.auto_approved_at = now
        approval.auto_approval_reason = reason
        approval.decided_at = now
        approval.decided_by = actor_id
        self._notify(
            db, approval, "decision", approval.requested_by, "requester",
            f"Auto-Approved: {approval.title}",
            f'Your approval request "{approval.title}" has been automatically approved',
            {"decision": ApprovalStatus.AUTO_APPROVED.value}
        )
        db.commit()
        db.refresh(approval)
        return approval

    def expire_overdue(self, db: Session, now: Optional[datetime] = None) -> int:
        now = as_naive_utc(now) or utcnow()
        overdue = db.query(Approval).filter(
            Approval.status.in_([ApprovalStatus.PENDING, ApprovalStatus.IN_REVIEW]),
            Approval.expires_at.isnot(None),
            Approval.expires_at < now
        ).all()
        for approval in overdue:
            self._change_status(db, approval, ApprovalStatus.EXPIRED, "expired", None,
                                "Approval expired before a decision was made")
        db.commit()
        if overdue:
            service_logger.info("Expired overdue approvals", extra={"expired": len(overdue)})
        return len(overdue)

    # History

    def history(self, db: Session, approval_id: int) -> List[ApprovalHistory]:
        self.get_approval(db, approval_id)
        return db.query(ApprovalHistory) \
            .filter(ApprovalHistory.approval_id == approval_id) \
            .order_by(ApprovalHistory.action_at.desc(), ApprovalHistory.id.desc()) \
            .all()

    def entity_history(self, db: Session, entity_type: str, entity_id: int) -> List[ApprovalHistory]:
        return db.query(ApprovalHistory) \
            .join(Approval, Approval.id == ApprovalHistory.approval_id) \
            .filter(Approval.entity_type == entity_type, Approval.entity_id == entity_id) \
            .order_by(ApprovalHistory.action_at.desc(), ApprovalHistory.id.desc()) \
            .all()

    # Attachments

    async def upload_attachment(
            self,
            db: Session,
            approval_id: int,
            upload_file: UploadFile,
            uploaded_by: Optional[int] = None,
            attachment_type: str = "supporting_document",
            description: Optional[str] = None
    ) -> ApprovalAttachment:
        approval = self.get_approval(db, approval_id)
        file_name = unique_filename(upload_file.filename)
        relative_path = storage_service.relative_path(
            Path(settings.ATTACHMENTS_PATH) / str(approval.id) / file_name
        )
        stored = await storage_service.save_upload(upload_file, relative_path)

        try:
            attachment = ApprovalAttachment(
                approval_id=approval.id,
                file_name=file_name,
                original_file_name=upload_file.filename or file_name,
                file_path=relative_path,
                file_size=stored.file_size,
                mime_type=stored.mime_type,
                attachment_type=attachment_type,
                description=description,
                uploaded_by=uploaded_by
            )
            db.add(attachment)
            self._record(db, approval, "attachment_added", uploaded_by,
                         details={"file_name": attachment.original_file_name})
            db.commit()
            db.refresh(attachment)
        except Exception:
            storage_service.delete_file(relative_path)
            raise
        return attachment

    def list_attachments(self, db: Session, approval_id: int) -> List[ApprovalAttachment]:
        self.get_approval(db, approval_id)
        return db.query(ApprovalAttachment) \
            .filter(ApprovalAttachment.approval_id == approval_id) \
            .order_by(ApprovalAttachment.uploaded_at.desc(), ApprovalAttachment.id.desc()) \
            .all()

    def attachment_file(self, db: Session, attachment_id: int) -> Tuple[ApprovalAttachment, Path]:
        attachment = db.query(ApprovalAttachment).filter(ApprovalAttachment.id == attachment_id).first()
        if not attachment:
            raise NotFoundError("Attachment", attachment_id)
        path = storage_service.resolve(attachment.file_path)
        if not path.is_file():
            raise NotFoundError("File for attachment", attachment_id)
        return attachment, path

    # Delegation rules

    def create_delegation(self, db: Session, delegator: User, data: DelegationCreate) -> ApprovalDelegation:
        start_date = as_naive_utc(data.start_date)
        end_date = as_naive_utc(data.end_date)
        if end_date <= start_date:
            raise ValidationFailedError("end_date must be after start_date")
        if data.delegate_id == delegator.id:
            raise ValidationFailedError("Cannot delegate approvals to yourself")
        self._get_user(db, data.delegate_id)

        delegation = ApprovalDelegation(
            delegator_id=delegator.id,
            delegate_id=data.delegate_id,
            start_date=start_date,
            end_date=end_date,
            reason=data.reason,
            include_new_approvals=data.include_new_approvals,
            status=DelegationStatus.ACTIVE
        )
        db.add(delegation)
        db.commit()
        db.refresh(delegation)
        service_logger.info("Created delegation rule", extra={
            "delegation_id": delegation.id,
            "delegator_id": delegator.id,
            "delegate_id": data.delegate_id
        })
        return delegation

    def active_delegations(self, db: Session, user_id: int, at: Optional[datetime] = None) -> List[ApprovalDelegation]:
        """Active rules the user takes part in, as delegator or delegate"""
        at = as_naive_utc(at) or utcnow()
        return db.query(ApprovalDelegation).filter(
            or_(ApprovalDelegation.delegator_id == user_id, ApprovalDelegation.delegate_id == user_id),
            ApprovalDelegation.status == DelegationStatus.ACTIVE,
            ApprovalDelegation.start_date <= at,
            ApprovalDelegation.end_date >= at
        ).order_by(ApprovalDelegation.start_date).all()

    def deactivate_delegation(self, db: Session, delegation_id: int, actor: User) -> ApprovalDelegation:
        delegation = db.query(ApprovalDelegation).filter(ApprovalDelegation.id == delegation_id).first()
        if not delegation:
            raise NotFoundError("Delegation", delegation_id)
        if delegation.delegator_id != actor.id and not user_has_permission(actor, "workflow", "configure"):
            raise PermissionDeniedError("Only the delegator can deactivate a delegation rule")
        delegation.status = DelegationStatus.INACTIVE
        db.commit()
        db.refresh(delegation)
        return delegation

    # Notifications

    def notifications(self, db: Session, user_id: int, unread_only: bool = False) -> List[ApprovalNotification]:
        query = db.query(ApprovalNotification).filter(ApprovalNotification.recipient_id == user_id)
        if unread_only:
            query = query.filter(ApprovalNotification.read_at.is_(None))
        return query.order_by(ApprovalNotification.sent_at.desc(), ApprovalNotification.id.desc()).all()

    def mark_notification_read(self, db: Session, notification_id: int, user: User) -> ApprovalNotification:
        notification = db.query(ApprovalNotification) \
            .filter(ApprovalNotification.id == notification_id) \
            .first()
        if not notification:
            raise NotFoundError("Notification", notification_id)
        if notification.recipient_id != user.id:
            raise PermissionDeniedError("Notification belongs to another user")
        if notification.read_at is None:
            notification.read_at = utcnow()
            notification.delivery_status = "read"
            db.commit()
            db.refresh(notification)
        return notification

    # Statistics

    def stats(self, db: Session, now: Optional[datetime] = None) -> ApprovalStats:
        now = as_naive_utc(now) or utcnow()
        rows = db.query(Approval.status, Approval.approval_type, Approval.priority, Approval.due_date).all()

        by_status = {status.value: 0 for status in ApprovalStatus}
        by_type: Dict[str, int] = {}
        by_priority: Dict[str, int] = {}
        overdue = 0
        for status, approval_type, priority, due_date in rows:
            by_status[status.value] += 1
            by_type[approval_type.value] = by_type.get(approval_type.value, 0) + 1
            by_priority[priority.value] = by_priority.get(priority.value, 0) + 1
            if due_date and due_date < now and status in (ApprovalStatus.PENDING, ApprovalStatus.IN_REVIEW):
                overdue += 1

        return ApprovalStats(
            total=len(rows),
            by_status=by_status,
            overdue=overdue,
            by_type=by_type,
            by_priority=by_priority
        )


approval_service = ApprovalService()
