# backend/factory_pulse/schemas/approval.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .base import BaseSchema
from ..models.approval import ApprovalPriority, ApprovalStatus, ApprovalType, DelegationStatus


class ApprovalCreate(BaseModel):
    approval_type: ApprovalType
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    reference_id: Optional[str] = None
    entity_type: str = Field(..., min_length=1, max_length=50)
    entity_id: int
    step_number: int = Field(1, ge=1)
    total_steps: int = Field(1, ge=1)
    request_reason: Optional[str] = None
    request_details: Dict[str, Any] = {}
    current_approver_id: Optional[int] = None
    current_approver_role: Optional[str] = None
    current_approver_department: Optional[str] = None
    priority: ApprovalPriority = ApprovalPriority.NORMAL
    due_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class ApprovalUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    request_reason: Optional[str] = None
    request_details: Optional[Dict[str, Any]] = None
    current_approver_id: Optional[int] = None
    current_approver_role: Optional[str] = None
    priority: Optional[ApprovalPriority] = None
    due_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class ApprovalDecision(BaseModel):
    decision: ApprovalStatus
    comments: Optional[str] = None
    reason: Optional[str] = None
    details: Dict[str, Any] = {}

    @model_validator(mode="after")
    def check_decision(self):
        if self.decision not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
            raise ValueError("decision must be 'approved' or 'rejected'")
        return self


class DelegationRequest(BaseModel):
    delegate_id: int
    reason: str = Field(..., min_length=1)
    end_date: Optional[datetime] = None


class EscalationRequest(BaseModel):
    escalate_to: int
    reason: str = Field(..., min_length=1)


class AutoApprovalRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class ApprovalFilter(BaseModel):
    approval_type: Optional[List[ApprovalType]] = None
    status: Optional[List[ApprovalStatus]] = None
    priority: Optional[List[ApprovalPriority]] = None
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    requested_by: Optional[int] = None
    current_approver_id: Optional[int] = None
    due_after: Optional[datetime] = None
    due_before: Optional[datetime] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    overdue_only: bool = False


class Approval(BaseSchema):
    id: int
    approval_type: ApprovalType
    title: str
    description: Optional[str] = None
    reference_id: Optional[str] = None
    entity_type: str
    entity_id: int
    step_number: int
    total_steps: int
    requested_by: int
    requested_at: datetime
    request_reason: Optional[str] = None
    request_details: Dict[str, Any] = {}
    current_approver_id: Optional[int] = None
    current_approver_role: Optional[str] = None
    current_approver_department: Optional[str] = None
    status: ApprovalStatus
    priority: ApprovalPriority
    due_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    decision_comments: Optional[str] = None
    decision_reason: Optional[str] = None
    decision_details: Optional[Dict[str, Any]] = None
    decided_at: Optional[datetime] = None
    decided_by: Optional[int] = None
    escalated_from: Optional[int] = None
    escalated_to: Optional[int] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None
    delegated_from: Optional[int] = None
    delegated_to: Optional[int] = None
    delegated_at: Optional[datetime] = None
    delegation_reason: Optional[str] = None
    delegation_end_date: Optional[datetime] = None
    auto_approved_at: Optional[datetime] = None
    auto_approval_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ApprovalList(BaseModel):
    items: List[Approval]
    total: int
    page: int
    limit: int


class ApprovalHistoryEntry(BaseSchema):
    id: int
    approval_id: int
    action_type: str
    action_by: Optional[int] = None
    action_at: datetime
    old_status: Optional[ApprovalStatus] = None
    new_status: Optional[ApprovalStatus] = None
    comments: Optional[str] = None
    details: Dict[str, Any] = {}


class Notification(BaseSchema):
    id: int
    approval_id: int
    notification_type: str
    recipient_id: int
    recipient_type: str
    subject: str
    message: str
    details: Dict[str, Any] = {}
    delivery_status: str
    delivery_method: str
    sent_at: datetime
    read_at: Optional[datetime] = None


class DelegationCreate(BaseModel):
    delegate_id: int
    start_date: datetime
    end_date: datetime
    reason: str = Field(..., min_length=1)
    include_new_approvals: bool = True

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class Delegation(BaseSchema):
    id: int
    delegator_id: int
    delegate_id: int
    start_date: datetime
    end_date: datetime
    reason: str
    include_new_approvals: bool
    status: DelegationStatus
    created_at: datetime


class Attachment(BaseSchema):
    id: int
    approval_id: int
    file_name: str
    original_file_name: str
    file_size: int
    mime_type: Optional[str] = None
    attachment_type: str
    description: Optional[str] = None
    uploaded_by: Optional[int] = None
    uploaded_at: datetime


class ApprovalStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    overdue: int
    by_type: Dict[str, int]
    by_priority: Dict[str, int]
