# backend/factory_pulse/models/approval.py
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.dates import utcnow


class ApprovalType(str, enum.Enum):
    STAGE_TRANSITION = "stage_transition"
    DOCUMENT_APPROVAL = "document_approval"
    ENGINEERING_CHANGE = "engineering_change"
    SUPPLIER_QUALIFICATION = "supplier_qualification"
    PURCHASE_ORDER = "purchase_order"
    COST_APPROVAL = "cost_approval"
    QUALITY_REVIEW = "quality_review"
    PRODUCTION_RELEASE = "production_release"
    SHIPPING_APPROVAL = "shipping_approval"
    CONTRACT_APPROVAL = "contract_approval"
    BUDGET_APPROVAL = "budget_approval"
    SAFETY_REVIEW = "safety_review"
    CUSTOM = "custom"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELEGATED = "delegated"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    AUTO_APPROVED = "auto_approved"
    ESCALATED = "escalated"


class ApprovalPriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"
    CRITICAL = "critical"


class DelegationStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class Approval(Base):
    __tablename__ = "approvals"

    id = Column(Integer, primary_key=True, index=True)
    approval_type = Column(Enum(ApprovalType), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    reference_id = Column(String(100), nullable=True)

    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, nullable=False, index=True)

    step_number = Column(Integer, nullable=False, default=1)
    total_steps = Column(Integer, nullable=False, default=1)

    requested_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    requested_at = Column(DateTime, default=utcnow)
    request_reason = Column(Text, nullable=True)
    request_details = Column(JSON, nullable=False, default=dict)

    current_approver_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    current_approver_role = Column(String(50), nullable=True)
    current_approver_department = Column(String(100), nullable=True)

    status = Column(Enum(ApprovalStatus), nullable=False, default=ApprovalStatus.PENDING, index=True)
    priority = Column(Enum(ApprovalPriority), nullable=False, default=ApprovalPriority.NORMAL)
    due_date = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    decision_comments = Column(Text, nullable=True)
    decision_reason = Column(Text, nullable=True)
    decision_details = Column(JSON, nullable=True)
    decided_at = Column(DateTime, nullable=True)
    decided_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    escalated_from = Column(Integer, ForeignKey("users.id"), nullable=True)
    escalated_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    escalated_at = Column(DateTime, nullable=True)
    escalation_reason = Column(Text, nullable=True)

    delegated_from = Column(Integer, ForeignKey("users.id"), nullable=True)
    delegated_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    delegated_at = Column(DateTime, nullable=True)
    delegation_reason = Column(Text, nullable=True)
    delegation_end_date = Column(DateTime, nullable=True)

    auto_approved_at = Column(DateTime, nullable=True)
    auto_approval_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    history = relationship(
        "ApprovalHistory",
        back_populates="approval",
        cascade="all, delete-orphan",
        order_by="ApprovalHistory.id.desc()"
    )
    notifications = relationship("ApprovalNotification", back_populates="approval", cascade="all, delete-orphan")
    attachments = relationship("ApprovalAttachment", back_populates="approval", cascade="all, delete-orphan")


class ApprovalHistory(Base):
    __tablename__ = "approval_history"

    id = Column(Integer, primary_key=True, index=True)
    approval_id = Column(Integer, ForeignKey("approvals.id", ondelete="CASCADE"), nullable=False, index=True)
    action_type = Column(String(50), nullable=False)
    action_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    action_at = Column(DateTime, default=utcnow)
    old_status = Column(Enum(ApprovalStatus), nullable=True)
    new_status = Column(Enum(ApprovalStatus), nullable=True)
    comments = Column(Text, nullable=True)
    details = Column(JSON, nullable=False, default=dict)

    approval = relationship("Approval", back_populates="history")


class ApprovalNotification(Base):
    __tablename__ = "approval_notifications"

    id = Column(Integer, primary_key=True, index=True)
    approval_id = Column(Integer, ForeignKey("approvals.id", ondelete="CASCADE"), nullable=False, index=True)
    notification_type = Column(String(50), nullable=False)
    recipient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    recipient_type = Column(String(50), nullable=False)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    delivery_status = Column(String(20), nullable=False, default="sent")
    delivery_method = Column(String(20), nullable=False, default="in_app")
    sent_at = Column(DateTime, default=utcnow)
    read_at = Column(DateTime, nullable=True)

    approval = relationship("Approval", back_populates="notifications")


class ApprovalDelegation(Base):
    __tablename__ = "approval_delegations"

    id = Column(Integer, primary_key=True, index=True)
    delegator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    delegate_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    reason = Column(Text, nullable=False)
    include_new_approvals = Column(Boolean, nullable=False, default=True)
    status = Column(Enum(DelegationStatus), nullable=False, default=DelegationStatus.ACTIVE)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ApprovalAttachment(Base):
    __tablename__ = "approval_attachments"

    id = Column(Integer, primary_key=True, index=True)
    approval_id = Column(Integer, ForeignKey("approvals.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    original_file_name = Column(String(255), nullable=False)
    file_path = Column(String(512), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    mime_type = Column(String(255), nullable=True)
    attachment_type = Column(String(50), nullable=False, default="supporting_document")
    description = Column(Text, nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime, default=utcnow)

    approval = relationship("Approval", back_populates="attachments")
