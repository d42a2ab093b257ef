# backend/factory_pulse/models/__init__.py
from ..database import Base
from .user import User, UserRole, UserStatus, RoleAuditLog
from .customer import Customer
from .project import Project, ProjectStage, ProjectStatus, ProjectPriority, ProjectStageHistory
from .supplier import Supplier, SupplierQualification
from .rfq import SupplierRFQ, SupplierQuote, SupplierQuoteStatusHistory, RFQStatus, QuoteStatus
from .document import Document, DocumentVersion
from .approval import (
    Approval,
    ApprovalHistory,
    ApprovalNotification,
    ApprovalDelegation,
    ApprovalAttachment,
    ApprovalType,
    ApprovalStatus,
    ApprovalPriority,
    DelegationStatus,
)

__all__ = [
    "Base",
    "User", "UserRole", "UserStatus", "RoleAuditLog",
    "Customer",
    "Project", "ProjectStage", "ProjectStatus", "ProjectPriority", "ProjectStageHistory",
    "Supplier", "SupplierQualification",
    "SupplierRFQ", "SupplierQuote", "SupplierQuoteStatusHistory", "RFQStatus", "QuoteStatus",
    "Document", "DocumentVersion",
    "Approval", "ApprovalHistory", "ApprovalNotification", "ApprovalDelegation", "ApprovalAttachment",
    "ApprovalType", "ApprovalStatus", "ApprovalPriority", "DelegationStatus",
]
