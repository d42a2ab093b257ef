# backend/factory_pulse/schemas/__init__.py
from .base import PaginatedResponse, SuccessResponse
from .user import User, UserCreate, UserUpdate, RoleAssignment, RoleAuditEntry, UserPermissions
from .customer import Customer, CustomerCreate, CustomerUpdate
from .project import Project, ProjectCreate, ProjectUpdate, ProjectDetail, StageTransition, StageHistoryEntry
from .supplier import Supplier, SupplierCreate, SupplierUpdate, SupplierSearch
from .rfq import RFQ, RFQCreate, RFQDetail, Quote, QuoteSubmission, QuoteReadiness
from .document import Document, DocumentUpdate, DocumentVersion, DocumentVersionHistory, VersionComparison
from .approval import Approval, ApprovalCreate, ApprovalUpdate, ApprovalDecision, ApprovalFilter
from .intake import IntakeForm, IntakeResult, ValidationReport

__all__ = [
    "PaginatedResponse", "SuccessResponse",
    "User", "UserCreate", "UserUpdate", "RoleAssignment", "RoleAuditEntry", "UserPermissions",
    "Customer", "CustomerCreate", "CustomerUpdate",
    "Project", "ProjectCreate", "ProjectUpdate", "ProjectDetail", "StageTransition", "StageHistoryEntry",
    "Supplier", "SupplierCreate", "SupplierUpdate", "SupplierSearch",
    "RFQ", "RFQCreate", "RFQDetail", "Quote", "QuoteSubmission", "QuoteReadiness",
    "Document", "DocumentUpdate", "DocumentVersion", "DocumentVersionHistory", "VersionComparison",
    "Approval", "ApprovalCreate", "ApprovalUpdate", "ApprovalDecision", "ApprovalFilter",
    "IntakeForm", "IntakeResult", "ValidationReport",
]
