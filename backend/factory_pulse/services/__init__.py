# backend/factory_pulse/services/__init__.py
from .storage import storage_service
from .cleanup import cleanup_service
from .users import user_service
from .customers import customer_service
from .projects import project_service
from .documents import document_service
from .intake import intake_service
from .suppliers import supplier_service
from .rfqs import rfq_service
from .approvals import approval_service
from .reports import report_service

__all__ = [
    "storage_service", "cleanup_service", "user_service", "customer_service",
    "project_service", "document_service", "intake_service", "supplier_service",
    "rfq_service", "approval_service", "report_service",
]
