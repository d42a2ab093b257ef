# backend/factory_pulse/api/__init__.py
from .users import router as users_router
from .customers import router as customers_router
from .projects import router as projects_router
from .intake import router as intake_router
from .documents import router as documents_router
from .suppliers import router as suppliers_router
from .rfqs import router as rfqs_router
from .approvals import router as approvals_router

__all__ = [
    "users_router", "customers_router", "projects_router", "intake_router",
    "documents_router", "suppliers_router", "rfqs_router", "approvals_router",
]
