# backend/factory_pulse/schemas/intake.py
import enum
from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from .project import Project


class IntakeType(str, enum.Enum):
    RFQ = "rfq"
    PURCHASE_ORDER = "purchase_order"
    PROJECT_IDEA = "project_idea"
    DIRECT_REQUEST = "direct_request"


class IntakeSource(str, enum.Enum):
    PORTAL = "portal"
    EMAIL = "email"
    API = "api"
    PHONE = "phone"
    WALK_IN = "walk_in"


class IntakeDocumentType(str, enum.Enum):
    DRAWING = "drawing"
    SPECIFICATION = "specification"
    BOM = "bom"
    CAD = "cad"
    QUALITY_REQUIREMENTS = "quality_requirements"
    PURCHASE_ORDER = "purchase_order"
    OTHER = "other"


class IntakeDocument(BaseModel):
    """Describes an uploaded file before it is stored."""
    file_name: str
    document_type: IntakeDocumentType
    file_size: int = 0
    mime_type: Optional[str] = None


class IntakeForm(BaseModel):
    """Raw intake submission; validation is done by the intake service so that
    every problem is reported at once."""
    intake_type: IntakeType
    intake_source: IntakeSource = IntakeSource.PORTAL

    customer_name: str = ""
    company: str = ""
    email: str = ""
    phone: Optional[str] = None
    country: Optional[str] = None

    title: str = ""
    description: str = ""
    volumes: Optional[str] = None
    target_price: Optional[float] = None
    desired_delivery_date: Optional[date] = None
    project_reference: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = []

    documents: List[IntakeDocument] = []


class ValidationReport(BaseModel):
    is_valid: bool
    errors: List[str]
    warnings: List[str]


class IntakeResult(BaseModel):
    project: Project
    customer_id: int
    document_ids: List[int]
    warnings: List[str]


class IntakeTypeInfo(BaseModel):
    intake_type: IntakeType
    project_type: str
    default_priority: str
    requires_bom: bool
