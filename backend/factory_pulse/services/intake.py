# backend/factory_pulse/services/intake.py
import re
from datetime import date, timedelta
from typing import List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import ValidationFailedError
from ..models import Project
from ..models.project import ProjectPriority
from ..schemas.intake import (
    IntakeDocument,
    IntakeDocumentType,
    IntakeForm,
    IntakeType,
    IntakeTypeInfo,
    ValidationReport,
)
from ..schemas.project import ProjectCreate
from ..utils.dates import utcnow
from ..utils.files import guess_mime_type
from ..utils.logging import service_logger
from .customers import customer_service
from .documents import document_service
from .projects import project_service
from .storage import storage_service

INTAKE_MAPPINGS = {
    IntakeType.RFQ: ("manufacturing", ProjectPriority.HIGH),
    IntakeType.PURCHASE_ORDER: ("manufacturing", ProjectPriority.URGENT),
    IntakeType.PROJECT_IDEA: ("system_build", ProjectPriority.LOW),
    IntakeType.DIRECT_REQUEST: ("fabrication", ProjectPriority.MEDIUM),
}

BOM_REQUIRED_TYPES = (IntakeType.RFQ, IntakeType.PURCHASE_ORDER)
DRAWING_TYPES = (IntakeDocumentType.DRAWING, IntakeDocumentType.SPECIFICATION)
MIN_DELIVERY_LEAD_DAYS = 7
MIN_TITLE_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 50

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def intake_types() -> List[IntakeTypeInfo]:
    return [
        IntakeTypeInfo(
            intake_type=intake_type,
            project_type=project_type,
            default_priority=priority.value,
            requires_bom=intake_type in BOM_REQUIRED_TYPES
        )
        for intake_type, (project_type, priority) in INTAKE_MAPPINGS.items()
    ]


def upload_size(upload_file: UploadFile) -> int:
    if upload_file.size is not None:
        return upload_file.size
    upload_file.file.seek(0, 2)
    size = upload_file.file.tell()
    upload_file.file.seek(0)
    return size


class IntakeService:

    def validate_customer(self, form: IntakeForm) -> Tuple[List[str], List[str]]:
        errors, warnings = [], []
        if not form.customer_name.strip():
            errors.append("Customer name is required")
        if not form.company.strip():
            errors.append("Company name is required")
        if not form.email.strip():
            errors.append("Email address is required")
        elif not _EMAIL_PATTERN.match(form.email.strip()):
            errors.append("Please enter a valid email address")

        if not (form.phone or "").strip():
            warnings.append("Phone number is recommended for better communication")
        if not (form.country or "").strip():
            warnings.append("Country information helps with logistics planning")
        return errors, warnings

    def validate_project(self, form: IntakeForm, today: Optional[date] = None) -> Tuple[List[str], List[str]]:
        errors, warnings = [], []
        today = today or utcnow().date()

        title = form.title.strip()
        if not title:
            errors.append("Project title is required")
        elif len(title) < MIN_TITLE_LENGTH:
            errors.append(f"Project title must be at least {MIN_TITLE_LENGTH} characters")

        description = form.description.strip()
        if not description:
            errors.append("Project description is required")
        elif len(description) < MIN_DESCRIPTION_LENGTH:
            errors.append(f"Project description must be at least {MIN_DESCRIPTION_LENGTH} characters")

        if form.intake_type == IntakeType.RFQ:
            if not (form.volumes or "").strip():
                errors.append("Volume information is required for quotes")
            if not form.target_price:
                warnings.append("Target price per unit helps with quote preparation")
        elif form.intake_type == IntakeType.PURCHASE_ORDER:
            if not (form.project_reference or "").strip():
                errors.append("Purchase order reference is required")
        elif form.intake_type == IntakeType.PROJECT_IDEA:
            if not form.desired_delivery_date:
                warnings.append("Timeline information helps with feasibility assessment")

        if form.desired_delivery_date and \
                form.desired_delivery_date < today + timedelta(days=MIN_DELIVERY_LEAD_DAYS):
            errors.append(f"Delivery date must be at least {MIN_DELIVERY_LEAD_DAYS} days from now")
        return errors, warnings

    def validate_documents(
            self,
            documents: List[IntakeDocument],
            intake_type: IntakeType
    ) -> Tuple[List[str], List[str]]:
        errors, warnings = [], []
        if len(documents) < 2:
            errors.append("At least two documents are required (Drawing and BOM)")

        types = [doc.document_type for doc in documents]
        if not any(t in DRAWING_TYPES for t in types):
            errors.append("A drawing or specification document is required")
        if intake_type in BOM_REQUIRED_TYPES and IntakeDocumentType.BOM not in types:
            errors.append("A Bill of Materials (BOM) is required for quotes and purchase orders")

        max_mb = settings.MAX_UPLOAD_SIZE // (1024 * 1024)
        for index, doc in enumerate(documents, start=1):
            if doc.file_size > settings.MAX_UPLOAD_SIZE:
                errors.append(f"Document {index} exceeds maximum file size ({max_mb}MB)")

        if len(set(types)) != len(types):
            warnings.append("Consider using different document types for better organization")
        return errors, warnings

    def validate(self, form: IntakeForm, today: Optional[date] = None) -> ValidationReport:
        """Run every check and report all problems at once"""
        errors, warnings = [], []
        for check_errors, check_warnings in (
                self.validate_customer(form),
                self.validate_project(form, today),
                self.validate_documents(form.documents, form.intake_type),
        ):
            errors.extend(check_errors)
            warnings.extend(check_warnings)
        return ValidationReport(is_valid=not errors, errors=errors, warnings=warnings)

    async def submit(
            self,
            db: Session,
            form: IntakeForm,
            uploads: List[Tuple[UploadFile, IntakeDocumentType]],
            created_by: Optional[int] = None
    ) -> Tuple[Project, int, List[int], List[str]]:
        """Validate an intake, then create customer, project and documents in one transaction"""
        form = form.model_copy(update={"documents": [
            IntakeDocument(
                file_name=upload.filename or "upload",
                document_type=document_type,
                file_size=upload_size(upload),
                mime_type=guess_mime_type(upload.filename, upload.content_type)
            )
            for upload, document_type in uploads
        ]})

        report = self.validate(form)
        if not report.is_valid:
            service_logger.warning("Intake validation failed", extra={
                "intake_type": form.intake_type.value,
                "errors": report.errors
            })
            raise ValidationFailedError("Intake validation failed", report.errors)

        project_type, priority = INTAKE_MAPPINGS[form.intake_type]
        tags = []
        for tag in [form.intake_type.value, project_type, *form.tags]:
            if tag and tag not in tags:
                tags.append(tag)

        stored_paths = []
        try:
            customer, created = customer_service.get_or_create(
                db,
                company_name=form.company,
                email=form.email,
                contact_name=form.customer_name,
                phone=form.phone,
                country=form.country
            )

            project = project_service.create_project(db, ProjectCreate(
                title=form.title.strip(),
                description=form.description.strip(),
                customer_id=customer.id,
                priority=priority,
                project_type=project_type,
                tags=tags,
                details={
                    "contact_name": form.customer_name,
                    "contact_email": form.email,
                    "contact_phone": form.phone,
                    "volumes": form.volumes,
                    "target_price_per_unit": form.target_price,
                    "desired_delivery_date": form.desired_delivery_date.isoformat()
                    if form.desired_delivery_date else None,
                    "project_reference": form.project_reference,
                },
                notes=form.notes,
                due_date=form.desired_delivery_date,
                intake_type=form.intake_type.value,
                intake_source=form.intake_source.value
            ), created_by=created_by, commit=False)

            document_ids = []
            for upload, document_type in uploads:
                document = await document_service.create_document(
                    db,
                    project_id=project.id,
                    upload_file=upload,
                    category=document_type.value,
                    uploaded_by=created_by,
                    commit=False
                )
                stored_paths.append(document.file_path)
                document_ids.append(document.id)

            db.commit()
            db.refresh(project)
        except Exception as e:
            service_logger.error("Error submitting intake", extra={
                "intake_type": form.intake_type.value,
                "error": str(e)
            })
            db.rollback()
            storage_service.delete_files(stored_paths)
            raise

        service_logger.info("Intake submitted", extra={
            "project_id": project.id,
            "project_number": project.project_number,
            "customer_id": customer.id,
            "customer_created": created,
            "document_count": len(document_ids)
        })
        return project, customer.id, document_ids, report.warnings


intake_service = IntakeService()
