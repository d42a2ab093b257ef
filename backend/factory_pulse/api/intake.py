# backend/factory_pulse/api/intake.py
import json
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from .deps import get_current_user
from ..database import get_db
from ..errors import ServiceError, ValidationFailedError
from ..models import User
from ..schemas.intake import (
    IntakeDocumentType,
    IntakeForm,
    IntakeResult,
    IntakeTypeInfo,
    ValidationReport,
)
from ..schemas.project import Project as ProjectSchema
from ..services.intake import intake_service, intake_types
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/intake", tags=["intake"])


def _parse_form(raw: str) -> IntakeForm:
    try:
        return IntakeForm.model_validate(json.loads(raw))
    except json.JSONDecodeError as e:
        raise ValidationFailedError(f"form must be valid JSON: {e}")
    except ValidationError as e:
        raise ValidationFailedError(
            "Invalid intake form",
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        )


def _parse_document_types(values: List[str], file_count: int) -> List[IntakeDocumentType]:
    if len(values) != file_count:
        raise ValidationFailedError(
            f"Got {file_count} files but {len(values)} document types"
        )
    try:
        return [IntakeDocumentType(v) for v in values]
    except ValueError as e:
        raise ValidationFailedError(str(e))


@router.get("/types", response_model=List[IntakeTypeInfo])
async def list_intake_types():
    """Intake types with the project type and priority they map to"""
    return intake_types()


@router.post("/validate", response_model=ValidationReport)
async def validate_intake(form: IntakeForm):
    """Check an intake form without creating anything"""
    api_logger.info("Validating intake", extra={
        "intake_type": form.intake_type.value,
        "document_count": len(form.documents)
    })
    return intake_service.validate(form)


@router.post("", response_model=IntakeResult)
async def submit_intake(
        form: str = Form(...),
        files: List[UploadFile] = File(default=[]),
        document_types: List[str] = Form(default=[]),
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    """Submit an intake: customer, project and documents are created together.

    ``form`` carries the intake fields as JSON; ``document_types`` holds one
    entry per uploaded file, in the same order.
    """
    intake_form = _parse_form(form)
    types = _parse_document_types(document_types, len(files))

    api_logger.info("Submitting intake", extra={
        "intake_type": intake_form.intake_type.value,
        "intake_source": intake_form.intake_source.value,
        "file_count": len(files)
    })

    try:
        start_time = time.time()
        project, customer_id, document_ids, warnings = await intake_service.submit(
            db, intake_form, list(zip(files, types)),
            created_by=user.id if user else None
        )
        api_logger.info("Successfully submitted intake", extra={
            "project_id": project.id,
            "project_number": project.project_number,
            "execution_time_ms": round((time.time() - start_time) * 1000, 2)
        })
        return IntakeResult(
            project=ProjectSchema.model_validate(project),
            customer_id=customer_id,
            document_ids=document_ids,
            warnings=warnings
        )
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error submitting intake", extra={
            "intake_type": intake_form.intake_type.value,
            "error": str(e)
        })
        raise
