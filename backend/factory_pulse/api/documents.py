# backend/factory_pulse/api/documents.py
import json
import time
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from .deps import get_current_user
from ..database import get_db
from ..errors import ServiceError, ValidationFailedError
from ..models import User
from ..schemas.base import SuccessResponse
from ..schemas.document import (
    BulkHistoryRequest,
    CleanupResult,
    Document as DocumentSchema,
    DocumentUpdate,
    DocumentVersion as DocumentVersionSchema,
    DocumentVersionHistory,
    VersionComparison,
    VersionDifferences,
)
from ..services.documents import VersionHistory, document_service
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/documents", tags=["documents"])


def _history_response(history: VersionHistory) -> DocumentVersionHistory:
    return DocumentVersionHistory(
        document=DocumentSchema.model_validate(history.document),
        versions=[DocumentVersionSchema.model_validate(v) for v in history.versions],
        current_version=DocumentVersionSchema.model_validate(history.current_version)
        if history.current_version else None,
        total_versions=history.total_versions
    )


def _parse_details(details: Optional[str]) -> dict:
    if not details:
        return {}
    try:
        parsed = json.loads(details)
    except json.JSONDecodeError as e:
        raise ValidationFailedError(f"details must be a JSON object: {e}")
    if not isinstance(parsed, dict):
        raise ValidationFailedError("details must be a JSON object")
    return parsed


@router.get("/project/{project_id}", response_model=List[DocumentSchema])
async def list_project_documents(project_id: int, db: Session = Depends(get_db)):
    api_logger.info("Listing documents for project", extra={
        "project_id": project_id,
        "operation": "list_project_documents"
    })
    start_time = time.time()
    documents = document_service.list_project_documents(db, project_id)
    api_logger.info("Successfully listed project documents", extra={
        "project_id": project_id,
        "document_count": len(documents),
        "execution_time_ms": round((time.time() - start_time) * 1000, 2)
    })
    return documents


@router.post("/project/{project_id}", response_model=DocumentSchema)
async def upload_document(
        project_id: int,
        file: UploadFile = File(...),
        title: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        category: Optional[str] = Form(None),
        details: Optional[str] = Form(None),
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    api_logger.info("Uploading document", extra={
        "project_id": project_id,
        "file_name": file.filename,
        "content_type": file.content_type
    })

    try:
        start_time = time.time()
        document = await document_service.create_document(
            db, project_id, file,
            title=title,
            description=description,
            category=category,
            uploaded_by=user.id if user else None,
            details=_parse_details(details)
        )
        api_logger.info("Successfully created document", extra={
            "document_id": document.id,
            "project_id": project_id,
            "execution_time_ms": round((time.time() - start_time) * 1000, 2)
        })
        return document
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error creating document", extra={
            "project_id": project_id,
            "file_name": file.filename,
            "error": str(e)
        })
        db.rollback()
        raise


@router.post("/versions/bulk-history", response_model=Dict[int, DocumentVersionHistory])
async def bulk_version_history(request: BulkHistoryRequest, db: Session = Depends(get_db)):
    api_logger.info("Retrieving bulk version history", extra={"document_ids": request.document_ids})
    histories = document_service.bulk_history(db, request.document_ids)
    return {document_id: _history_response(history) for document_id, history in histories.items()}


@router.get("/versions/compare", response_model=VersionComparison)
async def compare_versions(version_a: int, version_b: int, db: Session = Depends(get_db)):
    api_logger.info("Comparing document versions", extra={
        "version_a": version_a,
        "version_b": version_b
    })
    comparison = document_service.compare_versions(db, version_a, version_b)
    return VersionComparison(
        version_a=DocumentVersionSchema.model_validate(comparison.version_a),
        version_b=DocumentVersionSchema.model_validate(comparison.version_b),
        differences=VersionDifferences(**comparison.differences),
        can_compare_content=comparison.can_compare_content
    )


@router.get("/versions/{version_id}", response_model=DocumentVersionSchema)
async def get_version(version_id: int, db: Session = Depends(get_db)):
    return document_service.get_version(db, version_id)


@router.put("/versions/{version_id}/current", response_model=DocumentVersionSchema)
async def set_current_version(version_id: int, db: Session = Depends(get_db)):
    api_logger.info("Setting current document version", extra={"version_id": version_id})

    try:
        return document_service.set_current_version(db, version_id)
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error setting current version", extra={"version_id": version_id, "error": str(e)})
        db.rollback()
        raise


@router.delete("/versions/{version_id}", response_model=SuccessResponse)
async def delete_version(version_id: int, db: Session = Depends(get_db)):
    api_logger.info("Deleting document version", extra={"version_id": version_id})

    try:
        document_service.delete_version(db, version_id)
        return SuccessResponse()
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error deleting document version", extra={"version_id": version_id, "error": str(e)})
        db.rollback()
        raise


@router.get("/versions/{version_id}/download")
async def download_version(version_id: int, db: Session = Depends(get_db)):
    version, path = document_service.version_file(db, version_id)
    api_logger.info("Downloading document version", extra={
        "version_id": version_id,
        "file_name": version.file_name
    })
    return FileResponse(path, media_type=version.mime_type, filename=version.file_name)


@router.get("/versions/{version_id}/preview")
async def preview_version(version_id: int, db: Session = Depends(get_db)):
    version, path = document_service.preview_file(db, version_id)
    return FileResponse(
        path,
        media_type=version.mime_type,
        headers={"Content-Disposition": f'inline; filename="{version.file_name}"'}
    )


@router.get("/{document_id}", response_model=DocumentSchema)
async def get_document(document_id: int, db: Session = Depends(get_db)):
    api_logger.info("Retrieving document details", extra={"document_id": document_id})
    return document_service.get_document(db, document_id)


@router.put("/{document_id}", response_model=DocumentSchema)
async def update_document(document_id: int, document: DocumentUpdate, db: Session = Depends(get_db)):
    api_logger.info("Updating document", extra={
        "document_id": document_id,
        "update_fields": list(document.model_dump(exclude_unset=True).keys())
    })

    try:
        return document_service.update_document(db, document_id, document)
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error updating document", extra={"document_id": document_id, "error": str(e)})
        db.rollback()
        raise


@router.delete("/{document_id}", response_model=SuccessResponse)
async def delete_document(document_id: int, db: Session = Depends(get_db)):
    api_logger.info("Starting document deletion", extra={"document_id": document_id})

    try:
        document_service.delete_document(db, document_id)
        api_logger.info("Successfully deleted document", extra={"document_id": document_id})
        return SuccessResponse()
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error deleting document", extra={"document_id": document_id, "error": str(e)})
        db.rollback()
        raise


@router.get("/{document_id}/versions", response_model=DocumentVersionHistory)
async def get_version_history(document_id: int, db: Session = Depends(get_db)):
    api_logger.info("Retrieving version history", extra={"document_id": document_id})
    return _history_response(document_service.get_history(db, document_id))


@router.post("/{document_id}/versions", response_model=DocumentVersionSchema)
async def create_version(
        document_id: int,
        file: UploadFile = File(...),
        change_summary: Optional[str] = Form(None),
        details: Optional[str] = Form(None),
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    api_logger.info("Uploading new document version", extra={
        "document_id": document_id,
        "file_name": file.filename
    })

    try:
        version = await document_service.create_version(
            db, document_id, file,
            change_summary=change_summary,
            details=_parse_details(details),
            uploaded_by=user.id if user else None
        )
        api_logger.info("Successfully created document version", extra={
            "document_id": document_id,
            "version_number": version.version_number
        })
        return version
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error creating document version", extra={
            "document_id": document_id,
            "error": str(e)
        })
        db.rollback()
        raise


@router.post("/{document_id}/versions/cleanup", response_model=CleanupResult)
async def cleanup_versions(document_id: int, keep: Optional[int] = None, db: Session = Depends(get_db)):
    api_logger.info("Cleaning up old versions", extra={"document_id": document_id, "keep": keep})
    removed = document_service.cleanup_old_versions(db, document_id, keep)
    return CleanupResult(document_id=document_id, removed=removed)
