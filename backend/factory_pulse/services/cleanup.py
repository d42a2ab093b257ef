# backend/factory_pulse/services/cleanup.py
from sqlalchemy.orm import Session

from ..models import Approval, ApprovalAttachment, Document, DocumentVersion, Project
from ..utils.logging import service_logger
from .storage import storage_service


class CleanupService:
    """Service to handle cascading deletion of stored files"""

    @staticmethod
    def delete_document_artifacts(document: Document, db: Session) -> int:
        """Delete the files of every version of a document"""
        paths = [
            path for (path,) in db.query(DocumentVersion.file_path)
            .filter(DocumentVersion.document_id == document.id)
            .all()
        ]
        paths.append(document.file_path)
        deleted = storage_service.delete_files(paths)
        service_logger.info(f"Deleted all artifacts for document {document.id}", extra={
            "document_id": document.id,
            "files_deleted": deleted
        })
        return deleted

    @staticmethod
    def delete_project_artifacts(project: Project, db: Session) -> int:
        """Delete all documents' files for a project"""
        deleted = 0
        documents = db.query(Document).filter(Document.project_id == project.id).all()
        for document in documents:
            deleted += CleanupService.delete_document_artifacts(document, db)

        service_logger.info(f"Deleted all artifacts for project {project.id}", extra={
            "project_id": project.id,
            "files_deleted": deleted
        })
        return deleted

    @staticmethod
    def delete_approval_artifacts(approval: Approval, db: Session) -> int:
        paths = [
            path for (path,) in db.query(ApprovalAttachment.file_path)
            .filter(ApprovalAttachment.approval_id == approval.id)
            .all()
        ]
        deleted = storage_service.delete_files(paths)
        service_logger.info(f"Deleted attachments for approval {approval.id}", extra={
            "approval_id": approval.id,
            "files_deleted": deleted
        })
        return deleted


cleanup_service = CleanupService()
