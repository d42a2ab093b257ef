# backend/factory_pulse/services/documents.py
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import ConflictError, NotFoundError, UnsupportedMediaTypeError, ValidationFailedError
from ..models import Document, DocumentVersion, Project
from ..schemas.document import DocumentUpdate
from ..utils.files import safe_stem, versioned_filename
from ..utils.logging import service_logger
from ..utils.numbers import round_half_up
from .cleanup import cleanup_service
from .storage import storage_service

COMPARABLE_MIME_TYPES = {
    "text/plain",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

PREVIEWABLE_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
}

_VERSION_SUFFIX = re.compile(r"_v\d+$")


@dataclass
class VersionHistory:
    document: Document
    versions: List[DocumentVersion]
    current_version: Optional[DocumentVersion]
    total_versions: int


@dataclass
class VersionComparison:
    version_a: DocumentVersion
    version_b: DocumentVersion
    differences: Dict[str, Any] = field(default_factory=dict)
    can_compare_content: bool = False


def can_compare_content(mime_type_a: Optional[str], mime_type_b: Optional[str]) -> bool:
    return mime_type_a == mime_type_b and mime_type_a in COMPARABLE_MIME_TYPES


def can_preview(mime_type: Optional[str]) -> bool:
    return mime_type in PREVIEWABLE_MIME_TYPES


def _render(value) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def metadata_changes(details_a: Optional[dict], details_b: Optional[dict]) -> List[str]:
    """One `key: old -> new` line per key whose value differs"""
    details_a = details_a or {}
    details_b = details_b or {}
    changes = []
    for key in sorted(set(details_a) | set(details_b)):
        old, new = details_a.get(key), details_b.get(key)
        if _render(old) != _render(new):
            changes.append(f"{key}: {_render(old)} -> {_render(new)}")
    return changes


def image_dimensions(path: Path) -> Optional[Dict[str, int]]:
    try:
        with Image.open(path) as img:
            return {"width": img.width, "height": img.height}
    except (UnidentifiedImageError, OSError) as e:
        service_logger.warning("Could not read image dimensions", extra={
            "path": str(path),
            "error": str(e)
        })
        return None


class DocumentService:
    """Project documents and their linear version history.

    Every document that has versions has exactly one current version, and the
    document row mirrors that version's file fields and number.
    """

    def get_document(self, db: Session, document_id: int) -> Document:
        document = db.query(Document).filter(Document.id == document_id).first()
        if not document:
            raise NotFoundError("Document", document_id)
        return document

    def list_project_documents(self, db: Session, project_id: int) -> List[Document]:
        return db.query(Document) \
            .filter(Document.project_id == project_id) \
            .order_by(Document.created_at.desc(), Document.id.desc()) \
            .all()

    async def create_document(
            self,
            db: Session,
            project_id: int,
            upload_file: UploadFile,
            title: Optional[str] = None,
            description: Optional[str] = None,
            category: Optional[str] = None,
            uploaded_by: Optional[int] = None,
            details: Optional[Dict[str, Any]] = None,
            commit: bool = True
    ) -> Document:
        """Create a document from an upload; the upload becomes version 1"""
        if not db.query(Project.id).filter(Project.id == project_id).first():
            raise NotFoundError("Project", project_id)

        document = Document(
            project_id=project_id,
            title=title or Path(upload_file.filename or "document").stem,
            description=description,
            category=category,
            file_name=upload_file.filename,
            version=0,
            uploaded_by=uploaded_by
        )
        db.add(document)
        db.flush()

        await self._add_version(
            db, document, upload_file,
            change_summary="Initial version",
            details=details,
            uploaded_by=uploaded_by,
            commit=commit
        )
        service_logger.info("Created document", extra={
            "document_id": document.id,
            "project_id": project_id
        })
        return document

    def update_document(self, db: Session, document_id: int, data: DocumentUpdate) -> Document:
        document = self.get_document(db, document_id)
        for name, value in data.model_dump(exclude_unset=True).items():
            setattr(document, name, value)
        db.commit()
        db.refresh(document)
        return document

    def delete_document(self, db: Session, document_id: int) -> None:
        document = self.get_document(db, document_id)
        cleanup_service.delete_document_artifacts(document, db)
        db.delete(document)
        db.commit()
        service_logger.info("Deleted document", extra={"document_id": document_id})

    async def create_version(
            self,
            db: Session,
            document_id: int,
            upload_file: UploadFile,
            change_summary: Optional[str] = None,
            details: Optional[Dict[str, Any]] = None,
            uploaded_by: Optional[int] = None
    ) -> DocumentVersion:
        document = self.get_document(db, document_id)
        return await self._add_version(db, document, upload_file, change_summary, details, uploaded_by)

    def _version_path(self, document: Document, upload_file: UploadFile, version_number: int) -> str:
        # Stem comes from the document's file name, minus any earlier _vN suffix
        base_name = document.file_name or upload_file.filename or "document"
        stem = _VERSION_SUFFIX.sub("", safe_stem(base_name))
        extension = Path(upload_file.filename or base_name).suffix
        versions_dir = Path(settings.DOCUMENTS_PATH) / str(document.project_id) / "versions"
        relative_path = storage_service.relative_path(
            versions_dir / versioned_filename(f"{stem}{extension}", version_number)
        )

        # Another document of the project may own the same name, and so may
        # a file left behind under the per-document name
        candidate = f"{stem}_d{document.id}"
        attempt = 1
        while storage_service.exists(relative_path):
            relative_path = storage_service.relative_path(
                versions_dir / versioned_filename(f"{candidate}{extension}", version_number)
            )
            candidate = f"{stem}_d{document.id}_{attempt}"
            attempt += 1
        return relative_path

    async def _add_version(
            self,
            db: Session,
            document: Document,
            upload_file: UploadFile,
            change_summary: Optional[str] = None,
            details: Optional[Dict[str, Any]] = None,
            uploaded_by: Optional[int] = None,
            commit: bool = True
    ) -> DocumentVersion:
        latest = db.query(func.max(DocumentVersion.version_number)) \
            .filter(DocumentVersion.document_id == document.id) \
            .scalar()
        version_number = (latest or 0) + 1
        relative_path = self._version_path(document, upload_file, version_number)

        stored = await storage_service.save_upload(upload_file, relative_path)
        details = dict(details or {})
        if stored.mime_type.startswith("image/"):
            dimensions = image_dimensions(storage_service.resolve(relative_path))
            if dimensions:
                for key, value in dimensions.items():
                    details.setdefault(key, value)

        try:
            db.query(DocumentVersion) \
                .filter(DocumentVersion.document_id == document.id) \
                .update({"is_current": False}, synchronize_session="fetch")

            version = DocumentVersion(
                document_id=document.id,
                version_number=version_number,
                file_name=Path(relative_path).name,
                file_path=relative_path,
                file_size=stored.file_size,
                mime_type=stored.mime_type,
                title=document.title,
                description=document.description,
                change_summary=change_summary,
                uploaded_by=uploaded_by,
                is_current=True,
                details=details
            )
            db.add(version)
            self._mirror(document, version)
            db.flush()
            if commit:
                db.commit()
                db.refresh(version)
        except Exception as e:
            service_logger.error("Error creating document version, removing stored file", extra={
                "document_id": document.id,
                "version_number": version_number,
                "error": str(e)
            })
            storage_service.delete_file(relative_path)
            raise

        service_logger.info("Created document version", extra={
            "document_id": document.id,
            "version_number": version_number,
            "file_size": stored.file_size
        })
        return version

    @staticmethod
    def _mirror(document: Document, version: DocumentVersion) -> None:
        document.file_name = version.file_name
        document.file_path = version.file_path
        document.file_size = version.file_size
        document.mime_type = version.mime_type
        document.version = version.version_number

    def _versions(self, db: Session, document_id: int) -> List[DocumentVersion]:
        return db.query(DocumentVersion) \
            .filter(DocumentVersion.document_id == document_id) \
            .order_by(DocumentVersion.version_number.desc()) \
            .all()

    def get_history(self, db: Session, document_id: int) -> VersionHistory:
        document = self.get_document(db, document_id)
        versions = self._versions(db, document_id)
        current = next((v for v in versions if v.is_current), None)
        return VersionHistory(
            document=document,
            versions=versions,
            current_version=current,
            total_versions=len(versions)
        )

    def bulk_history(self, db: Session, document_ids: List[int]) -> Dict[int, VersionHistory]:
        """Histories keyed by document id; unknown ids are left out"""
        existing = [
            document_id for (document_id,) in
            db.query(Document.id).filter(Document.id.in_(document_ids)).all()
        ]
        return {document_id: self.get_history(db, document_id) for document_id in sorted(existing)}

    def get_version(self, db: Session, version_id: int) -> DocumentVersion:
        version = db.query(DocumentVersion).filter(DocumentVersion.id == version_id).first()
        if not version:
            raise NotFoundError("Document version", version_id)
        return version

    def set_current_version(self, db: Session, version_id: int) -> DocumentVersion:
        version = self.get_version(db, version_id)
        self._make_current(db, version)
        db.commit()
        db.refresh(version)
        service_logger.info("Set current document version", extra={
            "document_id": version.document_id,
            "version_number": version.version_number
        })
        return version

    def _make_current(self, db: Session, version: DocumentVersion) -> None:
        for other in self._versions(db, version.document_id):
            other.is_current = other.id == version.id
        self._mirror(version.document, version)

    def delete_version(self, db: Session, version_id: int) -> None:
        version = self.get_version(db, version_id)
        remaining = [v for v in self._versions(db, version.document_id) if v.id != version.id]
        if not remaining:
            raise ConflictError("Cannot delete the only version of a document")

        log_extra = {
            "document_id": version.document_id,
            "version_number": version.version_number,
            "was_current": version.is_current
        }
        if version.is_current:
            # remaining is newest first
            self._make_current(db, remaining[0])

        # File removal failures are logged by the storage service and do not block
        storage_service.delete_file(version.file_path)
        db.delete(version)
        db.commit()
        service_logger.info("Deleted document version", extra=log_extra)

    def compare_versions(self, db: Session, version_a_id: int, version_b_id: int) -> VersionComparison:
        version_a = self.get_version(db, version_a_id)
        version_b = self.get_version(db, version_b_id)
        if version_a.document_id != version_b.document_id:
            raise ValidationFailedError("Versions belong to different documents")

        size_change = (version_b.file_size or 0) - (version_a.file_size or 0)
        size_change_percent = round_half_up(size_change / version_a.file_size * 100) if version_a.file_size else 0

        return VersionComparison(
            version_a=version_a,
            version_b=version_b,
            differences={
                "file_size_change": size_change,
                "file_size_change_percent": size_change_percent,
                "title_changed": version_a.title != version_b.title,
                "description_changed": (version_a.description or "") != (version_b.description or ""),
                "metadata_changes": metadata_changes(version_a.details, version_b.details),
            },
            can_compare_content=can_compare_content(version_a.mime_type, version_b.mime_type)
        )

    def version_file(self, db: Session, version_id: int) -> Tuple[DocumentVersion, Path]:
        version = self.get_version(db, version_id)
        path = storage_service.resolve(version.file_path)
        if not path.is_file():
            raise NotFoundError("File for document version", version_id)
        return version, path

    def preview_file(self, db: Session, version_id: int) -> Tuple[DocumentVersion, Path]:
        version = self.get_version(db, version_id)
        if not can_preview(version.mime_type):
            raise UnsupportedMediaTypeError(f"Preview is not available for {version.mime_type}")
        return self.version_file(db, version_id)

    def cleanup_old_versions(self, db: Session, document_id: int, keep: Optional[int] = None) -> int:
        """Delete all but the newest `keep` versions; the current version always stays"""
        self.get_document(db, document_id)
        keep = settings.VERSION_RETENTION if keep is None else keep
        if keep < 0:
            raise ValidationFailedError("keep must not be negative")

        versions = self._versions(db, document_id)
        to_delete = [v for v in versions[keep:] if not v.is_current]
        if not to_delete:
            return 0

        storage_service.delete_files(v.file_path for v in to_delete)
        for version in to_delete:
            db.delete(version)
        db.commit()

        service_logger.info("Cleaned up old document versions", extra={
            "document_id": document_id,
            "removed": len(to_delete),
            "keep": keep
        })
        return len(to_delete)


document_service = DocumentService()
