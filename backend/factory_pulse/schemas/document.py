# backend/factory_pulse/schemas/document.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base import BaseSchema, TimestampMixin


class DocumentBase(BaseSchema):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None


class DocumentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None


class Document(DocumentBase, TimestampMixin):
    id: int
    project_id: int
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    version: int
    uploaded_by: Optional[int] = None


class DocumentVersion(BaseSchema):
    id: int
    document_id: int
    version_number: int
    file_name: str
    file_path: str
    file_size: int
    mime_type: Optional[str] = None
    title: str
    description: Optional[str] = None
    change_summary: Optional[str] = None
    uploaded_by: Optional[int] = None
    uploaded_at: datetime
    is_current: bool
    details: Dict[str, Any] = {}
    uploader_name: Optional[str] = None
    uploader_email: Optional[str] = None


class DocumentVersionHistory(BaseModel):
    document: Document
    versions: List[DocumentVersion]
    current_version: Optional[DocumentVersion] = None
    total_versions: int


class VersionDifferences(BaseModel):
    file_size_change: int
    file_size_change_percent: int
    title_changed: bool
    description_changed: bool
    metadata_changes: List[str]


class VersionComparison(BaseModel):
    version_a: DocumentVersion
    version_b: DocumentVersion
    differences: VersionDifferences
    can_compare_content: bool


class BulkHistoryRequest(BaseModel):
    document_ids: List[int] = Field(..., min_length=1)


class CleanupResult(BaseModel):
    document_id: int
    removed: int
