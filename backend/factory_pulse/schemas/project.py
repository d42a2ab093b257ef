# backend/factory_pulse/schemas/project.py
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base import BaseSchema, TimestampMixin
from ..models.project import ProjectPriority, ProjectStage, ProjectStatus


class ProjectBase(BaseSchema):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    customer_id: Optional[int] = None
    priority: ProjectPriority = ProjectPriority.MEDIUM
    project_type: Optional[str] = None
    estimated_value: Optional[float] = Field(None, ge=0)
    tags: List[str] = []
    details: Dict[str, Any] = {}
    notes: Optional[str] = None
    due_date: Optional[date] = None


class ProjectCreate(ProjectBase):
    intake_type: Optional[str] = None
    intake_source: Optional[str] = None


class ProjectUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    customer_id: Optional[int] = None
    status: Optional[ProjectStatus] = None
    priority: Optional[ProjectPriority] = None
    project_type: Optional[str] = None
    estimated_value: Optional[float] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    details: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    due_date: Optional[date] = None


class Project(ProjectBase, TimestampMixin):
    id: int
    project_number: str
    status: ProjectStatus
    stage: ProjectStage
    intake_type: Optional[str] = None
    intake_source: Optional[str] = None
    stage_entered_at: Optional[datetime] = None
    created_by: Optional[int] = None


class ProjectDetail(Project):
    stage_name: str
    days_in_stage: int
    document_count: int = 0
    customer_name: Optional[str] = None


class StageTransition(BaseModel):
    stage: ProjectStage
    reason: Optional[str] = None


class StageHistoryEntry(BaseSchema):
    id: int
    project_id: int
    from_stage: Optional[ProjectStage] = None
    to_stage: ProjectStage
    entered_at: datetime
    exited_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    changed_by: Optional[int] = None
    reason: Optional[str] = None
