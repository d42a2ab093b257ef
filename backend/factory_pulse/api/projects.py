# backend/factory_pulse/api/projects.py
import time
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .deps import get_current_user, pagination
from ..database import get_db
from ..errors import ServiceError
from ..models import ProjectPriority, ProjectStage, ProjectStatus, User
from ..schemas.base import PaginatedResponse, SuccessResponse
from ..schemas.project import (
    Project as ProjectSchema,
    ProjectCreate,
    ProjectDetail,
    ProjectUpdate,
    StageHistoryEntry,
    StageTransition,
)
from ..services.projects import STAGE_DISPLAY_NAMES, project_service
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("", response_model=PaginatedResponse[ProjectSchema])
async def list_projects(
        status: Optional[ProjectStatus] = None,
        stage: Optional[ProjectStage] = None,
        priority: Optional[ProjectPriority] = None,
        customer_id: Optional[int] = None,
        search: Optional[str] = None,
        paging: Tuple[int, int] = Depends(pagination),
        db: Session = Depends(get_db)
):
    """List projects, newest first"""
    page, limit = paging
    api_logger.info("Starting projects list operation", extra={
        "endpoint": "/api/projects",
        "method": "GET",
        "page": page
    })

    try:
        items, total = project_service.list_projects(
            db, status=status, stage=stage, priority=priority,
            customer_id=customer_id, search=search, page=page, limit=limit
        )
        api_logger.info(f"Found {total} projects", extra={"returned": len(items)})
        return PaginatedResponse[ProjectSchema](
            items=[ProjectSchema.model_validate(p) for p in items],
            total=total,
            page=page,
            limit=limit
        )
    except Exception as e:
        api_logger.error("Failed to list projects", extra={"error": str(e)})
        raise


@router.get("/stages")
async def list_stages():
    """Pipeline stages in order with their display names"""
    return [{"stage": stage.value, "name": name} for stage, name in STAGE_DISPLAY_NAMES.items()]


@router.post("", response_model=ProjectSchema)
async def create_project(
        project: ProjectCreate,
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    """Create a new project"""
    api_logger.info("Creating new project", extra={"project_title": project.title})

    try:
        start_time = time.time()
        db_project = project_service.create_project(db, project, created_by=user.id if user else None)

        execution_time = time.time() - start_time
        api_logger.info("Successfully created project", extra={
            "project_id": db_project.id,
            "project_number": db_project.project_number,
            "execution_time_ms": round(execution_time * 1000, 2)
        })
        return db_project
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Failed to create project", extra={"error": str(e)})
        db.rollback()
        raise


@router.get("/{project_id}", response_model=ProjectDetail)
async def get_project(project_id: int, db: Session = Depends(get_db)):
    """Get project details including days in stage and document count"""
    api_logger.info("Retrieving project details", extra={"project_id": project_id})
    project = project_service.get_project(db, project_id)
    return project_service.to_detail(db, project)


@router.put("/{project_id}", response_model=ProjectSchema)
async def update_project(project_id: int, project: ProjectUpdate, db: Session = Depends(get_db)):
    """Update a project"""
    api_logger.info("Updating project", extra={
        "project_id": project_id,
        "update_fields": list(project.model_dump(exclude_unset=True).keys())
    })

    try:
        return project_service.update_project(db, project_id, project)
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Failed to update project", extra={"project_id": project_id, "error": str(e)})
        db.rollback()
        raise


@router.delete("/{project_id}", response_model=SuccessResponse)
async def delete_project(project_id: int, db: Session = Depends(get_db)):
    """Delete a project with its documents, RFQs and stored files"""
    api_logger.info("Deleting project", extra={"project_id": project_id})

    try:
        project_service.delete_project(db, project_id)
        api_logger.info("Successfully deleted project", extra={"project_id": project_id})
        return SuccessResponse()
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Failed to delete project", extra={"project_id": project_id, "error": str(e)})
        db.rollback()
        raise


@router.post("/{project_id}/stage", response_model=ProjectSchema)
async def transition_stage(
        project_id: int,
        transition: StageTransition,
        db: Session = Depends(get_db),
        user: Optional[User] = Depends(get_current_user)
):
    """Move a project to another pipeline stage"""
    api_logger.info("Changing project stage", extra={
        "project_id": project_id,
        "to_stage": transition.stage.value
    })

    try:
        return project_service.transition_stage(
            db, project_id, transition.stage,
            actor=user,
            reason=transition.reason
        )
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Failed to change project stage", extra={"project_id": project_id, "error": str(e)})
        db.rollback()
        raise


@router.get("/{project_id}/stage-history", response_model=List[StageHistoryEntry])
async def get_stage_history(project_id: int, db: Session = Depends(get_db)):
    return project_service.stage_history(db, project_id)
