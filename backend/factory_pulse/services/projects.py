# backend/factory_pulse/services/projects.py
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..errors import ConflictError, InvalidTransitionError, NotFoundError, PermissionDeniedError
from ..models import Customer, Document, Project, ProjectStage, ProjectStageHistory, ProjectStatus, User
from ..models.project import ProjectPriority
from ..schemas.project import ProjectCreate, ProjectDetail, ProjectUpdate
from ..utils.dates import utcnow
from ..utils.logging import service_logger
from .cleanup import cleanup_service
from .permissions import user_has_permission

STAGE_DISPLAY_NAMES = {
    ProjectStage.INQUIRY_RECEIVED: "New Inquiry",
    ProjectStage.TECHNICAL_REVIEW: "Under Review",
    ProjectStage.SUPPLIER_RFQ_SENT: "Supplier RFQ",
    ProjectStage.QUOTED: "Quotation",
    ProjectStage.ORDER_CONFIRMED: "Order Confirmed",
    ProjectStage.PROCUREMENT_PLANNING: "Procurement Planning",
    ProjectStage.IN_PRODUCTION: "Production",
    ProjectStage.SHIPPED_CLOSED: "Completed",
}

# Pipeline order, used to decide whether a stage is "earlier" than another
STAGE_ORDER = list(ProjectStage)

CLOSED_STATUSES = (ProjectStatus.CANCELLED, ProjectStatus.COMPLETED)


def stage_index(stage: ProjectStage) -> int:
    return STAGE_ORDER.index(ProjectStage(stage))


def days_in_stage(project: Project, now: Optional[datetime] = None) -> int:
    if not project.stage_entered_at:
        return 0
    now = now or utcnow()
    return max(0, (now - project.stage_entered_at).days)


class ProjectService:

    def generate_project_number(self, db: Session, day: Optional[date] = None) -> str:
        """P-YYYYMMDD followed by the day's two-digit sequence number"""
        day = day or utcnow().date()
        prefix = f"P-{day.strftime('%Y%m%d')}"
        sequence = db.query(Project).filter(Project.project_number.like(f"{prefix}%")).count() + 1

        # Deleted projects leave gaps, so skip numbers that are still taken
        while True:
            number = f"{prefix}{sequence:02d}"
            if not db.query(Project.id).filter(Project.project_number == number).first():
                return number
            sequence += 1

    def get_project(self, db: Session, project_id: int) -> Project:
        project = db.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise NotFoundError("Project", project_id)
        return project

    def list_projects(
            self,
            db: Session,
            status: Optional[ProjectStatus] = None,
            stage: Optional[ProjectStage] = None,
            priority: Optional[ProjectPriority] = None,
            customer_id: Optional[int] = None,
            search: Optional[str] = None,
            page: int = 1,
            limit: int = 20
    ) -> Tuple[List[Project], int]:
        query = db.query(Project)
        if status is not None:
            query = query.filter(Project.status == status)
        if stage is not None:
            query = query.filter(Project.stage == stage)
        if priority is not None:
            query = query.filter(Project.priority == priority)
        if customer_id is not None:
            query = query.filter(Project.customer_id == customer_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Project.title.ilike(pattern),
                Project.project_number.ilike(pattern),
                Project.description.ilike(pattern)
            ))

        total = query.count()
        items = query.order_by(Project.created_at.desc(), Project.id.desc()) \
            .offset((page - 1) * limit) \
            .limit(limit) \
            .all()
        return items, total

    def create_project(
            self,
            db: Session,
            data: ProjectCreate,
            created_by: Optional[int] = None,
            commit: bool = True
    ) -> Project:
        if data.customer_id is not None and not db.query(Customer.id).filter(Customer.id == data.customer_id).first():
            raise NotFoundError("Customer", data.customer_id)

        now = utcnow()
        project = Project(
            **data.model_dump(),
            project_number=self.generate_project_number(db, now.date()),
            status=ProjectStatus.ACTIVE,
            stage=ProjectStage.INQUIRY_RECEIVED,
            stage_entered_at=now,
            created_by=created_by
        )
        db.add(project)
        db.flush()
        db.add(ProjectStageHistory(
            project_id=project.id,
            from_stage=None,
            to_stage=ProjectStage.INQUIRY_RECEIVED,
            entered_at=now,
            changed_by=created_by,
            reason="Project created"
        ))
        if commit:
            db.commit()
            db.refresh(project)

        service_logger.info("Created project", extra={
            "project_id": project.id,
            "project_number": project.project_number
        })
        return project

    def update_project(self, db: Session, project_id: int, data: ProjectUpdate) -> Project:
        project = self.get_project(db, project_id)
        update_data = data.model_dump(exclude_unset=True)
        customer_id = update_data.get("customer_id")
        if customer_id is not None and not db.query(Customer.id).filter(Customer.id == customer_id).first():
            raise NotFoundError("Customer", customer_id)

        for field, value in update_data.items():
            setattr(project, field, value)
        db.commit()
        db.refresh(project)
        return project

    def delete_project(self, db: Session, project_id: int) -> None:
        project = self.get_project(db, project_id)
        cleanup_service.delete_project_artifacts(project, db)
        db.delete(project)
        db.commit()
        service_logger.info("Deleted project", extra={"project_id": project_id})

    def transition_stage(
            self,
            db: Session,
            project_id: int,
            new_stage: ProjectStage,
            changed_by: Optional[int] = None,
            reason: Optional[str] = None,
            commit: bool = True,
            actor: Optional[User] = None,
            allow_skip: bool = False
    ) -> Project:
        """Move a project forward in the pipeline, closing the open history entry.

        Projects never move back. Jumping over stages needs `allow_skip` or an
        actor holding `workflow:bypass`.
        """
        project = self.get_project(db, project_id)
        new_stage = ProjectStage(new_stage)
        if changed_by is None and actor is not None:
            changed_by = actor.id

        if project.status in CLOSED_STATUSES:
            raise ConflictError(f"Project {project.project_number} is {project.status.value}; its stage cannot change")
        if stage_index(new_stage) <= stage_index(project.stage):
            raise InvalidTransitionError("project", project.stage.value, new_stage.value)
        if stage_index(new_stage) > stage_index(project.stage) + 1 and not allow_skip \
                and not user_has_permission(actor, "workflow", "bypass"):
            raise PermissionDeniedError(
                f"Skipping from {STAGE_DISPLAY_NAMES[project.stage]} to {STAGE_DISPLAY_NAMES[new_stage]} "
                f"requires the workflow:bypass permission"
            )

        now = utcnow()
        open_entry = db.query(ProjectStageHistory) \
            .filter(ProjectStageHistory.project_id == project.id, ProjectStageHistory.exited_at.is_(None)) \
            .order_by(ProjectStageHistory.entered_at.desc(), ProjectStageHistory.id.desc()) \
            .first()
        if open_entry:
            open_entry.exited_at = now
            open_entry.duration_minutes = int((now - open_entry.entered_at).total_seconds() // 60)

        old_stage = project.stage
        db.add(ProjectStageHistory(
            project_id=project.id,
            from_stage=old_stage,
            to_stage=new_stage,
            entered_at=now,
            changed_by=changed_by,
            reason=reason
        ))
        project.stage = new_stage
        project.stage_entered_at = now

        if commit:
            db.commit()
            db.refresh(project)

        service_logger.info("Project stage changed", extra={
            "project_id": project.id,
            "from_stage": old_stage.value,
            "to_stage": new_stage.value,
            "changed_by": changed_by
        })
        return project

    def stage_history(self, db: Session, project_id: int) -> List[ProjectStageHistory]:
        self.get_project(db, project_id)
        return db.query(ProjectStageHistory) \
            .filter(ProjectStageHistory.project_id == project_id) \
            .order_by(ProjectStageHistory.entered_at, ProjectStageHistory.id) \
            .all()

    def to_detail(self, db: Session, project: Project) -> ProjectDetail:
        detail = ProjectDetail.model_validate({
            **{column.name: getattr(project, column.name) for column in Project.__table__.columns},
            "stage_name": STAGE_DISPLAY_NAMES[project.stage],
            "days_in_stage": days_in_stage(project),
            "document_count": db.query(Document).filter(Document.project_id == project.id).count(),
            "customer_name": project.customer.company_name if project.customer else None,
        })
        return detail


project_service = ProjectService()
