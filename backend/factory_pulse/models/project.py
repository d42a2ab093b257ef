# backend/factory_pulse/models/project.py
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Date, Float, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.dates import utcnow


class ProjectStatus(str, enum.Enum):
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ProjectStage(str, enum.Enum):
    INQUIRY_RECEIVED = "inquiry_received"
    TECHNICAL_REVIEW = "technical_review"
    SUPPLIER_RFQ_SENT = "supplier_rfq_sent"
    QUOTED = "quoted"
    ORDER_CONFIRMED = "order_confirmed"
    PROCUREMENT_PLANNING = "procurement_planning"
    IN_PRODUCTION = "in_production"
    SHIPPED_CLOSED = "shipped_closed"


class ProjectPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    project_number = Column(String(20), nullable=False, unique=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    status = Column(Enum(ProjectStatus), nullable=False, default=ProjectStatus.ACTIVE)
    stage = Column(Enum(ProjectStage), nullable=False, default=ProjectStage.INQUIRY_RECEIVED)
    priority = Column(Enum(ProjectPriority), nullable=False, default=ProjectPriority.MEDIUM)
    project_type = Column(String(50), nullable=True)
    intake_type = Column(String(50), nullable=True)
    intake_source = Column(String(50), nullable=True)
    estimated_value = Column(Float, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    details = Column(JSON, nullable=False, default=dict)
    notes = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)
    stage_entered_at = Column(DateTime, default=utcnow)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="projects")
    documents = relationship("Document", back_populates="project", cascade="all, delete-orphan")
    stage_history = relationship(
        "ProjectStageHistory",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectStageHistory.entered_at"
    )
    rfqs = relationship("SupplierRFQ", back_populates="project", cascade="all, delete-orphan")


class ProjectStageHistory(Base):
    __tablename__ = "project_stage_history"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    from_stage = Column(Enum(ProjectStage), nullable=True)
    to_stage = Column(Enum(ProjectStage), nullable=False)
    entered_at = Column(DateTime, nullable=False, default=utcnow)
    exited_at = Column(DateTime, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reason = Column(Text, nullable=True)

    project = relationship("Project", back_populates="stage_history")
