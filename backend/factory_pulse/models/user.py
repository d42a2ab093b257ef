# backend/factory_pulse/models/user.py
import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.dates import utcnow


class UserRole(str, enum.Enum):
    SALES = "sales"
    PROCUREMENT = "procurement"
    ENGINEERING = "engineering"
    QA = "qa"
    PRODUCTION = "production"
    MANAGEMENT = "management"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    LOCKED = "locked"
    DORMANT = "dormant"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.SALES)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE)
    department = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    role_changes = relationship(
        "RoleAuditLog",
        back_populates="user",
        foreign_keys="RoleAuditLog.user_id",
        cascade="all, delete-orphan"
    )


class RoleAuditLog(Base):
    __tablename__ = "role_audit_log"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    old_role = Column(Enum(UserRole), nullable=True)
    new_role = Column(Enum(UserRole), nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="role_changes", foreign_keys=[user_id])
