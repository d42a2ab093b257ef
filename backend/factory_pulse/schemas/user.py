# backend/factory_pulse/schemas/user.py
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr

from .base import BaseSchema, TimestampMixin
from ..models.user import UserRole, UserStatus


class UserBase(BaseSchema):
    email: EmailStr
    display_name: str
    department: Optional[str] = None


class UserCreate(UserBase):
    role: UserRole = UserRole.SALES


class UserUpdate(BaseModel):
    display_name: Optional[str] = None
    email: Optional[EmailStr] = None
    department: Optional[str] = None


class User(UserBase, TimestampMixin):
    id: int
    role: UserRole
    status: UserStatus


class RoleAssignment(BaseModel):
    role: UserRole
    reason: Optional[str] = None


class StatusChange(BaseModel):
    status: UserStatus


class RoleAuditEntry(BaseSchema):
    id: int
    user_id: int
    actor_id: Optional[int] = None
    old_role: Optional[UserRole] = None
    new_role: UserRole
    reason: Optional[str] = None
    created_at: datetime


class UserPermissions(BaseModel):
    user_id: int
    role: UserRole
    permissions: Dict[str, List[str]]
