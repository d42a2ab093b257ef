# backend/factory_pulse/api/users.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .deps import require_permission, require_user
from ..database import get_db
from ..errors import PermissionDeniedError, ServiceError
from ..models import User, UserRole, UserStatus
from ..schemas.user import (
    RoleAssignment,
    RoleAuditEntry,
    StatusChange,
    User as UserSchema,
    UserCreate,
    UserPermissions,
    UserUpdate,
)
from ..services.permissions import get_permissions, user_has_permission
from ..services.users import user_service
from ..utils.logging import api_logger

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=List[UserSchema])
async def list_users(
        role: Optional[UserRole] = None,
        status: Optional[UserStatus] = None,
        db: Session = Depends(get_db)
):
    api_logger.info("Listing users", extra={
        "role": role.value if role else None,
        "user_status": status.value if status else None
    })
    return user_service.list_users(db, role=role, status=status)


@router.get("/me", response_model=UserSchema)
async def get_me(user: User = Depends(require_user)):
    return user


@router.get("/me/permissions", response_model=UserPermissions)
async def get_my_permissions(user: User = Depends(require_user)):
    return UserPermissions(user_id=user.id, role=user.role, permissions=get_permissions(user.role))


@router.get("/audit/roles", response_model=List[RoleAuditEntry])
async def list_role_changes(
        user_id: Optional[int] = None,
        db: Session = Depends(get_db),
        actor: User = Depends(require_permission("audit", "read"))
):
    api_logger.info("Listing role audit log", extra={"user_id": user_id, "actor_id": actor.id})
    return user_service.role_audit_log(db, user_id=user_id)


@router.post("", response_model=UserSchema)
async def create_user(
        user: UserCreate,
        db: Session = Depends(get_db),
        actor: User = Depends(require_permission("users", "create"))
):
    api_logger.info("Creating user", extra={"email": user.email, "actor_id": actor.id})

    try:
        created = user_service.create_user(db, user)
        api_logger.info("Successfully created user", extra={"user_id": created.id})
        return created
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error creating user", extra={"email": user.email, "error": str(e)})
        db.rollback()
        raise


@router.get("/{user_id}", response_model=UserSchema)
async def get_user(user_id: int, db: Session = Depends(get_db)):
    return user_service.get_user(db, user_id)


@router.get("/{user_id}/permissions", response_model=UserPermissions)
async def get_user_permissions(user_id: int, db: Session = Depends(get_db)):
    user = user_service.get_user(db, user_id)
    return UserPermissions(user_id=user.id, role=user.role, permissions=get_permissions(user.role))


@router.put("/{user_id}", response_model=UserSchema)
async def update_user(
        user_id: int,
        user: UserUpdate,
        db: Session = Depends(get_db),
        actor: User = Depends(require_user)
):
    api_logger.info("Updating user", extra={
        "user_id": user_id,
        "update_fields": list(user.model_dump(exclude_unset=True).keys())
    })
    if actor.id != user_id and not user_has_permission(actor, "users", "update"):
        raise PermissionDeniedError("Not allowed to update other users")

    try:
        return user_service.update_user(db, user_id, user)
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error updating user", extra={"user_id": user_id, "error": str(e)})
        db.rollback()
        raise


@router.put("/{user_id}/role", response_model=UserSchema)
async def assign_role(
        user_id: int,
        assignment: RoleAssignment,
        db: Session = Depends(get_db),
        actor: User = Depends(require_user)
):
    api_logger.info("Assigning role", extra={
        "user_id": user_id,
        "new_role": assignment.role.value,
        "actor_id": actor.id
    })

    try:
        return user_service.assign_role(db, user_id, assignment.role, actor, assignment.reason)
    except (HTTPException, ServiceError):
        raise
    except Exception as e:
        api_logger.error("Error assigning role", extra={"user_id": user_id, "error": str(e)})
        db.rollback()
        raise


@router.put("/{user_id}/status", response_model=UserSchema)
async def change_status(
        user_id: int,
        change: StatusChange,
        db: Session = Depends(get_db),
        actor: User = Depends(require_user)
):
    api_logger.info("Changing user status", extra={
        "user_id": user_id,
        "new_status": change.status.value,
        "actor_id": actor.id
    })
    return user_service.change_status(db, user_id, change.status, actor)
