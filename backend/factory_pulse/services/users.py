# backend/factory_pulse/services/users.py
from typing import List, Optional

from sqlalchemy.orm import Session

from ..errors import ConflictError, NotFoundError, PermissionDeniedError
from ..models import RoleAuditLog, User, UserRole, UserStatus
from ..schemas.user import UserCreate, UserUpdate
from ..utils.logging import service_logger
from .permissions import user_has_permission


class UserService:
    """User accounts and administrative role management"""

    def list_users(
            self,
            db: Session,
            role: Optional[UserRole] = None,
            status: Optional[UserStatus] = None
    ) -> List[User]:
        query = db.query(User)
        if role is not None:
            query = query.filter(User.role == role)
        if status is not None:
            query = query.filter(User.status == status)
        return query.order_by(User.display_name).all()

    def get_user(self, db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User", user_id)
        return user

    def create_user(self, db: Session, data: UserCreate) -> User:
        email = str(data.email).lower()
        if db.query(User).filter(User.email == email).first():
            raise ConflictError(f"A user with email {email} already exists")

        user = User(
            email=email,
            display_name=data.display_name,
            department=data.department,
            role=data.role,
            status=UserStatus.ACTIVE
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        service_logger.info("Created user", extra={"user_id": user.id, "role": user.role.value})
        return user

    def update_user(self, db: Session, user_id: int, data: UserUpdate) -> User:
        user = self.get_user(db, user_id)
        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("email"):
            email = str(update_data["email"]).lower()
            clash = db.query(User).filter(User.email == email, User.id != user_id).first()
            if clash:
                raise ConflictError(f"A user with email {email} already exists")
            update_data["email"] = email

        for field, value in update_data.items():
            setattr(user, field, value)
        db.commit()
        db.refresh(user)
        return user

    def _active_admin_count(self, db: Session) -> int:
        return db.query(User).filter(
            User.role == UserRole.ADMIN,
            User.status == UserStatus.ACTIVE
        ).count()

    def _is_last_active_admin(self, db: Session, user: User) -> bool:
        return (
            user.role == UserRole.ADMIN
            and user.status == UserStatus.ACTIVE
            and self._active_admin_count(db) <= 1
        )

    def assign_role(
            self,
            db: Session,
            user_id: int,
            new_role: UserRole,
            actor: User,
            reason: Optional[str] = None
    ) -> User:
        """Change a user's role and record the change in the role audit log"""
        if not user_has_permission(actor, "users", "manage_roles"):
            raise PermissionDeniedError("Only administrators can assign roles")

        user = self.get_user(db, user_id)
        if user.role == new_role:
            return user

        if new_role != UserRole.ADMIN and self._is_last_active_admin(db, user):
            raise ConflictError("Cannot remove the admin role from the last active administrator")

        old_role = user.role
        user.role = new_role
        db.add(RoleAuditLog(
            user_id=user.id,
            actor_id=actor.id,
            old_role=old_role,
            new_role=new_role,
            reason=reason
        ))
        db.commit()
        db.refresh(user)

        service_logger.info("Assigned role", extra={
            "user_id": user.id,
            "actor_id": actor.id,
            "old_role": old_role.value,
            "new_role": new_role.value
        })
        return user

    def change_status(self, db: Session, user_id: int, status: UserStatus, actor: User) -> User:
        if not user_has_permission(actor, "users", "update"):
            raise PermissionDeniedError("Not allowed to change user status")

        user = self.get_user(db, user_id)
        if status != UserStatus.ACTIVE and self._is_last_active_admin(db, user):
            raise ConflictError("Cannot deactivate the last active administrator")

        user.status = status
        db.commit()
        db.refresh(user)
        service_logger.info("Changed user status", extra={
            "user_id": user.id,
            "actor_id": actor.id,
            "status": status.value
        })
        return user

    def role_audit_log(self, db: Session, user_id: Optional[int] = None) -> List[RoleAuditLog]:
        query = db.query(RoleAuditLog)
        if user_id is not None:
            query = query.filter(RoleAuditLog.user_id == user_id)
        return query.order_by(RoleAuditLog.created_at.desc(), RoleAuditLog.id.desc()).all()


user_service = UserService()
