# backend/factory_pulse/api/deps.py
from typing import Optional, Tuple

from fastapi import Depends, Header, Query, Response
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..errors import AuthenticationRequiredError, PermissionDeniedError
from ..models import User, UserStatus
from ..services.permissions import user_has_permission
from ..utils.logging import api_logger


def get_current_user(
        x_user_id: Optional[str] = Header(None),
        db: Session = Depends(get_db)
) -> Optional[User]:
    """User named by the X-User-Id header, or None when the header is absent"""
    if x_user_id is None:
        return None
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise AuthenticationRequiredError("X-User-Id must be a numeric user id")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        api_logger.warning("Unknown user in X-User-Id header", extra={"user_id": user_id})
        raise AuthenticationRequiredError(f"Unknown user {user_id}")
    return user


def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    if user is None:
        raise AuthenticationRequiredError("Authentication required: send the X-User-Id header")
    if user.status != UserStatus.ACTIVE:
        raise PermissionDeniedError(f"User account is {user.status.value}")
    return user


def require_permission(resource: str, action: str):
    def dependency(user: User = Depends(require_user)) -> User:
        if not user_has_permission(user, resource, action):
            raise PermissionDeniedError(f"Missing permission {resource}:{action}")
        return user
    return dependency


def pagination(
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1)
) -> Tuple[int, int]:
    limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    return page, limit


def report_response(report) -> Response:
    return Response(
        content=report.content,
        media_type=report.media_type,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'}
    )
