# backend/factory_pulse/errors.py
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .utils.logging import api_logger


class ServiceError(Exception):
    """Base class for errors raised by the service layer"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def detail(self):
        return self.message


class NotFoundError(ServiceError):
    status_code = 404

    def __init__(self, entity: str, entity_id=None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ValidationFailedError(ServiceError):
    status_code = 422

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]

    @property
    def detail(self):
        return {"message": self.message, "errors": self.errors}


class InvalidTransitionError(ServiceError):
    status_code = 409

    def __init__(self, entity: str, current: str, requested: str):
        super().__init__(f"Cannot move {entity} from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class ConflictError(ServiceError):
    status_code = 409


class PermissionDeniedError(ServiceError):
    status_code = 403


class AuthenticationRequiredError(ServiceError):
    status_code = 401


class UnsupportedMediaTypeError(ServiceError):
    status_code = 415


async def service_error_handler(request: Request, exc: ServiceError):
    api_logger.warning("Service error", extra={
        "path": request.url.path,
        "method": request.method,
        "error_type": type(exc).__name__,
        "error": exc.message
    })
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
