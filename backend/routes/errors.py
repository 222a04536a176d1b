"""
Domain error -> HTTP status mapping shared by the API routers
"""
from fastapi import HTTPException

from app.procurement.domain.errors import (
    DomainError,
    InvalidStageTransition,
    NotFound,
    StaleStateConflict,
    Unauthorized,
    ValidationError,
)

ERROR_STATUS = {
    ValidationError: 400,
    Unauthorized: 403,
    NotFound: 404,
    InvalidStageTransition: 409,
    StaleStateConflict: 409,
}


def to_http_exception(exc: DomainError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.message)
    return HTTPException(status_code=400, detail=exc.message)
