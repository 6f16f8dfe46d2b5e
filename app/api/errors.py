# app/api/errors.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.domain.errors import (
    AccessDeniedError,
    ConflictError,
    DomainError,
    IntegrityViolationError,
    NotFoundError,
    StorageUnavailableError,
    ValidationFailedError,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)

_STATUS_CODES = (
    (ValidationFailedError, 400),
    (AccessDeniedError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (IntegrityViolationError, 500),
    (StorageUnavailableError, 503),
)


def status_for(exc: DomainError) -> int:
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 400


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
