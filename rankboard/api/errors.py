"""
Error translation for the HTTP facade.

Domain and infrastructure exceptions carry an `ErrorKind`; this module maps
each kind onto an HTTP status and a JSON body of the form::

    {"error": "...", "kind": "NotFound", "error_code": "IDENTITY_NOT_FOUND"}
"""

from __future__ import annotations

from typing import Dict, Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rankboard.core.exceptions import (
    BackendFailureError,
    ErrorKind,
    RankboardInfrastructureException,
)
from rankboard.core.logging.logger import get_logger
from rankboard.modules.shared.exceptions import RankboardDomainException

logger = get_logger(__name__)

RankboardError = Union[RankboardDomainException, RankboardInfrastructureException]

STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.EMPTY_SCOPE: status.HTTP_404_NOT_FOUND,
    ErrorKind.BACKEND_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(exc: RankboardError, status_code: Optional[int] = None) -> JSONResponse:
    """JSON error body for `exc`; the status defaults to the kind's mapping."""
    code = status_code or STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(
        status_code=code,
        content={"error": exc.message, "kind": exc.kind.value, "error_code": exc.error_code},
    )


async def domain_error_handler(request: Request, exc: RankboardDomainException) -> JSONResponse:
    logger.info(
        "Request rejected",
        extra={
            "path": request.url.path,
            "kind": exc.kind.value,
            "error_code": exc.error_code,
        },
    )
    return error_response(exc)


async def backend_error_handler(request: Request, exc: BackendFailureError) -> JSONResponse:
    logger.error(
        "Backend failure while serving request",
        extra={
            "path": request.url.path,
            "error_code": exc.error_code,
            "details": exc.details,
        },
    )
    return error_response(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(
        "Request validation failed",
        extra={"path": request.url.path, "errors": exc.errors()},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid request",
            "kind": ErrorKind.INVALID_INPUT.value,
            "error_code": "INVALID_REQUEST",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RankboardDomainException, domain_error_handler)
    app.add_exception_handler(BackendFailureError, backend_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
