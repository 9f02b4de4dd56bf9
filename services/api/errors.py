"""
Error envelope and exception handlers.

Every error response has the shape:

    {"code": "InvalidInput" | "InternalError" | "ValidationError",
     "message": str,
     "data": [{"field": str, "issue": str}] | null}

Internal errors never expose detail to the client; they are logged with
context instead.
"""

from enum import Enum
from typing import List, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from fluidwatch.errors import InternalError, StorageError, ValidationFailedError
from fluidwatch.models.common import FailedValidation

logger = structlog.get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "We made a mistake. Sorry"
VALIDATION_ERROR_MESSAGE = "Request data is invalid"
INVALID_INPUT_MESSAGE = "Invalid JSON for this endpoint"


class ErrorCode(str, Enum):
    """Machine readable error codes."""

    INVALID_INPUT = "InvalidInput"
    INTERNAL_ERROR = "InternalError"
    VALIDATION_ERROR = "ValidationError"


class ErrorResponse(BaseModel):
    """Response model for all errors."""

    code: ErrorCode
    message: str
    data: Optional[List[FailedValidation]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "code": "ValidationError",
                "message": "Request data is invalid",
                "data": [{"field": "request", "issue": "TooFrequent"}],
            }
        }


def _respond(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


async def validation_failed_handler(request: Request, exc: ValidationFailedError) -> JSONResponse:
    logger.info(
        "request_validation_failed",
        path=request.url.path,
        failures=[f.model_dump(mode="json") for f in exc.failures],
        reason=str(exc),
    )
    return _respond(
        400,
        ErrorResponse(
            code=ErrorCode.VALIDATION_ERROR,
            message=VALIDATION_ERROR_MESSAGE,
            data=exc.failures,
        ),
    )


async def invalid_input_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(
        "request_invalid_input",
        path=request.url.path,
        errors=len(exc.errors()),
    )
    return _respond(
        422,
        ErrorResponse(code=ErrorCode.INVALID_INPUT, message=INVALID_INPUT_MESSAGE),
    )


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "request_internal_error",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
        cause=str(exc.__cause__) if exc.__cause__ else None,
    )
    return _respond(
        500,
        ErrorResponse(code=ErrorCode.INTERNAL_ERROR, message=INTERNAL_ERROR_MESSAGE),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Attach the error envelope handlers to an application.

    Args:
        app: FastAPI application.
    """
    app.add_exception_handler(ValidationFailedError, validation_failed_handler)
    app.add_exception_handler(RequestValidationError, invalid_input_handler)
    app.add_exception_handler(InternalError, internal_error_handler)
    app.add_exception_handler(StorageError, internal_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)
