"""
Translation of pipeline errors into HTTP responses.
"""
from fastapi import Request
from fastapi.responses import JSONResponse

from core.errors import (
    ConfirmationRequired,
    ConflictRace,
    GenerationFailure,
    NotFound,
    PipelineError,
    StaleReference,
    ValidationFailure,
)

ERROR_STATUS_CODES = {
    ValidationFailure: 422,
    StaleReference: 409,
    ConflictRace: 409,
    GenerationFailure: 503,
    NotFound: 404,
    ConfirmationRequired: 400,
}


def status_code_for(exc: PipelineError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code_for(exc),
        content={
            "detail": str(exc),
            "error": type(exc).__name__,
            "retryable": exc.retryable,
        },
    )
