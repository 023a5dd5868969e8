"""FastAPI exception handlers producing the ErrorResponse envelope."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from letterflow.errors.exceptions import AuthorizationError, DependencyFailureError, LetterflowError
from letterflow.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def error_response(request: Request, status_code: int, code: str, message: str, details=None) -> JSONResponse:
    """Wrap an error in the envelope, stamped with the request's trace id."""
    body = ErrorResponse(
        error=ErrorDetail(
            code=code,
            message=message,
            details=details,
            trace_id=getattr(request.state, "trace_id", "unknown"),
            timestamp=datetime.now(timezone.utc),
        ),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    """Register the letterflow and request-validation handlers on the app."""

    @app.exception_handler(LetterflowError)
    async def letterflow_error_handler(request: Request, exc: LetterflowError):
        if isinstance(exc, AuthorizationError):
            user = getattr(request.state, "user", {}) or {}
            logger.warning(
                "letter_access_denied",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "user_sub": user.get("sub", "anonymous"),
                    "reason": exc.message,
                },
            )
        elif isinstance(exc, DependencyFailureError):
            logger.error("Dependency failure on %s %s: %s", request.method, request.url.path, exc.message)
        return error_response(request, exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        # Pydantic error contexts may hold exception instances
        errors = jsonable_encoder(exc.errors(), custom_encoder={Exception: str})
        return error_response(request, 422, "VALIDATION_ERROR", "Request body or parameters are invalid", errors)
