import logging
from typing import Any, Dict

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from src.campus.authz import AccessDecision, AccessDenied, AuthenticationRequired, EngineUnavailable

logger = logging.getLogger(__name__)


def denial_payload(decision: AccessDecision) -> Dict[str, Any]:
    """Uniform body for refused requests."""
    content: Dict[str, Any] = {"success": False, "message": decision.message}
    if decision.kind is not None:
        content["code"] = decision.kind.value
    content.update(decision.context)
    return content


async def authentication_exception_handler(request: Request, exc: AuthenticationRequired) -> JSONResponse:
    """Handle requests without a usable principal."""
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"success": False, "message": "Unauthorized"},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def access_denied_exception_handler(request: Request, exc: AccessDenied) -> JSONResponse:
    """Handle authorization denials."""
    logger.info(f"Access denied for {request.method} {request.url.path}: {exc.decision.kind.value}")
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content=denial_payload(exc.decision),
    )


async def engine_unavailable_exception_handler(request: Request, exc: EngineUnavailable) -> JSONResponse:
    """Handle authorization that could not be decided; never let the request through."""
    logger.error(f"Authorization unavailable for {request.method} {request.url.path}: {exc.reason}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=denial_payload(exc.decision),
    )


async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy database errors."""
    logger.error(f"Database error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error occurred"},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other exceptions."""
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred"},
    )
