"""
RFC 9457 Problem Details responses.

``DomainError`` subclasses carry their own title, status and problem type,
so the domain handler only copies them over. Request validation errors list
each offending field under ``errors``. Anything else becomes an opaque 500.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from domain.exceptions import DomainError

PROBLEM_BASE_URL = "https://api.user-deletion.example/problems/"

logger = structlog.get_logger(__name__)


class ProblemResponse(JSONResponse):
    media_type = "application/problem+json"


def problem(
    request: Request,
    status_code: int,
    title: str,
    detail: str,
    *,
    problem_type: str = "about:blank",
    **extensions: Any,
) -> ProblemResponse:
    body: dict[str, Any] = {
        "type": problem_type,
        "title": title,
        "status": status_code,
        "detail": detail,
        "instance": request.url.path,
    }
    body.update({k: v for k, v in extensions.items() if v is not None})
    return ProblemResponse(status_code=status_code, content=body)


async def domain_error_handler(request: Request, exc: DomainError) -> ProblemResponse:
    if exc.status_code >= 500:
        logger.error("http.domain_error", title=exc.title, detail=exc.detail)
    return problem(
        request,
        exc.status_code,
        exc.title,
        exc.detail,
        problem_type=exc.error_type,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> ProblemResponse:
    errors = [
        {
            "field": " -> ".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", ""),
            "type": err.get("type", ""),
        }
        for err in exc.errors()
    ]
    return problem(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation Error",
        "The request body or parameters failed validation.",
        problem_type=f"{PROBLEM_BASE_URL}validation-error",
        errors=errors,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> ProblemResponse:
    logger.error("http.unhandled_error", error=str(exc), exc_info=exc)
    return problem(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred. Please try again later.",
    )


def register_problem_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
