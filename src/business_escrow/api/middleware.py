"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware — injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware — catches domain exceptions -> structured JSON errors
    3. CORSMiddleware — handles browser clients

Every error body has the shape {"error": <human message>, "code": <CODE>}.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from business_escrow.config import get_settings
from business_escrow.domain.exceptions import (
    ConflictError,
    EscrowError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateTransitionError,
    InvalidTransitionError,
    ResourceNotFoundError,
    UnauthenticatedError,
    WebhookAuthenticationError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)


def error_response(status_code: int, exc: EscrowError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.message, "code": exc.code},
    )


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return structured JSON error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except (UnauthenticatedError, WebhookAuthenticationError) as exc:
            logger.warning("auth.rejected", code=exc.code)
            return error_response(401, exc)
        except ForbiddenError as exc:
            logger.warning("auth.forbidden", code=exc.code)
            return error_response(403, exc)
        except ResourceNotFoundError as exc:
            logger.warning("resource.not_found", error=exc.message, code=exc.code)
            return error_response(404, exc)
        except InvalidStateTransitionError as exc:
            logger.warning(
                "state_machine.invalid_transition",
                current=exc.current_state,
                attempted=exc.attempted_state,
            )
            return error_response(400, exc)
        except (InvalidInputError, InvalidTransitionError) as exc:
            logger.warning("request.rejected", error=exc.message, code=exc.code)
            return error_response(400, exc)
        except ConflictError as exc:
            logger.warning("request.conflict", error=exc.message, code=exc.code)
            return error_response(409, exc)
        except EscrowError as exc:
            logger.error("domain.error", error=exc.message, code=exc.code)
            return error_response(400, exc)
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(
                status_code=500,
                content={"error": "An unexpected error occurred", "code": "INTERNAL_ERROR"},
            )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed bodies and parameters as 400 instead of FastAPI's 422."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    logger.warning("request.invalid", errors=len(errors), first=location)
    return JSONResponse(
        status_code=400,
        content={
            "error": f"{location}: {message}" if location else message,
            "code": "INVALID_INPUT",
        },
    )


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI) -> None:
    """Register all middleware and exception handlers on the FastAPI application.

    Order matters — middleware is applied bottom-up, so the last added
    middleware runs first.
    """
    settings = get_settings()

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # CORS (runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handling (runs second)
    app.add_middleware(ErrorHandlerMiddleware)

    # Request ID (runs last = outermost)
    app.add_middleware(RequestIDMiddleware)
