from __future__ import annotations

import traceback
import uuid
from typing import Any

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

# Public messages. These are the only error texts a caller ever sees.
PSEUDOCODE_REQUIRED = "Pseudocode input is required."
PROBLEM_STATEMENT_REQUIRED = "Problem statement is required."
INVALID_REQUEST_BODY = "Invalid request body."
GENERATE_FAILED = "Failed to generate code."
SOLVE_FAILED = "Failed to fetch response."
INTERNAL_ERROR = "An internal server error occurred"


class RelayServiceError(Exception):
    """Base exception for errors rendered to relay callers."""

    def __init__(self, message: str, error_type: str = "service_error", status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code


class MissingInputError(RelayServiceError):
    """The required text field is missing or blank."""

    def __init__(self, message: str):
        super().__init__(message, "missing_input", status.HTTP_400_BAD_REQUEST)


class InvalidRequestError(RelayServiceError):
    """The request body could not be read as the expected JSON object."""

    def __init__(self, message: str = INVALID_REQUEST_BODY):
        super().__init__(message, "invalid_request", status.HTTP_400_BAD_REQUEST)


class UpstreamError(RelayServiceError):
    """The external model endpoint could not produce a usable result."""

    def __init__(self, message: str):
        super().__init__(message, "upstream_error", status.HTTP_500_INTERNAL_SERVER_ERROR)


class InferenceAPIError(Exception):
    """Raised by the inference client. Carries detail for logs only."""

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class InferenceResponseError(InferenceAPIError):
    """The upstream answered 2xx but the body is not the expected shape."""


class ErrorHandler:
    """Centralized error handling for the relay."""

    @staticmethod
    def generate_request_id() -> str:
        """Generate a unique request ID for error tracking."""
        return f"req_{uuid.uuid4().hex[:12]}"

    @staticmethod
    def request_id_for(request: Request) -> str:
        return getattr(request.state, "request_id", None) or ErrorHandler.generate_request_id()

    @staticmethod
    def error_response(message: str, status_code: int, request_id: str) -> JSONResponse:
        return JSONResponse(
            content={"error": message},
            status_code=status_code,
            headers={REQUEST_ID_HEADER: request_id},
        )

    @staticmethod
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed bodies are a client error, reported without field detail."""
        request_id = ErrorHandler.request_id_for(request)

        errors = []
        for error in exc.errors():
            field = " -> ".join(str(x) for x in error["loc"]) if error["loc"] else "root"
            errors.append(f"{field}: {error['msg']}")

        logger.warning(
            "request_validation_failed",
            path=request.url.path,
            errors=errors,
            request_id=request_id,
        )

        error = InvalidRequestError()
        return ErrorHandler.error_response(error.message, error.status_code, request_id)

    @staticmethod
    async def relay_service_error_handler(
        request: Request, exc: RelayServiceError
    ) -> JSONResponse:
        """Handle errors raised deliberately by the endpoints."""
        request_id = ErrorHandler.request_id_for(request)

        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "service_error",
            error_type=exc.error_type,
            message=exc.message,
            path=request.url.path,
            request_id=request_id,
        )

        return ErrorHandler.error_response(exc.message, exc.status_code, request_id)

    @staticmethod
    async def general_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle anything the endpoints did not anticipate."""
        request_id = ErrorHandler.request_id_for(request)
        include_traceback = getattr(request.app.state, "debug", False)

        log_fields: dict[str, Any] = {
            "error_type": "internal_error",
            "exception": str(exc),
            "path": request.url.path,
            "request_id": request_id,
        }
        if include_traceback:
            log_fields["traceback"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        logger.error("request_error", **log_fields)

        return ErrorHandler.error_response(
            INTERNAL_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR, request_id
        )


def setup_error_handlers(app):
    """Setup error handlers for the FastAPI app."""
    app.add_exception_handler(RequestValidationError, ErrorHandler.validation_error_handler)
    app.add_exception_handler(RelayServiceError, ErrorHandler.relay_service_error_handler)
    app.add_exception_handler(Exception, ErrorHandler.general_error_handler)


class ErrorContext:
    """Context manager for logging the lifetime of a single relayed operation."""

    def __init__(self, operation_name: str, request_id: str | None = None):
        self.operation_name = operation_name
        self.request_id = request_id or ErrorHandler.generate_request_id()

    async def __aenter__(self):
        logger.info(f"Starting {self.operation_name}", request_id=self.request_id)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            if isinstance(exc_val, RelayServiceError):
                logger.error(
                    f"Operation {self.operation_name} failed",
                    error_type=exc_val.error_type,
                    message=exc_val.message,
                    request_id=self.request_id,
                )
            else:
                logger.exception(
                    f"Unexpected error in {self.operation_name}",
                    request_id=self.request_id,
                    exception=str(exc_val),
                )
        else:
            logger.info(f"Completed {self.operation_name}", request_id=self.request_id)

        return False  # Don't suppress exceptions
