"""
Exception handlers and request middleware for the Job Match API
"""
import time
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from jobmatch.models.response import ErrorResponse
from jobmatch.utils.exceptions import JobMatchBaseException, status_code_for
from jobmatch.utils.logging_config import get_logger, request_id_var

logger = get_logger(__name__)


def _request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id


def _quiet(request: Request) -> bool:
    return getattr(request.state, "skip_logging", False)


def _error_response(request_id: str, status_code: int, error: str, error_code: str = None, details: Any = None) -> JSONResponse:
    """Create standardized error response"""
    body = ErrorResponse(
        error=error,
        error_code=error_code,
        details=details or {},
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True),
        headers={"X-Request-ID": request_id}
    )


async def job_match_exception_handler(request: Request, exc: JobMatchBaseException) -> JSONResponse:
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"{exc.__class__.__name__} in {request.method} {request.url.path}: {exc.message}",
        extra={"error": exc.to_dict()}
    )
    return _error_response(_request_id(request), status_code, exc.message, exc.error_code, exc.details)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.warning(f"Validation error in {request.method} {request.url.path}: {errors}")
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid {field}: {first.get('msg')}" if field else "Request data validation failed"
    return _error_response(
        _request_id(request),
        400,
        message,
        "VALIDATION_ERROR",
        {"validation_errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(JobMatchBaseException, job_match_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Request ids plus a last-resort handler for unexpected exceptions"""

    async def dispatch(self, request: Request, call_next):
        request_id = _request_id(request)
        # every record logged while serving this request carries its id
        token = request_id_var.set(request_id)
        try:
            if not _quiet(request):
                logger.info(
                    f"Request started: {request.method} {request.url.path}",
                    extra={"client_ip": request.client.host if request.client else "unknown"}
                )

            try:
                response = await call_next(request)
            except Exception as exc:
                logger.error(
                    f"Unhandled exception in {request.method} {request.url.path}: {str(exc)}",
                    extra={"exception_type": exc.__class__.__name__},
                    exc_info=True
                )
                # Don't expose internal errors
                return _error_response(request_id, 500, "Internal server error", "INTERNAL_ERROR")

            if not _quiet(request):
                logger.info(
                    f"Request completed: {request.method} {request.url.path} - {response.status_code}",
                    extra={"status_code": response.status_code}
                )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for detailed request/response logging"""

    async def dispatch(self, request: Request, call_next):
        if _quiet(request):
            return await call_next(request)

        start_time = time.time()
        logger.debug(f"Request details: {request.method} {request.url}")

        try:
            response = await call_next(request)
        except Exception as exc:
            processing_time = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path} after {processing_time:.3f}s",
                extra={"processing_time": processing_time, "exception": str(exc)}
            )
            raise

        processing_time = time.time() - start_time
        logger.info(
            f"Response: {request.method} {request.url.path} - {response.status_code} in {processing_time:.3f}s",
            extra={"status_code": response.status_code, "processing_time": processing_time}
        )
        return response


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Middleware for performance monitoring"""

    def __init__(self, app, slow_request_threshold: float = 2.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        processing_time = time.time() - start_time

        # slow requests are reported even on quiet paths
        if processing_time > self.slow_request_threshold:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path} took {processing_time:.3f}s",
                extra={"processing_time": processing_time, "threshold": self.slow_request_threshold}
            )
        elif not _quiet(request):
            logger.debug(f"Request performance: {request.method} {request.url.path} - {processing_time:.3f}s")

        response.headers["X-Processing-Time"] = f"{processing_time:.3f}"
        return response


class HealthCheckMiddleware(BaseHTTPMiddleware):
    """Mark liveness/readiness checks so the logging middleware stays quiet for them.

    Must be added after (i.e. outside) the logging middleware.
    """

    HEALTH_PATHS = ["/health", "/health/ready", "/healthz", "/ping"]

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.HEALTH_PATHS:
            request.state.skip_logging = True
        return await call_next(request)
