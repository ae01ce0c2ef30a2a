"""
Validation middleware for request preprocessing and logging.
Assigns request ids, enforces the body size limit and validates content types
and pagination parameters before requests reach the routers.
"""

from typing import Callable, Iterable, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging
import time
import uuid

from app.services.error_handler import ErrorHandlerService
from app.utils.exceptions import BadRequestError

logger = logging.getLogger(__name__)

# Provider callbacks send their own content types and must see the raw body
DEFAULT_EXEMPT_PREFIXES = ("/api/v1/webhooks/",)

PAGINATION_PARAMS = ("page", "page_size", "limit", "skip")


class ValidationMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request validation and preprocessing.
    Handles request ids, size limits, content types and request logging.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_request_size: int = 10 * 1024 * 1024,  # 10MB
        enable_request_logging: bool = True,
        max_page_size: int = 100,
        exempt_prefixes: Optional[Iterable[str]] = None
    ):
        super().__init__(app)
        self.max_request_size = max_request_size
        self.enable_request_logging = enable_request_logging
        self.max_page_size = max_page_size
        self.exempt_prefixes = tuple(exempt_prefixes or DEFAULT_EXEMPT_PREFIXES)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request through validation middleware.

        Args:
            request: FastAPI request object
            call_next: Next middleware/handler in chain

        Returns:
            Response object
        """
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        start_time = time.time()

        try:
            self._validate_request_size(request)

            if not self._is_exempt(request):
                self._validate_content_type(request)
                self._validate_query_parameters(request)

            if self.enable_request_logging:
                self._log_request(request, request_id)

            response = await call_next(request)

            if self.enable_request_logging:
                processing_time = time.time() - start_time
                self._log_response(request, response, request_id, processing_time)

            response.headers["X-Request-ID"] = request_id
            return response

        except BadRequestError as exc:
            response = ErrorHandlerService.handle_api_exception(exc, request)
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as exc:
            processing_time = time.time() - start_time
            logger.error(
                f"Middleware error [{request_id}]: {type(exc).__name__} - {str(exc)}",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                    "processing_time": processing_time
                },
                exc_info=True
            )
            return ErrorHandlerService.handle_unexpected_error(exc, request)

    def _is_exempt(self, request: Request) -> bool:
        return request.url.path.startswith(self.exempt_prefixes)

    def _validate_request_size(self, request: Request) -> None:
        """
        Raises:
            BadRequestError: If request size exceeds limit
        """
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                raise BadRequestError("Invalid content-length header")
            if size > self.max_request_size:
                raise BadRequestError(
                    f"Request size {size} bytes exceeds maximum allowed size {self.max_request_size} bytes"
                )

    def _validate_content_type(self, request: Request) -> None:
        """JSON (or form posts) only for API write requests."""
        if request.method not in ["POST", "PUT", "PATCH"]:
            return

        content_type = request.headers.get("content-type", "")
        if not content_type or not request.url.path.startswith("/api/"):
            return
        if content_type.startswith(("application/json", "application/x-www-form-urlencoded", "multipart/form-data")):
            return
        raise BadRequestError(
            f"Unsupported content type '{content_type}'. Expected 'application/json'"
        )

    def _validate_query_parameters(self, request: Request) -> None:
        for key, value in request.query_params.items():
            if len(value) > 1000:
                raise BadRequestError(f"Query parameter '{key}' exceeds maximum length")

            if key in PAGINATION_PARAMS:
                try:
                    int_value = int(value)
                except ValueError:
                    raise BadRequestError(f"Parameter '{key}' must be a valid integer")
                if int_value < 0:
                    raise BadRequestError(f"Parameter '{key}' must be non-negative")
                if key in ("page_size", "limit") and int_value > self.max_page_size:
                    raise BadRequestError(f"Parameter '{key}' exceeds maximum value of {self.max_page_size}")

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    def _log_request(self, request: Request, request_id: str) -> None:
        logger.info(
            f"Request [{request_id}]: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": self._get_client_ip(request),
                "user_agent": request.headers.get("user-agent", "unknown")
            }
        )

    def _log_response(
        self,
        request: Request,
        response: Response,
        request_id: str,
        processing_time: float
    ) -> None:
        logger.info(
            f"Response [{request_id}]: {response.status_code} - {processing_time:.3f}s",
            extra={
                "request_id": request_id,
                "status_code": response.status_code,
                "processing_time": processing_time,
                "path": request.url.path,
                "method": request.method
            }
        )
